#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for URI resolution and body framing.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import asyncio
import enum
import io
import itertools
import math
from typing import Annotated, Optional

import pytest
from pydantic import BaseModel

from easyrest import BodyPart, CancellationToken, CancellationTokenSource, Header, Path, Query
from easyrest.core.contract import ContractModel
from easyrest.core.data.codecs import JSONCodec
from easyrest.core.request_builder import RequestBuilder, combine_path, combine_uri, render_query
from easyrest.core.utils.exceptions import ArgumentError
from easyrest.decorators import add_header, get, post, put, rest_contract
from easyrest.params import Body


class Color(enum.Enum):
    RED = "red"


@rest_contract(namespace="posts-api")
class Posts:
    @get("/posts/{id}")
    def one(self, id: Annotated[int, Path()]) -> dict:
        ...

    @get("/posts/{id}/comments/{comment_id}")
    def comment(self, id: Annotated[int, Path()]) -> dict:
        ...

    @get("/search")
    def search(self, a: Annotated[int, Query()], b: Annotated[Optional[str], Query()] = None) -> dict:
        ...

    @get("/filter")
    def filter(self, color: Color, flag: bool, tag: Annotated[Optional[str], Header("X-Tag")] = None) -> dict:
        ...

    @post("/posts")
    def create(self, post: Annotated[object, Body()]) -> dict:
        ...

    @post("/posts/{id}/raw")
    def upload(
        self,
        id: Annotated[int, Path()],
        data: Annotated[object, Body()],
        content_type: Annotated[Optional[str], Header("Content-Type")] = None,
    ) -> None:
        ...

    @post("/forms", body_encoding="form")
    def form(self, name: Annotated[str, Body()], price: Annotated[Optional[float], Body("cost")]) -> None:
        ...

    @put("/files", body_encoding="multipart-form")
    def files(self, title: Annotated[str, Body()], meta: Annotated[dict, Body()]) -> None:
        ...

    @put("/mixed", body_encoding="multipart")
    def mixed(self, first: Annotated[str, Body()], second: Annotated[object, Body()]) -> None:
        ...

    @get("/lookup/{key}")
    def lookup(self, key: Annotated[object, Path()]) -> dict:
        ...

    @get("/slow", timeout=3)
    def slow(self) -> dict:
        ...

    @post("/upload", long_running=True)
    def upload_large(self, data: Annotated[bytes, Body()]) -> None:
        ...

    @add_header("Accept", "application/json", "text/plain")
    @get("/headers")
    def headers(self, token: CancellationToken = CancellationToken.NONE) -> dict:
        ...


PLANS = ContractModel(Posts).plans()
BUILDER = RequestBuilder(JSONCodec())


def _build(method_name, base_url="http://x/", **arguments):
    return BUILDER.build(PLANS[method_name], arguments, base_url=base_url)


async def _collect(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


def _header(request, name):
    return [value for key, value in request.headers if key.lower() == name.lower()]


def test_path_placeholder_substitution():
    assert _build("one", id=42).url == "http://x/posts-api/posts/42"


class Shard(BaseModel):
    region: str
    id: int


def test_composite_path_values_render_through_codec():
    assert _build("lookup", key={"a": 1}).url == 'http://x/posts-api/lookup/{"a":1}'
    assert _build("lookup", key=Shard(region="eu", id=3)).url == 'http://x/posts-api/lookup/{"region":"eu","id":3}'
    assert _build("lookup", key=[1, 2]).url == "http://x/posts-api/lookup/[1,2]"


def test_unresolved_placeholder_is_left_verbatim():
    assert _build("comment", id=42).url == "http://x/posts-api/posts/42/comments/{comment_id}"


@pytest.mark.parametrize(
    "base,namespace,path",
    list(itertools.product(["http://x/a", "http://x/a/"], ["b", "/b", "b/", "/b/"], ["c", "/c"])),
)
def test_combine_uri_uses_single_separators(base, namespace, path):
    assert combine_uri(base, namespace, path) == "http://x/a/b/c"


def test_combine_uri_absolute_segment_replaces_base():
    assert combine_uri("http://x/a/", "https://y/api", "/c") == "https://y/api/c"
    assert combine_uri(None, None, "/c") == "/c"


def test_combine_path_edges():
    assert combine_path("", "c") == "/c"
    assert combine_path("/a//", "//c") == "/a/c"


def test_query_keeps_insertion_order():
    assert render_query([("a", "1"), ("b", "x")]) == "a=1&b=x"
    assert _build("search", a=1, b="x").url == "http://x/posts-api/search?a=1&b=x"


def test_none_query_values_are_omitted():
    assert _build("search", a=1, b=None).url == "http://x/posts-api/search?a=1"


def test_query_values_are_escaped():
    assert _build("search", a=1, b="x y&z").url.endswith("?a=1&b=x%20y%26z")


def test_scalar_conversion_of_enums_and_booleans():
    request = _build("filter", color=Color.RED, flag=True, tag=None)

    assert request.url == "http://x/posts-api/filter?color=red&flag=True"
    assert _header(request, "X-Tag") == []


def test_single_body_is_sent_unwrapped():
    request = _build("create", post={"title": "t", "n": 1})

    assert request.content == b'{"title":"t","n":1}'
    assert _header(request, "Content-Type") == ["application/json; charset=utf-8"]


def test_text_and_binary_bodies():
    text = _build("create", post="hello")
    binary = _build("create", post=b"\x00\x01")

    assert text.content == b"hello"
    assert _header(text, "Content-Type") == ["text/plain; charset=utf-8"]
    assert binary.content == b"\x00\x01"
    assert _header(binary, "Content-Type") == []


def test_explicit_content_type_header_wins_over_body_default():
    request = _build("upload", id=1, data="a,b", content_type="text/csv")

    assert _header(request, "Content-Type") == ["text/csv"]


def test_body_part_keeps_its_framing():
    request = _build("create", post=BodyPart(b"<x/>", content_type="application/xml"))

    assert request.content == b"<x/>"
    assert _header(request, "Content-Type") == ["application/xml"]


def test_file_like_body_is_streamed():
    request = _build("upload", id=7, data=io.BytesIO(b"payload" * 3))

    assert not isinstance(request.content, bytes)
    assert asyncio.run(_collect(request.content)) == b"payload" * 3


def test_form_encoding():
    request = _build("form", name="pen & ink", price=1.5)

    assert request.content == b"name=pen+%26+ink&cost=1.5"
    assert _header(request, "Content-Type") == ["application/x-www-form-urlencoded"]


def test_form_encoding_omits_none_values():
    assert _build("form", name="pen", price=None).content == b"name=pen"


def test_multipart_form_parts_carry_disposition():
    request = _build("files", title="report", meta={"pages": 3})

    content_type = _header(request, "Content-Type")[0]
    assert content_type.startswith("multipart/form-data; boundary=")
    boundary = content_type.split("boundary=", 1)[1]

    body = request.content.decode("utf-8")
    assert body.startswith("--{0}\r\n".format(boundary))
    assert body.endswith("--{0}--\r\n".format(boundary))
    assert 'Content-Disposition: form-data; name="title"\r\n' in body
    assert 'Content-Disposition: form-data; name="meta"\r\n' in body
    assert "\r\n\r\nreport\r\n" in body
    assert '\r\n\r\n{"pages":3}\r\n' in body


def test_multipart_mixed_parts_have_no_disposition():
    request = _build("mixed", first="a", second=BodyPart(b"b", headers={"X-Part": "2"}))

    assert _header(request, "Content-Type")[0].startswith("multipart/mixed; boundary=")
    body = request.content.decode("utf-8")
    assert "Content-Disposition" not in body
    assert "X-Part: 2\r\n" in body


def test_multipart_with_streaming_part_is_streamed():
    request = _build("mixed", first="a", second=io.BytesIO(b"chunk"))

    body = asyncio.run(_collect(request.content)).decode("utf-8")
    assert "\r\n\r\nchunk\r\n" in body


def test_static_headers_with_several_values():
    request = _build("headers")

    assert _header(request, "Accept") == ["application/json", "text/plain"]


def test_cancellation_argument_is_carried_not_sent():
    source = CancellationTokenSource()
    request = _build("headers", token=source.token)

    assert request.cancellation_token is source.token
    assert "token" not in request.url


def test_cancellation_argument_must_be_a_token():
    with pytest.raises(ArgumentError):
        _build("headers", token="nope")



def test_deadline_override_travels_as_extension():
    assert _build("slow").extensions == {"easyrest.timeout": 3.0}
    assert math.isinf(_build("upload_large", data=b"x").extensions["easyrest.timeout"])
    assert _build("one", id=1).extensions == {}
