#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Request assembly for EasyRest.

Turns a call plan plus bound arguments into a ``PreparedRequest``: resolved
URI, header lines and a body framed per the method's body encoding. Building
is synchronous and touches no shared state.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from __future__ import annotations

import asyncio
import collections.abc
import secrets
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from .contract import BodyEncoding, CallPlan, ParameterRole
from .data.codecs import Codec
from .timeout import INFINITE_TIMEOUT, TIMEOUT_EXTENSION
from .utils.concurrency import CancellationToken
from .utils.exceptions import ArgumentError

_STREAM_CHUNK_SIZE = 64 * 1024
_PRIMITIVE_TYPES = (bool, int, float, Decimal, uuid.UUID)

BodyContent = Union[bytes, AsyncIterator[bytes]]


@dataclass
class BodyPart:
    """
    Pre-framed body content.

    ``content`` may be bytes, text, a binary file-like object or an (async)
    iterator of bytes. ``headers`` are sent with the part when it is embedded
    in a multipart body.
    """

    content: Any
    content_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass
class PreparedRequest:
    """
    Transport-agnostic outbound request.

    ``extensions`` holds out-of-band properties such as the deadline override.
    """

    method: str
    url: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    content: Optional[BodyContent] = None
    cancellation_token: CancellationToken = CancellationToken.NONE
    extensions: Dict[str, Any] = field(default_factory=dict)


def combine_path(left: str, right: str) -> str:
    """
    Join two path fragments with exactly one ``/`` between them.
    """
    if not left:
        return right if right.startswith("/") else "/" + right
    return left.rstrip("/") + "/" + right.lstrip("/")


def is_absolute_uri(uri: str) -> bool:
    parts = urlsplit(uri)
    return bool(parts.scheme and parts.netloc)


def combine_uri(base: Optional[str], *segments: Optional[str]) -> str:
    """
    Combine a base address with relative segments, in order.

    Each segment extends the path of what came before; a segment that is an
    absolute URL replaces it.
    """
    current = str(base) if base else ""
    for segment in segments:
        if not segment:
            continue
        if not current or is_absolute_uri(segment):
            current = segment
            continue
        parts = urlsplit(current)
        current = urlunsplit(
            (parts.scheme, parts.netloc, combine_path(parts.path, segment), parts.query, parts.fragment)
        )
    return current


def with_query(uri: str, query: str) -> str:
    if not query:
        return uri
    parts = urlsplit(uri)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def render_query(pairs: Sequence[Tuple[str, str]]) -> str:
    """
    Render ``key=value`` pairs joined by ``&``, keeping their order.
    """
    return "&".join(
        "{0}={1}".format(quote(key, safe=""), quote(value, safe="")) for key, value in pairs
    )


def _is_stream_like(value: Any) -> bool:
    if hasattr(value, "read") or hasattr(value, "__aiter__"):
        return True
    return isinstance(value, collections.abc.Iterator)


async def _aiter_stream(source: Any, encoding: str) -> AsyncIterator[bytes]:
    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk.encode(encoding) if isinstance(chunk, str) else bytes(chunk)
        return

    if hasattr(source, "read"):
        while True:
            chunk = await asyncio.to_thread(source.read, _STREAM_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk.encode(encoding) if isinstance(chunk, str) else bytes(chunk)
        return

    for chunk in source:
        yield chunk.encode(encoding) if isinstance(chunk, str) else bytes(chunk)


class RequestBuilder:
    """
    Builds outbound requests from call plans.

    Scalars (``str``, numbers, booleans, enums, UUIDs) convert through their
    natural string form; any other value is rendered by the injected codec.
    """

    def __init__(self, codec: Codec, encoding: str = "utf-8") -> None:
        self.codec = codec
        self.encoding = encoding

    # -- conversions --

    def to_scalar(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        if isinstance(value, Enum):
            return self.to_scalar(value.value)
        if isinstance(value, _PRIMITIVE_TYPES):
            return str(value)
        return self.codec.serialize(value)

    def to_body_part(self, value: Any) -> BodyPart:
        """
        Convert one body value by the scalar-or-structured rule.
        """
        if isinstance(value, BodyPart):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            return BodyPart(bytes(value))
        if isinstance(value, (str, Enum) + _PRIMITIVE_TYPES):
            text = self.to_scalar(value) or ""
            return BodyPart(text.encode(self.encoding), "text/plain; charset={0}".format(self.encoding))
        if _is_stream_like(value):
            return BodyPart(value)
        return BodyPart(
            self.codec.serialize(value).encode(self.encoding),
            "{0}; charset={1}".format(self.codec.content_type, self.encoding),
        )

    def _part_content(self, part: BodyPart) -> BodyContent:
        if isinstance(part.content, str):
            return part.content.encode(self.encoding)
        if isinstance(part.content, (bytes, bytearray, memoryview)):
            return bytes(part.content)
        return _aiter_stream(part.content, self.encoding)

    # -- body framing --

    def build_body(
        self,
        encoding: BodyEncoding,
        body: Mapping[str, Any],
    ) -> Tuple[Optional[BodyContent], List[Tuple[str, str]]]:
        """
        Frame body parameters; returns the content and its header lines.
        """
        if not body:
            return None, []

        if encoding is BodyEncoding.NONE:
            if len(body) > 1:
                raise ArgumentError("Several body values require an explicit body encoding")
            value = next(iter(body.values()))
            if value is None:
                return None, []
            part = self.to_body_part(value)
            headers = list(part.headers.items())
            if part.content_type and part.header("Content-Type") is None:
                headers.append(("Content-Type", part.content_type))
            return self._part_content(part), headers

        if encoding is BodyEncoding.FORM:
            pairs = []
            for key, value in body.items():
                text = self.to_scalar(value)
                if text is not None:
                    pairs.append((key, text))
            return (
                urlencode(pairs).encode(self.encoding),
                [("Content-Type", "application/x-www-form-urlencoded")],
            )

        return self._build_multipart(encoding is BodyEncoding.MULTIPART_FORM, body)

    def _build_multipart(
        self,
        form: bool,
        body: Mapping[str, Any],
    ) -> Tuple[BodyContent, List[Tuple[str, str]]]:
        boundary = secrets.token_hex(16)
        chunks: List[BodyContent] = []

        for name, value in body.items():
            part = self.to_body_part(b"" if value is None else value)
            lines: List[Tuple[str, str]] = []
            if form and part.header("Content-Disposition") is None:
                lines.append(("Content-Disposition", 'form-data; name="{0}"'.format(name.replace('"', "%22"))))
            lines.extend(part.headers.items())
            if part.content_type and part.header("Content-Type") is None:
                lines.append(("Content-Type", part.content_type))

            head = "--{0}\r\n".format(boundary)
            head += "".join("{0}: {1}\r\n".format(key, val) for key, val in lines)
            chunks.append((head + "\r\n").encode(self.encoding))
            chunks.append(self._part_content(part))
            chunks.append(b"\r\n")

        chunks.append("--{0}--\r\n".format(boundary).encode(self.encoding))

        subtype = "form-data" if form else "mixed"
        headers = [("Content-Type", "multipart/{0}; boundary={1}".format(subtype, boundary))]

        if all(isinstance(chunk, bytes) for chunk in chunks):
            return b"".join(chunks), headers  # type: ignore[arg-type]

        async def _stream() -> AsyncIterator[bytes]:
            for chunk in chunks:
                if isinstance(chunk, bytes):
                    yield chunk
                else:
                    async for piece in chunk:
                        yield piece

        return _stream(), headers

    # -- request --

    def build(self, plan: CallPlan, arguments: Mapping[str, Any], base_url: Optional[str] = None) -> PreparedRequest:
        call = plan.call
        path = call.path
        query: List[Tuple[str, str]] = []
        header_lines: List[Tuple[str, str]] = []
        body: Dict[str, Any] = {}
        token = CancellationToken.NONE

        for parameter in plan.parameters:
            value = arguments.get(parameter.parameter_name)
            role = parameter.role

            if role is ParameterRole.PATH:
                if path is not None:
                    path = path.replace("{" + parameter.wire_name + "}", self.to_scalar(value) or "")
            elif role in (ParameterRole.QUERY, ParameterRole.IMPLICIT_QUERY):
                text = self.to_scalar(value)
                if text is not None:
                    query.append((parameter.wire_name, text))
            elif role is ParameterRole.HEADER:
                text = self.to_scalar(value)
                if text is not None:
                    header_lines.append((parameter.wire_name, text))
            elif role is ParameterRole.BODY:
                body[parameter.wire_name] = value
            elif role is ParameterRole.CANCELLATION:
                if value is None:
                    continue
                if not isinstance(value, CancellationToken):
                    raise ArgumentError(
                        "Cancellation argument must be a CancellationToken",
                        method_name=plan.method_name,
                        parameter_name=parameter.parameter_name,
                    )
                token = value

        for name, values in call.static_headers:
            header_lines.extend((name, value) for value in values)

        content, body_headers = self.build_body(call.body_encoding, body)
        explicit = {name.lower() for name, _ in header_lines}
        header_lines = [item for item in body_headers if item[0].lower() not in explicit] + header_lines

        extensions: Dict[str, Any] = {}
        if call.long_running:
            extensions[TIMEOUT_EXTENSION] = INFINITE_TIMEOUT
        elif call.timeout is not None:
            extensions[TIMEOUT_EXTENSION] = float(call.timeout)

        uri = combine_uri(base_url, plan.namespace, path)
        return PreparedRequest(
            method=call.verb.value,
            url=with_query(uri, render_query(query)),
            headers=header_lines,
            content=content,
            cancellation_token=token,
            extensions=extensions,
        )
