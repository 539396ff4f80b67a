#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for contract resolution into call plans.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from typing import Annotated, AsyncIterator, Awaitable, List, Optional

import httpx
import pytest

from easyrest import Body, ByteStream, CancellationToken, Header, Path, Query
from easyrest.core.contract import (
    BodyEncoding,
    ContractModel,
    HttpVerb,
    ParameterRole,
    ShapeKind,
)
from easyrest.core.utils.exceptions import ArgumentError, ConfigurationError
from easyrest.decorators import add_header, delete, get, post, rest_call, rest_contract


@rest_contract(namespace="v1")
class Catalog:
    @get("/items/{item_id}")
    def fetch(
        self,
        item_id: Annotated[int, Path()],
        fields: Annotated[str, Query("f")] = "all",
        tenant: Annotated[Optional[str], Header("X-Tenant")] = None,
        page: int = 1,
        token: CancellationToken = CancellationToken.NONE,
    ) -> dict:
        ...

    @post("/items", body_encoding="form")
    async def create(self, name: Annotated[str, Body()], price: Annotated[float, Body("cost")]) -> None:
        ...

    @add_header("Accept", "application/json", "text/plain")
    @add_header("X-Trace", "1")
    @rest_call("/items/{item_id}", verb=HttpVerb.PUT, long_running=True)
    def replace(self, item_id: Annotated[int, Path], item: Annotated[dict, Body()]) -> Awaitable[httpx.Response]:
        ...

    @delete("/items/{item_id}", timeout=2.5)
    def remove(self, item_id: Annotated[int, Path()]) -> None:
        ...

    @get("/export")
    async def export(self) -> ByteStream:
        ...

    @get("/lines")
    def lines(self) -> AsyncIterator[bytes]:
        ...

    @get("/names")
    async def names(self) -> List[str]:
        ...


def test_plans_cover_every_public_method():
    model = ContractModel(Catalog)

    assert sorted(model.plans()) == ["create", "export", "fetch", "lines", "names", "remove", "replace"]
    assert model.base_namespace() == "v1"
    assert all(plan.namespace == "v1" for plan in model.plans().values())


def test_parameter_roles_and_wire_names():
    plan = ContractModel(Catalog).resolve_plan("fetch")

    roles = [(item.parameter_name, item.role, item.wire_name) for item in plan.parameters]
    assert roles == [
        ("item_id", ParameterRole.PATH, "item_id"),
        ("fields", ParameterRole.QUERY, "f"),
        ("tenant", ParameterRole.HEADER, "X-Tenant"),
        ("page", ParameterRole.IMPLICIT_QUERY, "page"),
        ("token", ParameterRole.CANCELLATION, "token"),
    ]
    assert [item.position for item in plan.parameters] == [0, 1, 2, 3, 4]


def test_marker_class_without_call_is_accepted():
    plan = ContractModel(Catalog).resolve_plan("replace")

    assert plan.parameters[0].role is ParameterRole.PATH
    assert plan.parameters[1].role is ParameterRole.BODY


def test_call_descriptor_carries_headers_in_written_order():
    call = ContractModel(Catalog).resolve_call("replace")

    assert call.verb is HttpVerb.PUT
    assert call.long_running is True
    assert call.static_headers == (
        ("Accept", ("application/json", "text/plain")),
        ("X-Trace", ("1",)),
    )


def test_verb_shortcuts_and_encoding_aliases():
    model = ContractModel(Catalog)

    create = model.resolve_call("create")
    remove = model.resolve_call("remove")

    assert create.verb is HttpVerb.POST
    assert create.body_encoding is BodyEncoding.FORM
    assert remove.verb is HttpVerb.DELETE
    assert remove.timeout == 2.5


def test_return_shapes():
    model = ContractModel(Catalog)

    fetch = model.resolve_return_shape("fetch")
    assert (fetch.kind, fetch.is_async) == (ShapeKind.VALUE, False)

    create = model.resolve_return_shape("create")
    assert (create.kind, create.is_async) == (ShapeKind.VOID, True)

    replace = model.resolve_return_shape("replace")
    assert (replace.kind, replace.is_async) == (ShapeKind.RAW_RESPONSE, True)

    assert model.resolve_return_shape("remove").kind is ShapeKind.VOID
    assert model.resolve_return_shape("export").kind is ShapeKind.BYTE_STREAM
    assert model.resolve_return_shape("lines").kind is ShapeKind.BYTE_STREAM

    names = model.resolve_return_shape("names")
    assert names.kind is ShapeKind.VALUE
    assert names.value_type == List[str]
    assert names.is_async is True


def test_undecorated_contract_type_is_rejected():
    class Plain:
        @get("/x")
        def x(self) -> None:
            ...

    with pytest.raises(ConfigurationError):
        ContractModel(Plain)


def test_method_without_call_descriptor_fails_whole_contract():
    @rest_contract
    class Partial:
        @get("/ok")
        def ok(self) -> None:
            ...

        def missing(self) -> None:
            ...

    model = ContractModel(Partial)

    with pytest.raises(ConfigurationError) as excinfo:
        model.plans()
    assert excinfo.value.method_name == "missing"


def test_two_body_values_without_encoding_are_rejected():
    @rest_contract
    class TwoBodies:
        @post("/x")
        def send(self, a: Annotated[str, Body()], b: Annotated[str, Body()]) -> None:
            ...

    with pytest.raises(ConfigurationError):
        ContractModel(TwoBodies).plans()


def test_encoding_without_body_values_is_rejected():
    @rest_contract
    class NoBody:
        @post("/x", body_encoding=BodyEncoding.MULTIPART)
        def send(self, a: Annotated[str, Query()]) -> None:
            ...

    with pytest.raises(ArgumentError):
        ContractModel(NoBody).plans()


def test_duplicate_names_in_one_role_are_rejected():
    @rest_contract
    class Clash:
        @get("/x")
        def find(self, q: Annotated[str, Query("term")], term: str) -> None:
            ...

    @rest_contract
    class HeaderClash:
        @get("/x")
        def find(self, a: Annotated[str, Header("X-Id")], b: Annotated[str, Header("x-id")]) -> None:
            ...

    with pytest.raises(ConfigurationError):
        ContractModel(Clash).plans()
    with pytest.raises(ConfigurationError):
        ContractModel(HeaderClash).plans()


def test_same_name_in_different_roles_is_allowed():
    @rest_contract
    class Mixed:
        @get("/x/{id}")
        def find(self, path_id: Annotated[int, Path("id")], query_id: Annotated[int, Query("id")]) -> None:
            ...

    plan = ContractModel(Mixed).resolve_plan("find")
    assert [item.wire_name for item in plan.parameters] == ["id", "id"]


def test_multiple_cancellation_tokens_are_rejected():
    @rest_contract
    class Tokens:
        @get("/x")
        def find(self, first: CancellationToken, second: CancellationToken) -> None:
            ...

    with pytest.raises(ConfigurationError):
        ContractModel(Tokens).plans()


def test_variadic_parameters_are_rejected():
    @rest_contract
    class Variadic:
        @get("/x")
        def find(self, *values: str) -> None:
            ...

    with pytest.raises(ArgumentError):
        ContractModel(Variadic).plans()


def test_two_role_markers_on_one_parameter_are_rejected():
    @rest_contract
    class Ambiguous:
        @get("/x")
        def find(self, value: Annotated[str, Query(), Header()]) -> None:
            ...

    with pytest.raises(ConfigurationError):
        ContractModel(Ambiguous).plans()


def test_rest_call_rejects_non_positive_timeout():
    with pytest.raises(ConfigurationError):
        rest_call("/x", timeout=0)


@pytest.mark.parametrize(
    "kwargs",
    [{"verb": "PATCHY"}, {"body_encoding": "xml"}],
)
def test_rest_call_rejects_unknown_verb_or_encoding(kwargs):
    with pytest.raises(ConfigurationError):
        rest_call("/x", **kwargs)


def test_add_header_rejects_empty_name_or_missing_values():
    with pytest.raises(ConfigurationError):
        add_header(" ", "v")
    with pytest.raises(ConfigurationError):
        add_header("X-Empty")


def test_body_encoding_aliases():
    assert BodyEncoding.from_value("form_urlencoded") is BodyEncoding.FORM
    assert BodyEncoding.from_value("form-data") is BodyEncoding.MULTIPART_FORM
    assert BodyEncoding.from_value(None) is BodyEncoding.NONE
    assert HttpVerb.from_value(" post ") is HttpVerb.POST
