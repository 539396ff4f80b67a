#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Contract model for EasyRest.

Reads the metadata attached by ``easyrest.decorators`` and parameter markers
from ``easyrest.params`` and resolves it, once per contract class, into
immutable call plans the dispatcher looks up by method name.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from __future__ import annotations

import collections.abc
import inspect
from dataclasses import dataclass, field, replace
from enum import Enum
from types import FunctionType, MappingProxyType
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

import httpx

from .utils.concurrency import CancellationToken
from .utils.exceptions import ArgumentError, ConfigurationError

CONTRACT_ATTR = "__easyrest_contract__"
CALL_ATTR = "__easyrest_call__"
HEADERS_ATTR = "__easyrest_headers__"


class HttpVerb(str, Enum):
    """
    HTTP verbs a contract method may use.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def from_value(cls, value: Union["HttpVerb", str]) -> "HttpVerb":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise ConfigurationError("Unsupported HTTP verb: {0!r}".format(value), cause=exc) from exc


class BodyEncoding(str, Enum):
    """
    How body parameters are framed into the request body.
    """

    NONE = "none"
    FORM = "form"
    MULTIPART = "multipart"
    MULTIPART_FORM = "multipart-form"

    @classmethod
    def from_value(cls, value: Union["BodyEncoding", str, None]) -> "BodyEncoding":
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        aliases = {
            "form-url-encoded": cls.FORM,
            "form-urlencoded": cls.FORM,
            "urlencoded": cls.FORM,
            "multipart-form-data": cls.MULTIPART_FORM,
            "form-data": cls.MULTIPART_FORM,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ConfigurationError("Unsupported body encoding: {0!r}".format(value), cause=exc) from exc


class ParameterRole(str, Enum):
    """
    Destination of an argument in the outbound request.
    """

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"
    CANCELLATION = "cancellation"
    IMPLICIT_QUERY = "implicit-query"


class ShapeKind(str, Enum):
    """
    Result kinds a contract method can declare.
    """

    VOID = "void"
    RAW_RESPONSE = "raw-response"
    BYTE_STREAM = "byte-stream"
    VALUE = "value"


class ByteStream:
    """
    Return annotation selecting the byte-stream shape.

    Asynchronous methods resolve to an ``AsyncByteStream`` and blocking ones
    return a ``BlockingByteStream``; both derive from this class.
    """


@dataclass(frozen=True)
class ContractDefinition:
    namespace: Optional[str] = None


@dataclass(frozen=True)
class CallDescriptor:
    """
    Per-method routing and encoding metadata.

    ``timeout`` overrides the governor's default deadline in seconds;
    ``long_running`` disables the deadline altogether.
    """

    verb: HttpVerb = HttpVerb.GET
    path: Optional[str] = None
    body_encoding: BodyEncoding = BodyEncoding.NONE
    long_running: bool = False
    timeout: Optional[float] = None
    static_headers: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()


@dataclass(frozen=True)
class ParameterMarker:
    """
    Base of the role markers used inside ``typing.Annotated``.
    """

    name: Optional[str] = None

    role = ParameterRole.IMPLICIT_QUERY


@dataclass(frozen=True)
class ParameterDescriptor:
    parameter_name: str
    role: ParameterRole
    wire_name: str
    position: int


@dataclass(frozen=True)
class ReturnShape:
    kind: ShapeKind
    value_type: Any = Any
    is_async: bool = False


@dataclass(frozen=True)
class CallPlan:
    """
    Everything the dispatcher needs to serve one contract method.
    """

    method_name: str
    call: CallDescriptor
    parameters: Tuple[ParameterDescriptor, ...]
    return_shape: ReturnShape
    signature: inspect.Signature = field(compare=False)
    namespace: Optional[str] = None


_ROLE_BUCKETS: Dict[ParameterRole, str] = {
    ParameterRole.PATH: "path",
    ParameterRole.QUERY: "query",
    ParameterRole.IMPLICIT_QUERY: "query",
    ParameterRole.HEADER: "header",
    ParameterRole.BODY: "body",
}

_STREAM_ORIGINS = (
    collections.abc.AsyncIterator,
    collections.abc.AsyncIterable,
    collections.abc.Iterator,
    collections.abc.Iterable,
)


def _strip_annotated(hint: Any) -> Any:
    while get_origin(hint) is Annotated:
        hint = get_args(hint)[0]
    return hint


def _is_cancellation_hint(hint: Any) -> bool:
    hint = _strip_annotated(hint)
    if hint is CancellationToken:
        return True
    if get_origin(hint) is Union:
        return any(arg is CancellationToken for arg in get_args(hint))
    return False


def _markers_of(hint: Any) -> List[ParameterMarker]:
    # Python < 3.11 wraps ``Annotated[T, ...] = None`` into ``Optional[...]``.
    if get_origin(hint) is Union:
        hint = next((arg for arg in get_args(hint) if get_origin(arg) is Annotated), None)
    if get_origin(hint) is not Annotated:
        return []
    markers: List[ParameterMarker] = []
    for item in hint.__metadata__:
        if isinstance(item, ParameterMarker):
            markers.append(item)
        elif isinstance(item, type) and issubclass(item, ParameterMarker):
            markers.append(item())
    return markers


def _unwrap_async(hint: Any) -> Tuple[Any, bool]:
    origin = get_origin(hint)
    if origin is collections.abc.Awaitable:
        args = get_args(hint)
        return (args[0] if args else Any), True
    if origin is collections.abc.Coroutine:
        args = get_args(hint)
        return (args[2] if len(args) == 3 else Any), True
    return hint, False


def _classify_shape(hint: Any) -> ShapeKind:
    bare = _strip_annotated(hint)
    if bare is None or bare is type(None):
        return ShapeKind.VOID
    if bare is httpx.Response:
        return ShapeKind.RAW_RESPONSE
    if isinstance(bare, type) and issubclass(bare, ByteStream):
        return ShapeKind.BYTE_STREAM
    if get_origin(bare) in _STREAM_ORIGINS and get_args(bare) == (bytes,):
        return ShapeKind.BYTE_STREAM
    return ShapeKind.VALUE


class ContractModel:
    """
    Read-only view over one contract class.

    All lookups are derived from static metadata; nothing here depends on
    call-time arguments.
    """

    def __init__(self, contract_cls: type) -> None:
        definition = getattr(contract_cls, CONTRACT_ATTR, None)
        if not isinstance(definition, ContractDefinition):
            raise ConfigurationError(
                "Contract type must be decorated with @rest_contract",
                contract=getattr(contract_cls, "__qualname__", repr(contract_cls)),
            )
        self.contract_cls = contract_cls
        self.contract_name = contract_cls.__qualname__
        self._definition = definition
        self._plans: Optional[Mapping[str, CallPlan]] = None

    def base_namespace(self) -> Optional[str]:
        return self._definition.namespace

    def method_names(self) -> List[str]:
        names = []
        for name in dir(self.contract_cls):
            if name.startswith("_"):
                continue
            if isinstance(inspect.getattr_static(self.contract_cls, name), FunctionType):
                names.append(name)
        return names

    def _function(self, method: Union[str, Callable[..., Any]]) -> FunctionType:
        name = method if isinstance(method, str) else getattr(method, "__name__", "")
        try:
            func = inspect.getattr_static(self.contract_cls, name)
        except AttributeError:
            raise ConfigurationError(
                "Unknown contract method", contract=self.contract_name, method_name=name
            ) from None
        if not isinstance(func, FunctionType):
            raise ConfigurationError(
                "Contract member is not a plain method", contract=self.contract_name, method_name=name
            )
        return func

    def _type_hints(self, func: FunctionType) -> Dict[str, Any]:
        try:
            return get_type_hints(func, include_extras=True)
        except Exception as exc:
            raise ConfigurationError(
                f"Cannot resolve annotations: {exc}",
                contract=self.contract_name,
                method_name=func.__name__,
                cause=exc,
            ) from exc

    def resolve_call(self, method: Union[str, Callable[..., Any]]) -> CallDescriptor:
        func = self._function(method)
        call = getattr(func, CALL_ATTR, None)
        if not isinstance(call, CallDescriptor):
            raise ConfigurationError(
                "No call descriptor on contract method; decorate it with @rest_call or a verb shortcut",
                contract=self.contract_name,
                method_name=func.__name__,
            )
        headers = tuple(getattr(func, HEADERS_ATTR, ()))
        if headers:
            call = replace(call, static_headers=call.static_headers + headers)
        return call

    def resolve_parameters(self, method: Union[str, Callable[..., Any]]) -> Tuple[ParameterDescriptor, ...]:
        func = self._function(method)
        call = self.resolve_call(func)
        hints = self._type_hints(func)
        method_name = func.__name__

        descriptors: List[ParameterDescriptor] = []
        seen: Dict[Tuple[str, str], str] = {}
        cancellation: List[str] = []

        parameters = list(inspect.signature(func).parameters.values())[1:]
        for position, parameter in enumerate(parameters):
            if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                raise ArgumentError(
                    "Variadic parameters are not supported on contract methods",
                    method_name=method_name,
                    parameter_name=parameter.name,
                )

            hint = hints.get(parameter.name, Any)
            markers = _markers_of(hint)
            if len(markers) > 1:
                raise ConfigurationError(
                    f"Parameter '{parameter.name}' declares more than one role",
                    contract=self.contract_name,
                    method_name=method_name,
                )

            if markers:
                role = markers[0].role
                wire_name = markers[0].name or parameter.name
            elif _is_cancellation_hint(hint):
                role = ParameterRole.CANCELLATION
                wire_name = parameter.name
            else:
                role = ParameterRole.IMPLICIT_QUERY
                wire_name = parameter.name

            if role is ParameterRole.CANCELLATION:
                cancellation.append(parameter.name)
            else:
                bucket = _ROLE_BUCKETS[role]
                key = (bucket, wire_name.lower() if role is ParameterRole.HEADER else wire_name)
                if key in seen:
                    raise ConfigurationError(
                        f"{bucket} name '{wire_name}' is used by both '{seen[key]}' and '{parameter.name}'",
                        contract=self.contract_name,
                        method_name=method_name,
                    )
                seen[key] = parameter.name

            descriptors.append(
                ParameterDescriptor(
                    parameter_name=parameter.name,
                    role=role,
                    wire_name=wire_name,
                    position=position,
                )
            )

        if len(cancellation) > 1:
            raise ConfigurationError(
                "At most one cancellation token parameter is allowed, got: " + ", ".join(cancellation),
                contract=self.contract_name,
                method_name=method_name,
            )

        body_count = sum(1 for item in descriptors if item.role is ParameterRole.BODY)
        if body_count > 1 and call.body_encoding is BodyEncoding.NONE:
            raise ConfigurationError(
                "Several body parameters require an explicit body encoding",
                contract=self.contract_name,
                method_name=method_name,
            )
        if body_count == 0 and call.body_encoding is not BodyEncoding.NONE:
            raise ArgumentError(
                f"Body encoding '{call.body_encoding.value}' declared without body parameters",
                method_name=method_name,
            )

        return tuple(descriptors)

    def resolve_return_shape(self, method: Union[str, Callable[..., Any]]) -> ReturnShape:
        func = self._function(method)
        hints = self._type_hints(func)
        hint = hints.get("return", Any)

        value_type, is_async = _unwrap_async(hint)
        is_async = is_async or inspect.iscoroutinefunction(func)
        return ReturnShape(kind=_classify_shape(value_type), value_type=value_type, is_async=is_async)

    def resolve_plan(self, method: Union[str, Callable[..., Any]]) -> CallPlan:
        func = self._function(method)
        return CallPlan(
            method_name=func.__name__,
            call=self.resolve_call(func),
            parameters=self.resolve_parameters(func),
            return_shape=self.resolve_return_shape(func),
            signature=inspect.signature(func),
            namespace=self.base_namespace(),
        )

    def plans(self) -> Mapping[str, CallPlan]:
        """
        Resolve every public contract method, failing on the first invalid one.
        """
        if self._plans is None:
            self._plans = MappingProxyType(
                {name: self.resolve_plan(name) for name in self.method_names()}
            )
        return self._plans
