#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Decorators declaring REST contracts.

A contract is a plain class decorated with ``@rest_contract``; each public
method is decorated with ``@rest_call`` (or one of the verb shortcuts) and
optionally ``@add_header``. Method bodies are never executed by the proxy.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from typing import Any, Callable, Optional, TypeVar, Union, cast

from .core.contract import (
    CALL_ATTR,
    CONTRACT_ATTR,
    HEADERS_ATTR,
    BodyEncoding,
    CallDescriptor,
    ContractDefinition,
    HttpVerb,
)
from .core.utils.exceptions import ConfigurationError

T = TypeVar("T", bound=Callable[..., Any])
C = TypeVar("C", bound=type)


def rest_contract(cls: Optional[C] = None, *, namespace: Optional[str] = None) -> Any:
    """
    Mark a class as a REST contract.

    ``namespace`` is a URI prefix placed between the client's base address
    and each method path. It may itself be an absolute URL when the client has
    no base address. Supports both ``@rest_contract`` and
    ``@rest_contract(namespace=...)``; a positional string is taken as the
    namespace.
    """
    if isinstance(cls, str):
        namespace, cls = cls, None

    def decorator(target: C) -> C:
        setattr(target, CONTRACT_ATTR, ContractDefinition(namespace=namespace))
        return target

    if cls is not None:
        return decorator(cls)
    return decorator


def rest_call(
    path: Optional[str] = None,
    *,
    verb: Union[HttpVerb, str] = HttpVerb.GET,
    body_encoding: Union[BodyEncoding, str, None] = BodyEncoding.NONE,
    long_running: bool = False,
    timeout: Optional[float] = None,
) -> Callable[[T], T]:
    """
    Map a contract method onto an HTTP call.

    ``timeout`` overrides the default request deadline (seconds) for this
    method; ``long_running`` disables the deadline, e.g. for uploads.
    """
    if timeout is not None and timeout <= 0:
        raise ConfigurationError("timeout must be positive")

    descriptor = CallDescriptor(
        verb=HttpVerb.from_value(verb),
        path=path,
        body_encoding=BodyEncoding.from_value(body_encoding),
        long_running=bool(long_running),
        timeout=timeout,
    )

    def decorator(func: T) -> T:
        setattr(func, CALL_ATTR, descriptor)
        return func

    return decorator


def _verb_shortcut(verb: HttpVerb) -> Callable[..., Any]:
    def shortcut(
        path: Union[Optional[str], Callable[..., Any]] = None,
        *,
        body_encoding: Union[BodyEncoding, str, None] = BodyEncoding.NONE,
        long_running: bool = False,
        timeout: Optional[float] = None,
    ) -> Any:
        if callable(path):
            return rest_call(None, verb=verb)(cast(T, path))
        return rest_call(
            path,
            verb=verb,
            body_encoding=body_encoding,
            long_running=long_running,
            timeout=timeout,
        )

    shortcut.__name__ = verb.value.lower()
    shortcut.__qualname__ = shortcut.__name__
    shortcut.__doc__ = "Shortcut for ``rest_call(path, verb=HttpVerb.{0})``.".format(verb.name)
    return shortcut


get = _verb_shortcut(HttpVerb.GET)
post = _verb_shortcut(HttpVerb.POST)
put = _verb_shortcut(HttpVerb.PUT)
delete = _verb_shortcut(HttpVerb.DELETE)


def add_header(name: str, *values: str) -> Callable[[T], T]:
    """
    Attach a static header to every request of a contract method.

    Several values produce several header lines. Stacked decorators apply in
    the order they are written.
    """
    if not name or not name.strip():
        raise ConfigurationError("Header name cannot be empty")
    if not values:
        raise ConfigurationError("add_header requires at least one value")

    entry = (name.strip(), tuple(str(value) for value in values))

    def decorator(func: T) -> T:
        # Decorators apply bottom-up; prepend to keep the written order.
        existing = getattr(func, HEADERS_ATTR, ())
        setattr(func, HEADERS_ATTR, (entry,) + tuple(existing))
        return func

    return decorator


__all__ = ["rest_contract", "rest_call", "get", "post", "put", "delete", "add_header"]
