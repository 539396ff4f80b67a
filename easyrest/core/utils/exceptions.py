#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Exception hierarchy for EasyRest.

Every error raised by the dispatcher derives from ``EasyRestError`` except
transport-level failures, which propagate as raised by httpx.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from typing import Any, Dict, Optional


class EasyRestError(Exception):
    """
    Base class for EasyRest errors.

    Carries a human readable message, an optional underlying cause and a
    free-form context mapping used when formatting the error.
    """

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context: Dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(
            "{0}={1!r}".format(key, value) for key, value in self.context.items()
        )
        return "{0} ({1})".format(self.message, details)


class ConfigurationError(EasyRestError):
    """
    Contract metadata is structurally invalid.

    Raised before any network I/O takes place.
    """

    def __init__(
        self,
        message: str,
        *,
        contract: Optional[str] = None,
        method_name: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        context: Dict[str, Any] = {}
        if contract is not None:
            context["contract"] = contract
        if method_name is not None:
            context["method"] = method_name
        super().__init__(message, cause=cause, context=context)
        self.contract = contract
        self.method_name = method_name


class ArgumentError(EasyRestError):
    """
    A parameter or argument has a shape the dispatcher cannot send.
    """

    def __init__(
        self,
        message: str,
        *,
        method_name: Optional[str] = None,
        parameter_name: Optional[str] = None,
    ) -> None:
        context: Dict[str, Any] = {}
        if method_name is not None:
            context["method"] = method_name
        if parameter_name is not None:
            context["parameter"] = parameter_name
        super().__init__(message, context=context)
        self.method_name = method_name
        self.parameter_name = parameter_name


class RequestTimeoutError(EasyRestError, TimeoutError):
    """
    The request-scoped deadline fired before the transport call completed.
    """

    def __init__(self, message: str, *, url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        context: Dict[str, Any] = {}
        if url is not None:
            context["url"] = url
        if timeout is not None:
            context["timeout"] = timeout
        super().__init__(message, context=context)
        self.url = url
        self.timeout = timeout


class RequestCancelledError(EasyRestError):
    """
    The caller-supplied cancellation token fired before the call completed.
    """

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message, context={"url": url} if url is not None else None)
        self.url = url


class ResponseError(EasyRestError):
    """
    The response post-processor rejected a response.
    """

    def __init__(self, message: str, *, response: Any = None, status_code: Optional[int] = None) -> None:
        super().__init__(
            message,
            context={"status_code": status_code} if status_code is not None else None,
        )
        self.response = response
        self.status_code = status_code


class SerializationError(EasyRestError):
    """
    The codec failed to serialize or deserialize a value.
    """

    def __init__(
        self,
        *,
        operation: str,
        message: str,
        data_type: Optional[str] = None,
        serialization_format: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        context: Dict[str, Any] = {"operation": operation}
        if data_type is not None:
            context["data_type"] = data_type
        if serialization_format is not None:
            context["format"] = serialization_format
        super().__init__(message, cause=cause, context=context)
        self.operation = operation
        self.data_type = data_type
        self.serialization_format = serialization_format


class ConcurrencyBoundaryError(EasyRestError):
    """
    A blocking call was issued from a thread that would deadlock waiting on it.
    """

    def __init__(self, *, message: str, resource_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            context={"resource": resource_name} if resource_name is not None else None,
        )
        self.resource_name = resource_name


class OperationCancelledError(EasyRestError):
    """
    An awaitable was aborted because a cancellation token fired.

    Internal signal; the timeout governor converts it into
    ``RequestTimeoutError`` or ``RequestCancelledError``.
    """

    def __init__(self, message: str = "Operation was cancelled", *, token: Any = None) -> None:
        super().__init__(message)
        self.token = token


__all__ = [
    "EasyRestError",
    "ConfigurationError",
    "ArgumentError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "ResponseError",
    "SerializationError",
    "ConcurrencyBoundaryError",
    "OperationCancelledError",
]
