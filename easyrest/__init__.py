#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
EasyRest public API with lazy imports.

Declare a REST contract as a decorated class, then let ``RestProxy.create``
turn it into a working client over an ``httpx.AsyncClient``.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from importlib import import_module
from typing import Any, Dict, Tuple

from ._version import __version__

__author__ = "Silan Hu"
__email__ = "silan.hu@u.nus.edu"

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "rest_contract": ("easyrest.decorators", "rest_contract"),
    "rest_call": ("easyrest.decorators", "rest_call"),
    "get": ("easyrest.decorators", "get"),
    "post": ("easyrest.decorators", "post"),
    "put": ("easyrest.decorators", "put"),
    "delete": ("easyrest.decorators", "delete"),
    "add_header": ("easyrest.decorators", "add_header"),
    "Path": ("easyrest.params", "Path"),
    "Query": ("easyrest.params", "Query"),
    "Header": ("easyrest.params", "Header"),
    "Body": ("easyrest.params", "Body"),
    "RestProxy": ("easyrest.proxy", "RestProxy"),
    "RestProxyFactory": ("easyrest.proxy", "RestProxyFactory"),
    "create_transport_client": ("easyrest.proxy", "create_transport_client"),
    "HttpVerb": ("easyrest.core.contract", "HttpVerb"),
    "BodyEncoding": ("easyrest.core.contract", "BodyEncoding"),
    "ByteStream": ("easyrest.core.contract", "ByteStream"),
    "BodyPart": ("easyrest.core.request_builder", "BodyPart"),
    "AsyncByteStream": ("easyrest.core.response", "AsyncByteStream"),
    "BlockingByteStream": ("easyrest.core.response", "BlockingByteStream"),
    "ensure_success_status": ("easyrest.core.response", "ensure_success_status"),
    "INFINITE_TIMEOUT": ("easyrest.core.timeout", "INFINITE_TIMEOUT"),
    "set_request_timeout": ("easyrest.core.timeout", "set_request_timeout"),
    "get_request_timeout": ("easyrest.core.timeout", "get_request_timeout"),
    "Codec": ("easyrest.core.data", "Codec"),
    "JSONCodec": ("easyrest.core.data", "JSONCodec"),
    "EasyRestConfig": ("easyrest.core.config", "EasyRestConfig"),
    "get_config": ("easyrest.core.config", "get_config"),
    "create_config": ("easyrest.core.config", "create_config"),
    "CancellationToken": ("easyrest.core.utils.concurrency", "CancellationToken"),
    "CancellationTokenSource": ("easyrest.core.utils.concurrency", "CancellationTokenSource"),
    "EasyRestError": ("easyrest.core.utils.exceptions", "EasyRestError"),
    "ConfigurationError": ("easyrest.core.utils.exceptions", "ConfigurationError"),
    "ArgumentError": ("easyrest.core.utils.exceptions", "ArgumentError"),
    "RequestTimeoutError": ("easyrest.core.utils.exceptions", "RequestTimeoutError"),
    "RequestCancelledError": ("easyrest.core.utils.exceptions", "RequestCancelledError"),
    "ResponseError": ("easyrest.core.utils.exceptions", "ResponseError"),
    "SerializationError": ("easyrest.core.utils.exceptions", "SerializationError"),
}

__all__ = ["__version__", *sorted(_EXPORT_MAP.keys())]


def __getattr__(name: str) -> Any:
    """
    Resolve public API symbols lazily.
    """
    if name not in _EXPORT_MAP:
        raise AttributeError("module 'easyrest' has no attribute '{0}'".format(name))

    module_name, attr_name = _EXPORT_MAP[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
