#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
EasyRest core module exports (lazy-loaded).

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from importlib import import_module
from typing import Any, Dict, Tuple

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "ContractModel": ("easyrest.core.contract", "ContractModel"),
    "CallPlan": ("easyrest.core.contract", "CallPlan"),
    "RequestBuilder": ("easyrest.core.request_builder", "RequestBuilder"),
    "PreparedRequest": ("easyrest.core.request_builder", "PreparedRequest"),
    "TimeoutGovernor": ("easyrest.core.timeout", "TimeoutGovernor"),
    "ResponseAdapter": ("easyrest.core.response", "ResponseAdapter"),
    "InvocationDispatcher": ("easyrest.core.dispatcher", "InvocationDispatcher"),
    "EasyRestConfig": ("easyrest.core.config", "EasyRestConfig"),
    "get_config": ("easyrest.core.config", "get_config"),
    "create_config": ("easyrest.core.config", "create_config"),
}

__all__ = sorted(_EXPORT_MAP.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORT_MAP:
        raise AttributeError("module 'easyrest.core' has no attribute '{0}'".format(name))

    module_name, attr_name = _EXPORT_MAP[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
