#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Proxy generation for EasyRest contracts.

``RestProxy.create`` returns an instance of a generated subclass of the
contract type whose public methods forward to an ``InvocationDispatcher``.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import functools
import inspect
import threading
import weakref
from typing import Any, Callable, Dict, Mapping, Optional, Type, TypeVar

import httpx

from .core.config import get_config
from .core.contract import CallPlan
from .core.data.codecs import Codec
from .core.dispatcher import InvocationDispatcher
from .core.response import PostProcessor
from .core.utils.async_helpers import BlockingLoopRunner
from .core.utils.exceptions import ArgumentError

C = TypeVar("C")

_PROXY_TYPES: "weakref.WeakKeyDictionary[type, type]" = weakref.WeakKeyDictionary()
_PROXY_TYPES_LOCK = threading.Lock()


def _bind_arguments(plan: CallPlan, proxy: Any, args: Any, kwargs: Any) -> Dict[str, Any]:
    try:
        bound = plan.signature.bind(proxy, *args, **kwargs)
    except TypeError as exc:
        raise ArgumentError(str(exc), method_name=plan.method_name) from exc
    bound.apply_defaults()
    arguments = dict(bound.arguments)
    # Drop the receiver, whatever the contract named it.
    arguments.pop(next(iter(plan.signature.parameters)), None)
    return arguments


def _forwarding_method(contract_cls: type, plan: CallPlan) -> Callable[..., Any]:
    original = inspect.getattr_static(contract_cls, plan.method_name)
    name = plan.method_name

    if plan.return_shape.is_async:

        @functools.wraps(original)
        async def async_method(self: "RestProxy", *args: Any, **kwargs: Any) -> Any:
            return await self._dispatcher.invoke(name, _bind_arguments(plan, self, args, kwargs))

        return async_method

    @functools.wraps(original)
    def sync_method(self: "RestProxy", *args: Any, **kwargs: Any) -> Any:
        return self._dispatcher.invoke(name, _bind_arguments(plan, self, args, kwargs))

    return sync_method


class RestProxy:
    """
    Base class of every generated proxy.
    """

    _dispatcher: InvocationDispatcher

    def __init__(self, dispatcher: InvocationDispatcher) -> None:
        self._dispatcher = dispatcher

    def __repr__(self) -> str:
        return "<{0} for {1}>".format(type(self).__name__, self._dispatcher.contract.contract_name)

    @staticmethod
    def _proxy_type(contract_cls: type, plans: Mapping[str, CallPlan]) -> type:
        with _PROXY_TYPES_LOCK:
            proxy_type = _PROXY_TYPES.get(contract_cls)
            if proxy_type is None:
                members: Dict[str, Any] = {
                    name: _forwarding_method(contract_cls, plan) for name, plan in plans.items()
                }
                members["__module__"] = contract_cls.__module__
                proxy_type = type(
                    "{0}Proxy".format(contract_cls.__name__),
                    (RestProxy, contract_cls),
                    members,
                )
                _PROXY_TYPES[contract_cls] = proxy_type
            return proxy_type

    @classmethod
    def create(
        cls,
        contract_cls: Type[C],
        client: httpx.AsyncClient,
        *,
        codec: Optional[Codec] = None,
        response_post_process: Optional[PostProcessor] = None,
        default_timeout: Optional[float] = None,
        trace: Optional[bool] = None,
        runner: Optional[BlockingLoopRunner] = None,
    ) -> C:
        """
        Build a proxy implementing ``contract_cls`` over ``client``.

        Raises ``ConfigurationError`` (or ``ArgumentError``) here, not on first
        call, when the contract is invalid.
        """
        dispatcher = InvocationDispatcher(
            contract_cls,
            client,
            codec=codec,
            response_post_process=response_post_process,
            default_timeout=default_timeout,
            trace=trace,
            runner=runner,
        )
        proxy_type = cls._proxy_type(contract_cls, dispatcher.plans)
        return proxy_type(dispatcher)


class RestProxyFactory:
    """
    Creates proxies sharing one client, codec and post-processor.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        codec: Optional[Codec] = None,
        response_post_process: Optional[PostProcessor] = None,
        **options: Any,
    ) -> None:
        self.client = client
        self.codec = codec
        self.response_post_process = response_post_process
        self.options = options

    def create(self, contract_cls: Type[C]) -> C:
        return RestProxy.create(
            contract_cls,
            self.client,
            codec=self.codec,
            response_post_process=self.response_post_process,
            **self.options,
        )


def create_transport_client(base_url: Optional[str] = None, **kwargs: Any) -> httpx.AsyncClient:
    """
    Create an ``httpx.AsyncClient`` suited to EasyRest proxies.

    The client's own timeout is disabled so the per-request deadline is the
    effective limit. Extra keyword arguments go to ``httpx.AsyncClient``.
    """
    headers = httpx.Headers(kwargs.pop("headers", None))
    headers.setdefault("User-Agent", get_config().user_agent)
    kwargs.setdefault("timeout", None)
    if base_url is not None:
        kwargs["base_url"] = base_url
    return httpx.AsyncClient(headers=headers, **kwargs)


__all__ = ["RestProxy", "RestProxyFactory", "create_transport_client"]
