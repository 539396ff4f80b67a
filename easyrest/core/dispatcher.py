#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Invocation dispatcher for EasyRest.

Routes each proxied call through the request builder, the timeout governor
and the response adapter according to the method's call plan.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from .config import create_config
from .contract import CallPlan, ContractModel, ShapeKind
from .data.codecs import DEFAULT_CODEC, Codec
from .request_builder import PreparedRequest, RequestBuilder, combine_uri, is_absolute_uri
from .response import BlockingByteStream, PostProcessor, ResponseAdapter, bind_to_runner
from .timeout import TimeoutGovernor
from .utils.async_helpers import BlockingLoopRunner, get_default_runner
from .utils.concurrency import CancellationToken
from .utils.exceptions import ConfigurationError
from .utils.logger import ModernLogger, trace_logger


class InvocationDispatcher(ModernLogger):
    """
    Executes contract calls for one contract type over one transport client.

    Asynchronous plans return a coroutine from ``invoke``; blocking plans run
    on a ``BlockingLoopRunner`` and return the adapted result directly. The
    client is owned by the caller and is never closed here.
    """

    def __init__(
        self,
        contract_cls: type,
        client: httpx.AsyncClient,
        *,
        codec: Optional[Codec] = None,
        response_post_process: Optional[PostProcessor] = None,
        default_timeout: Optional[float] = None,
        trace: Optional[bool] = None,
        runner: Optional[BlockingLoopRunner] = None,
    ) -> None:
        config = create_config(default_timeout=default_timeout, trace=trace)
        ModernLogger.__init__(self, name="InvocationDispatcher", level=config.log_level)

        self.contract = ContractModel(contract_cls)
        self.plans: Mapping[str, CallPlan] = self.contract.plans()
        self.client = client
        self.codec = codec or DEFAULT_CODEC
        self.builder = RequestBuilder(self.codec)
        self.governor = TimeoutGovernor(config.default_timeout)
        self.adapter = ResponseAdapter(self.codec, response_post_process)
        self.trace = config.trace
        self._tracer = trace_logger() if self.trace else None
        self._runner = runner
        self._base_url = str(client.base_url) or None

        self._check_addresses()

    @property
    def runner(self) -> BlockingLoopRunner:
        if self._runner is None:
            self._runner = get_default_runner()
        return self._runner

    def _check_addresses(self) -> None:
        if self._base_url:
            return
        for plan in self.plans.values():
            if not is_absolute_uri(combine_uri(None, plan.namespace, plan.call.path)):
                raise ConfigurationError(
                    "Client has no base address and the method does not resolve to an absolute URL",
                    contract=self.contract.contract_name,
                    method_name=plan.method_name,
                )

    def plan_for(self, method_name: str) -> CallPlan:
        plan = self.plans.get(method_name)
        if plan is None:
            raise ConfigurationError(
                "Unknown contract method", contract=self.contract.contract_name, method_name=method_name
            )
        return plan

    def _to_transport_request(self, prepared: PreparedRequest) -> httpx.Request:
        return self.client.build_request(
            prepared.method,
            prepared.url,
            headers=prepared.headers,
            content=prepared.content,
            extensions=dict(prepared.extensions),
        )

    def _sender(self, request: httpx.Request, token: CancellationToken) -> Callable[[], Awaitable[httpx.Response]]:
        async def send() -> httpx.Response:
            response = await self.governor.execute(
                request,
                lambda: self.client.send(request, stream=True),
                token,
            )
            if self._tracer is not None:
                self._tracer.debug("%s %s -> %d", request.method, request.url, response.status_code)
            return response

        return send

    async def _execute(self, plan: CallPlan, request: httpx.Request, token: CancellationToken) -> Any:
        shape = plan.return_shape
        send = self._sender(request, token)

        if shape.kind is ShapeKind.VOID:
            return await self.adapter.complete(send, token)
        if shape.kind is ShapeKind.RAW_RESPONSE:
            return await self.adapter.raw(send, token)
        if shape.kind is ShapeKind.BYTE_STREAM:
            return await self.adapter.stream(send, token)
        return await self.adapter.value(send, token, shape.value_type)

    def invoke(self, method_name: str, arguments: Mapping[str, Any]) -> Any:
        """
        Execute one contract call.

        ``arguments`` maps parameter names to bound values. Building errors
        raise here, before anything is sent.
        """
        plan = self.plan_for(method_name)
        prepared = self.builder.build(plan, arguments, base_url=self._base_url)
        request = self._to_transport_request(prepared)

        if self._tracer is not None:
            self._tracer.debug("%s.%s: %s %s", self.contract.contract_name, method_name, request.method, request.url)

        coroutine = self._execute(plan, request, prepared.cancellation_token)
        if plan.return_shape.is_async:
            return coroutine

        result = self.runner.run(coroutine)
        if plan.return_shape.kind is ShapeKind.BYTE_STREAM:
            return BlockingByteStream(result, self.runner)
        if plan.return_shape.kind is ShapeKind.RAW_RESPONSE:
            return bind_to_runner(result, self.runner, prepared.cancellation_token)
        return result
