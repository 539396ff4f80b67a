#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Request-scoped deadlines for EasyRest.

The governor enforces a per-request deadline independent of the transport's
own timeout, which should be disabled on the transport client for the
governor to be the effective limit (``create_transport_client`` does so).

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import asyncio
import math
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from .config import DEFAULT_TIMEOUT_SECONDS
from .utils.concurrency import CancellationToken, CancellationTokenSource, run_with_cancellation
from .utils.exceptions import OperationCancelledError, RequestCancelledError, RequestTimeoutError
from .utils.logger import ModernLogger

T = TypeVar("T")

INFINITE_TIMEOUT = math.inf
TIMEOUT_EXTENSION = "easyrest.timeout"


def set_request_timeout(request: httpx.Request, timeout: Optional[float]) -> None:
    """
    Attach a deadline override (seconds, or ``INFINITE_TIMEOUT``) to a request.

    ``None`` removes a previously attached override.
    """
    if timeout is None:
        request.extensions.pop(TIMEOUT_EXTENSION, None)
        return
    if timeout <= 0:
        raise ValueError("timeout must be positive")
    request.extensions[TIMEOUT_EXTENSION] = float(timeout)


def get_request_timeout(request: httpx.Request) -> Optional[float]:
    return request.extensions.get(TIMEOUT_EXTENSION)


class TimeoutGovernor(ModernLogger):
    """
    Wraps one transport send with a deadline.

    Only one timer is armed per call; it is disarmed when the send finishes,
    whatever the outcome.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        ModernLogger.__init__(self, name="TimeoutGovernor")
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self.default_timeout = default_timeout

    def resolve_timeout(self, request: httpx.Request) -> float:
        override = get_request_timeout(request)
        return self.default_timeout if override is None else override

    async def execute(
        self,
        request: httpx.Request,
        send: Callable[[], Awaitable[T]],
        cancellation_token: CancellationToken = CancellationToken.NONE,
    ) -> T:
        """
        Run ``send()`` under the request's deadline and the caller's token.

        Raises ``RequestTimeoutError`` when the deadline fired first and
        ``RequestCancelledError`` when the caller's token did.
        """
        timeout = self.resolve_timeout(request)
        url = str(request.url)

        if timeout == INFINITE_TIMEOUT:
            try:
                return await run_with_cancellation(send(), cancellation_token)
            except OperationCancelledError:
                raise RequestCancelledError("Request was cancelled by the caller", url=url) from None

        loop = asyncio.get_running_loop()
        with CancellationTokenSource.create_linked(cancellation_token) as deadline:
            timer = loop.call_later(timeout, deadline.cancel)
            try:
                return await run_with_cancellation(send(), deadline.token)
            except OperationCancelledError:
                if cancellation_token.is_cancellation_requested:
                    raise RequestCancelledError("Request was cancelled by the caller", url=url) from None
                self.debug("Request to %s timed out after %.3fs", url, timeout)
                raise RequestTimeoutError(
                    "Request timed out after {0:g} seconds".format(timeout),
                    url=url,
                    timeout=timeout,
                ) from None
            finally:
                timer.cancel()
