#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Cooperative cancellation primitives for EasyRest.

A ``CancellationTokenSource`` owns the right to cancel; the ``CancellationToken``
it hands out only observes. Sources may be linked to parent tokens so that a
derived source fires when either it or any parent is cancelled.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import asyncio
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from .exceptions import OperationCancelledError

T = TypeVar("T")


class CancellationRegistration:
    """
    Handle returned by ``CancellationToken.register``; disposing it removes
    the callback if it has not fired yet.
    """

    def __init__(self, source: Optional["CancellationTokenSource"], key: int) -> None:
        self._source = source
        self._key = key

    def dispose(self) -> None:
        if self._source is not None:
            self._source._unregister(self._key)
            self._source = None

    def __enter__(self) -> "CancellationRegistration":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.dispose()


class CancellationToken:
    """
    Read-only view on a cancellation source.

    ``CancellationToken.NONE`` can never be cancelled.
    """

    NONE: "CancellationToken"

    def __init__(self, source: Optional["CancellationTokenSource"] = None) -> None:
        self._source = source

    @property
    def can_be_cancelled(self) -> bool:
        return self._source is not None

    @property
    def is_cancellation_requested(self) -> bool:
        return self._source is not None and self._source.is_cancelled

    def raise_if_cancellation_requested(self) -> None:
        if self.is_cancellation_requested:
            raise OperationCancelledError(token=self)

    def register(self, callback: Callable[[], None]) -> CancellationRegistration:
        """
        Run ``callback`` once when cancellation is requested.

        The callback runs on the thread that cancels, or immediately if the
        token is already cancelled.
        """
        if self._source is None:
            return CancellationRegistration(None, 0)
        return self._source._register(callback)

    def __repr__(self) -> str:
        if self._source is None:
            return "CancellationToken.NONE"
        return "CancellationToken(cancelled={0})".format(self.is_cancellation_requested)


CancellationToken.NONE = CancellationToken()


class CancellationTokenSource:
    """
    Thread-safe source of cancellation.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._cancelled = False
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_key = 1
        self._links: List[CancellationRegistration] = []
        self.token = CancellationToken(self)

    @classmethod
    def create_linked(cls, *tokens: CancellationToken) -> "CancellationTokenSource":
        """
        Create a source that is also cancelled when any of ``tokens`` is.
        """
        source = cls()
        for token in tokens:
            source._links.append(token.register(source.cancel))
        return source

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        with self._guard:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            callback()

    def close(self) -> None:
        """
        Detach from parent tokens and drop pending callbacks.
        """
        for link in self._links:
            link.dispose()
        self._links.clear()
        with self._guard:
            self._callbacks.clear()

    def _register(self, callback: Callable[[], None]) -> CancellationRegistration:
        with self._guard:
            if not self._cancelled:
                key = self._next_key
                self._next_key += 1
                self._callbacks[key] = callback
                return CancellationRegistration(self, key)

        callback()
        return CancellationRegistration(None, 0)

    def _unregister(self, key: int) -> None:
        with self._guard:
            self._callbacks.pop(key, None)

    def __enter__(self) -> "CancellationTokenSource":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


async def run_with_cancellation(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """
    Await ``awaitable`` and abort it when ``token`` fires.

    Raises ``OperationCancelledError`` if the abort was caused by the token.
    Cancellation of the awaiting task itself propagates as
    ``asyncio.CancelledError``.
    """
    if not token.can_be_cancelled:
        return await awaitable

    if token.is_cancellation_requested:
        # Close a not-yet-started coroutine so it does not warn on collection.
        close = getattr(awaitable, "close", None)
        if callable(close):
            close()
        raise OperationCancelledError(token=token)

    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(awaitable)

    def _abort() -> None:
        if not loop.is_closed():
            loop.call_soon_threadsafe(task.cancel)

    registration = token.register(_abort)
    try:
        return await task
    except asyncio.CancelledError:
        if token.is_cancellation_requested:
            raise OperationCancelledError(token=token) from None
        raise
    finally:
        registration.dispose()
