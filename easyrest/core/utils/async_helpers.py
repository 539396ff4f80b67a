#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bridge between blocking callers and EasyRest's asynchronous execution.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import asyncio
import threading
from concurrent.futures import Future as ConcurrentFuture
from typing import Any, Coroutine, Optional, TypeVar

from .exceptions import ConcurrencyBoundaryError

T = TypeVar("T")


class BlockingLoopRunner:
    """
    Persistent background event loop used by blocking-shape calls.

    Every blocking call of one dispatcher runs on the same loop, so loop-bound
    resources such as an ``httpx.AsyncClient`` connection pool stay on a single
    loop. The loop thread starts lazily on first use.
    """

    def __init__(self, name: str = "easyrest-blocking-loop") -> None:
        self._name = name
        self._guard = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        with self._guard:
            if self._loop is None or self._loop.is_closed():
                self._start()
            assert self._loop is not None
            return self._loop

    def _start(self) -> None:
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        thread = threading.Thread(target=_run, name=self._name, daemon=True)
        thread.start()
        ready.wait()
        self._loop = loop
        self._thread = thread

    def submit(self, coroutine: Coroutine[Any, Any, T]) -> "ConcurrentFuture[T]":
        """
        Schedule ``coroutine`` on the runner loop without waiting for it.
        """
        return asyncio.run_coroutine_threadsafe(coroutine, self.loop)

    def run(self, coroutine: Coroutine[Any, Any, T]) -> T:
        """
        Run ``coroutine`` on the runner loop and block until it finishes.
        """
        if self._thread is not None and threading.current_thread() is self._thread:
            coroutine.close()
            raise ConcurrencyBoundaryError(
                message="Blocking EasyRest call issued from its own runner loop",
                resource_name=self._name,
            )
        return self.submit(coroutine).result()

    def close(self) -> None:
        with self._guard:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None

        if loop is None:
            return
        if loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        if not loop.is_running() and not loop.is_closed():
            loop.close()


_DEFAULT_RUNNER: Optional[BlockingLoopRunner] = None
_DEFAULT_RUNNER_LOCK = threading.Lock()


def get_default_runner() -> BlockingLoopRunner:
    """
    Return the process-wide runner shared by dispatchers not given their own.
    """
    global _DEFAULT_RUNNER

    with _DEFAULT_RUNNER_LOCK:
        if _DEFAULT_RUNNER is None:
            _DEFAULT_RUNNER = BlockingLoopRunner()
        return _DEFAULT_RUNNER
