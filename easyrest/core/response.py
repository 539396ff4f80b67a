#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Response adaptation for EasyRest.

Converts the transport's raw response into the shape a contract method
declares: nothing, the raw response, an open byte stream, or a decoded value.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import inspect
import threading
import weakref
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterator, Optional

import httpx

from .contract import ByteStream
from .data.codecs import Codec
from .utils.async_helpers import BlockingLoopRunner
from .utils.concurrency import CancellationToken, run_with_cancellation
from .utils.exceptions import OperationCancelledError, RequestCancelledError, ResponseError

PostProcessor = Callable[[httpx.Response], Any]
Send = Callable[[], Awaitable[httpx.Response]]
DecodeContinuation = Callable[[Codec, httpx.Response, CancellationToken], Awaitable[Any]]


def ensure_success_status(response: httpx.Response) -> None:
    """
    Default post-processor: reject any non-2xx response.
    """
    if response.is_success:
        return
    raise ResponseError(
        "Response status code {0} ({1}) does not indicate success".format(
            response.status_code, response.reason_phrase
        ),
        response=response,
        status_code=response.status_code,
    )


async def _read_body(response: httpx.Response, token: CancellationToken) -> bytes:
    try:
        return await run_with_cancellation(response.aread(), token)
    except OperationCancelledError:
        raise RequestCancelledError(
            "Reading the response body was cancelled by the caller", url=str(response.request.url)
        ) from None
    finally:
        await response.aclose()


async def _next_chunk(iterator: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


async def _pull_chunk(iterator: AsyncIterator[bytes], token: CancellationToken, url: str) -> Optional[bytes]:
    try:
        return await run_with_cancellation(_next_chunk(iterator), token)
    except OperationCancelledError:
        raise RequestCancelledError("Streaming the response body was cancelled by the caller", url=url) from None


async def _close_iterator(iterator: Any) -> None:
    await iterator.aclose()


class AsyncByteStream(ByteStream):
    """
    Open response body handed to the caller for incremental reading.

    Iterate it with ``async for``, read it whole with ``aread()``, and close it
    with ``aclose()`` or ``async with``. Exhausting the iteration closes the
    underlying response.
    """

    def __init__(
        self,
        response: httpx.Response,
        cancellation_token: CancellationToken = CancellationToken.NONE,
        chunk_size: Optional[int] = None,
    ) -> None:
        self.response = response
        self.cancellation_token = cancellation_token
        self.chunk_size = chunk_size

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    async def __aiter__(self) -> AsyncIterator[bytes]:
        iterator = self.response.aiter_bytes(self.chunk_size)
        url = str(self.response.request.url)
        try:
            while True:
                chunk = await _pull_chunk(iterator, self.cancellation_token, url)
                if chunk is None:
                    return
                yield chunk
        finally:
            await self.response.aclose()

    async def aread(self) -> bytes:
        return await _read_body(self.response, self.cancellation_token)

    async def aclose(self) -> None:
        await self.response.aclose()

    async def __aenter__(self) -> "AsyncByteStream":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()


class BlockingByteStream(ByteStream):
    """
    Blocking view of an ``AsyncByteStream`` whose reads run on the
    dispatcher's runner loop.

    Abandoning an iteration early closes the response.
    """

    def __init__(self, stream: AsyncByteStream, runner: BlockingLoopRunner) -> None:
        self._stream = stream
        self._runner = runner

    @property
    def headers(self) -> httpx.Headers:
        return self._stream.headers

    def __iter__(self) -> Iterator[bytes]:
        iterator = self._stream.__aiter__()
        try:
            while True:
                chunk = self._runner.run(_next_chunk(iterator))
                if chunk is None:
                    return
                yield chunk
        finally:
            self._runner.run(_close_iterator(iterator))

    def read(self) -> bytes:
        return self._runner.run(self._stream.aread())

    def close(self) -> None:
        self._runner.run(self._stream.aclose())

    def __enter__(self) -> "BlockingByteStream":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class RunnerBoundStream(httpx.SyncByteStream):
    """
    Synchronous body of a raw response opened on a runner loop.

    Installed as ``response.stream`` so blocking callers can use httpx's own
    ``read()``, ``iter_bytes()``, ``iter_lines()`` and ``close()``.
    """

    def __init__(
        self,
        body: httpx.AsyncByteStream,
        runner: BlockingLoopRunner,
        cancellation_token: CancellationToken = CancellationToken.NONE,
        url: str = "",
    ) -> None:
        self._body = body
        self._runner = runner
        self._token = cancellation_token
        self._url = url

    def __iter__(self) -> Iterator[bytes]:
        iterator = self._body.__aiter__()
        try:
            while True:
                chunk = self._runner.run(_pull_chunk(iterator, self._token, self._url))
                if chunk is None:
                    return
                yield chunk
        finally:
            self._runner.run(_close_iterator(iterator))

    def close(self) -> None:
        self._runner.run(self._body.aclose())


def bind_to_runner(
    response: httpx.Response,
    runner: BlockingLoopRunner,
    cancellation_token: CancellationToken = CancellationToken.NONE,
) -> httpx.Response:
    """
    Make an open raw response readable from blocking code.

    The body stays unread; it is pulled through ``runner`` when the caller
    reads it.
    """
    if isinstance(response.stream, httpx.AsyncByteStream) and not isinstance(response.stream, httpx.SyncByteStream):
        response.stream = RunnerBoundStream(response.stream, runner, cancellation_token, str(response.request.url))
    return response


class DecoderCache:
    """
    Process-wide cache of decode continuations, one per (codec, value type).

    Entries are held per codec through weak references and disappear with
    their codec. Building a continuation is pure, so two threads racing on
    first use may both build one; the first stored wins.
    """

    def __init__(self) -> None:
        self._by_codec: "weakref.WeakKeyDictionary[Any, Dict[Any, DecodeContinuation]]" = (
            weakref.WeakKeyDictionary()
        )
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return sum(len(continuations) for continuations in list(self._by_codec.values()))

    @staticmethod
    def _build(codec: Codec, value_type: Any) -> DecodeContinuation:
        prepare = getattr(codec, "adapter_for", None)
        if callable(prepare):
            prepare(value_type)

        async def decode(codec: Codec, response: httpx.Response, token: CancellationToken) -> Any:
            data = await _read_body(response, token)
            return codec.deserialize(data, value_type)

        return decode

    def continuation_for(self, codec: Codec, value_type: Any) -> DecodeContinuation:
        try:
            hash(value_type)
            continuations = self._by_codec.get(codec)
        except TypeError:
            # Unhashable types and codecs without weak reference support are not cached.
            return self._build(codec, value_type)
        if continuations is not None:
            continuation = continuations.get(value_type)
            if continuation is not None:
                return continuation

        continuation = self._build(codec, value_type)
        with self._guard:
            return self._by_codec.setdefault(codec, {}).setdefault(value_type, continuation)


DECODERS = DecoderCache()


class ResponseAdapter:
    """
    Runs the transport send and adapts its response per declared shape.

    ``post_process`` is applied to every shape but the raw response; a
    rejected response is closed before the error propagates.
    """

    def __init__(
        self,
        codec: Codec,
        post_process: Optional[PostProcessor] = None,
        decoders: Optional[DecoderCache] = None,
    ) -> None:
        self.codec = codec
        self.post_process = post_process or ensure_success_status
        self.decoders = decoders or DECODERS

    async def _send_checked(self, send: Send) -> httpx.Response:
        response = await send()
        try:
            outcome = self.post_process(response)
            if inspect.isawaitable(outcome):
                await outcome
        except BaseException:
            await response.aclose()
            raise
        return response

    async def complete(self, send: Send, cancellation_token: CancellationToken) -> None:
        response = await self._send_checked(send)
        await response.aclose()

    async def raw(self, send: Send, cancellation_token: CancellationToken) -> httpx.Response:
        """Return once headers arrive; the caller owns the open body."""
        return await send()

    async def stream(self, send: Send, cancellation_token: CancellationToken) -> AsyncByteStream:
        response = await self._send_checked(send)
        return AsyncByteStream(response, cancellation_token)

    async def value(self, send: Send, cancellation_token: CancellationToken, value_type: Any) -> Any:
        decode = self.decoders.continuation_for(self.codec, value_type)
        response = await self._send_checked(send)
        return await decode(self.codec, response, cancellation_token)
