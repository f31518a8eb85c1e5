"""Upload progress reporting for multipart request bodies."""

from __future__ import annotations

from typing import AsyncIterator, Callable

import httpx


class UploadProgressStream(httpx.AsyncByteStream):
    """Wrap a request body stream and report how much of it has been sent.

    The callback receives an integer percentage in ``0..100``. It is called
    only when the value changes, never decreases, and always ends with 100
    once the body has been fully consumed.

    Args:
        stream: The body stream built by :mod:`httpx` (e.g. a multipart stream).
        total: Body size in bytes, from the ``Content-Length`` header.
        callback: Receives the percentage.
    """

    def __init__(
        self,
        stream: httpx.AsyncByteStream,
        total: int,
        callback: Callable[[int], None],
    ) -> None:
        self._stream = stream
        self._total = total
        self._callback = callback

    async def __aiter__(self) -> AsyncIterator[bytes]:
        sent = 0
        last = -1
        async for chunk in self._stream:
            sent += len(chunk)
            percent = min(100, sent * 100 // self._total) if self._total else 100
            if percent != last:
                last = percent
                self._callback(percent)
            yield chunk
        if last != 100:
            self._callback(100)

    async def aclose(self) -> None:
        await self._stream.aclose()
