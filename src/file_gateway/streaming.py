"""
Partial-content streaming for ``Range: bytes=start-end`` requests.

``serve_range`` resolves the requested window, seeks the backend handle and
answers 206 with a body that drains the handle until exactly the announced
number of bytes has been forwarded. The handle is released on every exit
path: completion, backend failure and client disconnect.
"""

import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from fastapi import status
from fastapi.responses import StreamingResponse
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool
from starlette.types import Receive, Scope, Send

from file_gateway.adapters.storage import FileStream
from file_gateway.errors import IncompleteTransfer, RangeNotSatisfiable

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1024 * 1024  # 1 MiB
DIGITS_PATTERN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ByteRange:
    """Resolved window of a range request; ``end`` is inclusive."""

    start: int
    end: int
    total_length: int
    content_length: int

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total_length}"


def _parse_position(value: str, range_header: str, total_length: int) -> Optional[int]:
    value = value.strip()
    if not value:
        return None
    if not DIGITS_PATTERN.fullmatch(value):
        raise RangeNotSatisfiable(f"Invalid range: {range_header}", total_length)
    return int(value)


def _is_probe_window(start: int, end: int) -> bool:
    # Some media players probe with bytes=0-2 and expect a single byte back
    return start == 0 and end == 2


def resolve_range(
    range_header: str,
    total_length: int,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    probe_workaround: bool = True,
) -> ByteRange:
    """
    Turn a ``Range`` header into the window that will be served.

    A missing start means 0. A missing end serves at most ``buffer_size``
    bytes past the start, or the rest of the blob when that is shorter. A
    single-byte request is widened to an open-ended one from offset 0.

    :raises RangeNotSatisfiable: for a unit other than bytes, several
        ranges, non-numeric positions, ``start > end`` or a start past the blob.
    """
    unit, separator, positions = range_header.strip().partition("=")
    if not separator or unit.strip().lower() != "bytes" or "-" not in positions:
        raise RangeNotSatisfiable(f"Unsupported range: {range_header}", total_length)

    first, _, last = positions.partition("-")
    start = _parse_position(first, range_header, total_length)
    end = _parse_position(last, range_header, total_length)

    if start is None:
        start = 0
    if start >= total_length:
        raise RangeNotSatisfiable(f"Range starts past the end of the file: {range_header}", total_length)
    if end is not None:
        if end < start:
            raise RangeNotSatisfiable(f"Range ends before it starts: {range_header}", total_length)
        end = min(end, total_length - 1)

    requested_end = total_length - 1 if end is None else end
    if requested_end - start + 1 == 1:
        start, end = 0, None

    if end is None:
        if (total_length - 1) - start < buffer_size:
            end = total_length - 1
        else:
            end = start + buffer_size

    content_length = end - start + 1
    if probe_workaround and _is_probe_window(start, end):
        content_length = 1

    return ByteRange(start=start, end=end, total_length=total_length, content_length=content_length)


async def iter_range(handle: FileStream, byte_range: ByteRange) -> AsyncIterator[bytes]:
    """
    Forward ``byte_range.content_length`` bytes from an already seeked handle.

    Chunks are passed through whole while they under-fill the window; the
    chunk that reaches it is sliced so the total is exact.
    """
    remaining = byte_range.content_length
    try:
        async for chunk in iterate_in_threadpool(handle.iter_chunks()):
            if not chunk:
                continue
            if len(chunk) < remaining:
                yield chunk
                remaining -= len(chunk)
            else:
                yield chunk[:remaining]
                remaining = 0
                break
        if remaining:
            raise IncompleteTransfer(
                f"Stream ended {remaining} bytes short of {byte_range.content_range}"
            )
        logger.debug("Served %s", byte_range.content_range)
    finally:
        handle.close()


class RangeStreamingResponse(StreamingResponse):
    """Streaming response that releases its storage handle however it ends."""

    def __init__(self, handle: FileStream, content: AsyncIterator[bytes], **kwargs):
        super().__init__(content, **kwargs)
        self.handle = handle

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.handle.close()


async def serve_range(
    handle: FileStream,
    range_header: str,
    content_type: str,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    probe_workaround: bool = True,
) -> RangeStreamingResponse:
    """Build the 206 response for ``range_header``; the handle is seeked before any header is sent."""
    try:
        byte_range = resolve_range(range_header, handle.length, buffer_size, probe_workaround)
        await run_in_threadpool(handle.seek, byte_range.start)
    except BaseException:
        handle.close()
        raise

    return RangeStreamingResponse(
        handle,
        iter_range(handle, byte_range),
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=content_type,
        headers={
            "Content-Range": byte_range.content_range,
            "Accept-Ranges": "bytes",
            "Content-Length": str(byte_range.content_length),
        },
    )
