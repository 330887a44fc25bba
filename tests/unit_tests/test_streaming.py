import pytest
from starlette.requests import ClientDisconnect

from file_gateway.adapters.storage import FileStream
from file_gateway.errors import IncompleteTransfer, RangeNotSatisfiable
from file_gateway.streaming import ByteRange, iter_range, resolve_range, serve_range

BUFFER_SIZE = 1024 * 1024


class FragmentedStream(FileStream):
    """In-memory handle that hands its data out in small fragments."""

    def __init__(self, data: bytes, fragment_size: int = 7, fail_after: int = None):
        self.data = data
        self.length = len(data)
        self.fragment_size = fragment_size
        self.fail_after = fail_after
        self.offset = 0
        self.releases = 0

    def seek(self, offset: int) -> None:
        self.offset = offset

    def iter_chunks(self):
        delivered = 0
        while self.offset < self.length:
            if self.fail_after is not None and delivered >= self.fail_after:
                raise OSError("backend read failed")
            chunk = self.data[self.offset:self.offset + self.fragment_size]
            self.offset += len(chunk)
            delivered += len(chunk)
            yield chunk

    def _release(self) -> None:
        self.releases += 1


async def collect(iterator) -> bytes:
    return b"".join([chunk async for chunk in iterator])


def test_resolve_range__explicit_window():
    byte_range = resolve_range("bytes=200-299", 1000)
    assert byte_range == ByteRange(start=200, end=299, total_length=1000, content_length=100)
    assert byte_range.content_range == "bytes 200-299/1000"


def test_resolve_range__open_end_capped_at_buffer_size():
    byte_range = resolve_range("bytes=500-", 2_000_000, buffer_size=BUFFER_SIZE)
    assert byte_range.start == 500
    assert byte_range.end == 500 + BUFFER_SIZE
    assert byte_range.content_length == BUFFER_SIZE + 1


def test_resolve_range__open_end_short_tail_serves_rest():
    byte_range = resolve_range("bytes=500-", 1000, buffer_size=BUFFER_SIZE)
    assert (byte_range.start, byte_range.end, byte_range.content_length) == (500, 999, 500)


def test_resolve_range__missing_start_means_zero():
    byte_range = resolve_range("bytes=-99", 1000)
    assert (byte_range.start, byte_range.end) == (0, 99)


@pytest.mark.parametrize("header", ["bytes=5-5", "bytes=0-0", "bytes=999-"])
def test_resolve_range__single_byte_widened_from_zero(header):
    byte_range = resolve_range(header, 1000, buffer_size=BUFFER_SIZE)
    assert (byte_range.start, byte_range.end, byte_range.content_length) == (0, 999, 1000)


def test_resolve_range__probe_window_answers_one_byte():
    byte_range = resolve_range("bytes=0-2", 1000)
    assert byte_range.content_range == "bytes 0-2/1000"
    assert byte_range.content_length == 1


def test_resolve_range__probe_workaround_can_be_disabled():
    assert resolve_range("bytes=0-2", 1000, probe_workaround=False).content_length == 3


def test_resolve_range__end_past_blob_is_clamped():
    byte_range = resolve_range("bytes=100-5000", 1000)
    assert (byte_range.end, byte_range.content_length) == (999, 900)


@pytest.mark.parametrize(
    "header",
    [
        "bytes=300-200",
        "bytes=1000-",
        "bytes=abc-def",
        "bytes=²-5",
        "bytes=0-³",
        "bytes=١٢-",
        "bytes=0-1,5-6",
        "items=0-10",
        "0-10",
        "bytes=10",
    ],
)
def test_resolve_range__unsatisfiable(header):
    with pytest.raises(RangeNotSatisfiable) as exc_info:
        resolve_range(header, 1000)
    assert exc_info.value.total_length == 1000


def test_resolve_range__empty_blob_is_unsatisfiable():
    with pytest.raises(RangeNotSatisfiable):
        resolve_range("bytes=0-", 0)


async def test_iter_range__many_small_fragments_complete_exactly_once():
    data = bytes(range(256)) * 4
    stream = FragmentedStream(data, fragment_size=3)
    byte_range = resolve_range("bytes=200-299", len(data))
    stream.seek(byte_range.start)

    body = await collect(iter_range(stream, byte_range))

    assert body == data[200:300]
    assert stream.releases == 1
    assert stream.closed


async def test_iter_range__slices_the_final_fragment():
    data = b"0123456789" * 10
    stream = FragmentedStream(data, fragment_size=64)
    byte_range = resolve_range("bytes=10-19", len(data))
    stream.seek(byte_range.start)

    assert await collect(iter_range(stream, byte_range)) == b"0123456789"
    assert stream.releases == 1


async def test_iter_range__short_stream_raises_and_releases():
    stream = FragmentedStream(b"x" * 50)
    byte_range = ByteRange(start=0, end=99, total_length=100, content_length=100)

    with pytest.raises(IncompleteTransfer):
        await collect(iter_range(stream, byte_range))
    assert stream.releases == 1


async def test_iter_range__backend_failure_propagates_and_releases():
    stream = FragmentedStream(b"x" * 1000, fragment_size=10, fail_after=30)
    byte_range = resolve_range("bytes=0-499", 1000)

    with pytest.raises(OSError):
        await collect(iter_range(stream, byte_range))
    assert stream.releases == 1


async def test_iter_range__early_close_releases_handle():
    stream = FragmentedStream(b"x" * 1000, fragment_size=10)
    iterator = iter_range(stream, resolve_range("bytes=0-499", 1000))

    assert await iterator.__anext__() == b"x" * 10
    await iterator.aclose()

    assert stream.releases == 1


async def test_serve_range__headers_and_seek():
    data = bytes(range(256)) * 4
    stream = FragmentedStream(data)

    response = await serve_range(stream, "bytes=200-299", "video/mp4")

    assert response.status_code == 206
    assert stream.offset == 200
    assert response.headers["content-range"] == "bytes 200-299/1024"
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["content-length"] == "100"
    assert response.headers["content-type"] == "video/mp4"
    assert await collect(response.body_iterator) == data[200:300]
    assert stream.releases == 1


async def test_serve_range__unsatisfiable_releases_handle():
    stream = FragmentedStream(b"x" * 10)

    with pytest.raises(RangeNotSatisfiable):
        await serve_range(stream, "bytes=50-60", "text/plain")
    assert stream.releases == 1


async def test_range_response__failed_send_releases_handle():
    stream = FragmentedStream(b"x" * 1000, fragment_size=10)
    response = await serve_range(stream, "bytes=0-499", "video/mp4")
    sent = []

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message):
        if message["type"] == "http.response.body" and sent:
            raise OSError("connection reset by peer")
        sent.append(message)

    scope = {"type": "http", "asgi": {"spec_version": "2.4"}}
    with pytest.raises(ClientDisconnect):
        await response(scope, receive, send)

    assert sent[0]["status"] == 206
    assert stream.releases == 1
    assert stream.closed


async def test_range_response__client_disconnect_releases_handle():
    stream = FragmentedStream(b"x" * 1000, fragment_size=10)
    response = await serve_range(stream, "bytes=0-499", "video/mp4")
    sent = []

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    await response({"type": "http"}, receive, send)

    body = b"".join(message.get("body", b"") for message in sent)
    assert len(body) < 500
    assert stream.releases == 1
    assert stream.closed
