import pytest

from file_gateway.adapters.storage import BaseStorage, LocalStorage
from file_gateway.delivery import DeliveryPath, content_type_for, select_delivery_path


class StreamingButWholeBlobStorage(BaseStorage):
    """Can open a stream but does not declare true partial reads."""

    def get_file_stream(self, app_id, filename):
        raise AssertionError("must not be used for ranges")


@pytest.fixture
def local_storage(tmp_path) -> LocalStorage:
    return LocalStorage(str(tmp_path))


def test_range_on_partial_read_backend_streams(local_storage):
    assert select_delivery_path(True, local_storage) is DeliveryPath.STREAM


def test_no_range_is_buffered(local_storage):
    assert select_delivery_path(False, local_storage) is DeliveryPath.BUFFERED


def test_stream_accessor_alone_is_not_enough():
    assert select_delivery_path(True, StreamingButWholeBlobStorage()) is DeliveryPath.BUFFERED


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("clip.mp4", "video/mp4"),
        ("photo.jpg", "image/jpeg"),
        ("notes.txt", "text/plain"),
        ("no-extension", "application/octet-stream"),
    ],
)
def test_content_type_for(filename, expected):
    assert content_type_for(filename) == expected
