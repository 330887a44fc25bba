"""Choice between the ranged stream path and the whole-blob path for downloads."""

import mimetypes
from enum import Enum

from file_gateway.adapters.storage import BaseStorage, DEFAULT_CONTENT_TYPE


class DeliveryPath(str, Enum):
    STREAM = "stream"
    BUFFERED = "buffered"


def select_delivery_path(has_range_header: bool, storage: BaseStorage) -> DeliveryPath:
    """
    Stream only when a range is asked for and the backend declares true partial reads.

    Backends without the flag may still be able to open a stream, but they
    only guarantee whole-blob semantics, so they always get the buffered path.
    """
    if has_range_header and getattr(storage, "supports_partial_read", False):
        return DeliveryPath.STREAM
    return DeliveryPath.BUFFERED


def content_type_for(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE
