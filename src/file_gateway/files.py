"""
Upload and delete orchestration.

Validation happens here, before any backend call. Backend failures are
logged with their cause and surfaced as generic ``FileSaveError`` /
``FileDeleteError`` so nothing storage-specific leaks to clients.
"""

import logging
import re
import uuid
from typing import Optional
from urllib.parse import quote

from starlette.concurrency import run_in_threadpool

from file_gateway.adapters.storage import BaseStorage, BlobNotFound
from file_gateway.errors import (
    FileDeleteError,
    FileSaveError,
    FileTooLarge,
    InvalidFileName,
    NoFileDataFound,
)
from file_gateway.multipart import decode_multipart
from file_gateway.schemas import FileInfo
from file_gateway.settings import Settings

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 128
FILENAME_PATTERN = re.compile(r"[_a-zA-Z0-9][a-zA-Z0-9@. ~_-]*")

# WeChat clients on real phones sometimes name the uploaded part like this
# whatever the actual filename is
FALLBACK_FIELD_NAME = "wx-file.jpg"


def validate_filename(filename: Optional[str]) -> None:
    if not filename:
        raise InvalidFileName("Filename not provided.")
    if len(filename) > MAX_FILENAME_LENGTH:
        raise InvalidFileName("Filename too long.")
    if not FILENAME_PATTERN.fullmatch(filename):
        raise InvalidFileName("Filename contains invalid characters.")


def validate_upload(filename: Optional[str], body: Optional[bytes]) -> None:
    if not body:
        raise InvalidFileName("Invalid file upload.")
    validate_filename(filename)


def extract_multipart_payload(body: bytes, content_type: Optional[str], filename: str) -> bytes:
    """Pick the uploaded file out of a multipart envelope."""
    parts = decode_multipart(body, content_type)
    data = parts.get(filename)
    if data is None:
        data = parts.get(FALLBACK_FIELD_NAME)
    if data is None:
        raise NoFileDataFound("Bad multipart body parsing: no data file found!")
    return data


def file_url(settings: Settings, app_id: str, filename: str) -> str:
    return f"{settings.public_server_url}/files/{quote(app_id)}/{quote(filename)}"


async def create_file(
    storage: BaseStorage,
    settings: Settings,
    app_id: str,
    filename: str,
    data: bytes,
    content_type: Optional[str] = None,
) -> FileInfo:
    if len(data) > settings.max_upload_size:
        raise FileTooLarge("File too large.")

    stored_name = filename if settings.preserve_file_name else f"{uuid.uuid4().hex}_{filename}"
    try:
        await run_in_threadpool(storage.create_file, app_id, stored_name, data, content_type)
    except Exception as e:
        logger.exception("Could not store %s/%s: %s", app_id, stored_name, e)
        raise FileSaveError("Could not store file.") from e

    return FileInfo(name=stored_name, url=file_url(settings, app_id, stored_name))


async def delete_file(storage: BaseStorage, app_id: str, filename: str) -> None:
    try:
        await run_in_threadpool(storage.delete_file, app_id, filename)
    except BlobNotFound as e:
        logger.info("Delete of missing file %s/%s: %s", app_id, filename, e)
        raise FileDeleteError("Could not delete file.") from e
    except Exception as e:
        logger.exception("Could not delete %s/%s: %s", app_id, filename, e)
        raise FileDeleteError("Could not delete file.") from e
