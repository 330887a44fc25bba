"""Error types of the gateway and the FastAPI handlers that render them."""

import logging

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

logger = logging.getLogger(__name__)

OBJECT_NOT_FOUND = 101
INVALID_CONTENT_TYPE = 107
INVALID_FILE_NAME = 122
FILE_SAVE_ERROR = 130
FILE_DELETE_ERROR = 153
RANGE_NOT_SATISFIABLE = 416


class FileGatewayError(Exception):
    """Base class for errors reported to clients as ``{"code", "error"}``."""

    code = FILE_SAVE_ERROR
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidFileName(FileGatewayError):
    code = INVALID_FILE_NAME


class FileSaveError(FileGatewayError):
    code = FILE_SAVE_ERROR


class FileTooLarge(FileGatewayError):
    code = FILE_SAVE_ERROR
    status_code = 413


class NoFileDataFound(FileGatewayError):
    code = FILE_SAVE_ERROR


class MalformedContentType(FileGatewayError):
    code = INVALID_CONTENT_TYPE


class FileDeleteError(FileGatewayError):
    code = FILE_DELETE_ERROR


class FileNotFound(FileGatewayError):
    code = OBJECT_NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class RangeNotSatisfiable(FileGatewayError):
    code = RANGE_NOT_SATISFIABLE
    status_code = 416

    def __init__(self, message: str, total_length: int):
        super().__init__(message)
        self.total_length = total_length


class IncompleteTransfer(Exception):
    """The backend stream ended before the requested range was delivered."""


async def handle_gateway_errors(request: Request, exc: FileGatewayError):
    if isinstance(exc, FileNotFound):
        return PlainTextResponse("File not found.", status_code=exc.status_code)

    headers = None
    if isinstance(exc, RangeNotSatisfiable):
        headers = {"Content-Range": f"bytes */{exc.total_length}"}

    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "error": exc.message},
        headers=headers,
    )


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=422,
        content={
            "detail": [
                {
                    "msg": error["msg"],
                    "input": error["input"],
                }
                for error in errors
            ]
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
