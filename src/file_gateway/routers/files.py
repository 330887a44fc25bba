import logging

from fastapi import (
    APIRouter,
    Depends,
    Path,
    Request,
    Response,
    status
)
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from file_gateway.adapters.storage import BaseStorage, StorageError
from file_gateway.delivery import DeliveryPath, content_type_for, select_delivery_path
from file_gateway.dependencies import (
    get_app_id,
    get_settings_from_app,
    get_storage,
    require_master_key,
)
from file_gateway.errors import FileNotFound, InvalidFileName
from file_gateway.files import (
    create_file,
    delete_file,
    extract_multipart_payload,
    validate_upload,
)
from file_gateway.schemas import ErrorResponse, FileInfo
from file_gateway.settings import Settings
from file_gateway.streaming import serve_range

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/files/{app_id}/{filename}",
    responses={
        status.HTTP_206_PARTIAL_CONTENT: {"description": "The requested byte range"},
        status.HTTP_404_NOT_FOUND: {"description": "File not found."},
        416: {"model": ErrorResponse},
    },
)
async def get_file(
    request: Request,
    app_id: str = Path(..., description="The application the file belongs to"),
    filename: str = Path(..., description="The stored filename"),
    settings: Settings = Depends(get_settings_from_app),
    storage: BaseStorage = Depends(get_storage),
):
    """
    Download a file.

    With a `Range` header and a backend that supports partial reads the
    requested window is streamed as 206 Partial Content; otherwise the
    whole file is returned.
    """
    content_type = content_type_for(filename)
    range_header = request.headers.get("range")

    if select_delivery_path(bool(range_header), storage) is DeliveryPath.STREAM:
        try:
            handle = await run_in_threadpool(storage.get_file_stream, app_id, filename)
        except Exception as e:
            logger.info("Stream lookup failed for %s/%s: %s", app_id, filename, e)
            raise FileNotFound("File not found.") from e
        try:
            return await serve_range(
                handle,
                range_header,
                content_type,
                buffer_size=settings.range_buffer_size,
                probe_workaround=settings.range_probe_workaround,
            )
        except (StorageError, OSError) as e:
            logger.info("Could not seek %s/%s: %s", app_id, filename, e)
            raise FileNotFound("File not found.") from e

    try:
        data = await run_in_threadpool(storage.get_file_data, app_id, filename)
    except Exception as e:
        logger.info("Lookup failed for %s/%s: %s", app_id, filename, e)
        raise FileNotFound("File not found.") from e

    return Response(
        content=data,
        status_code=status.HTTP_200_OK,
        media_type=content_type,
        headers={"Content-Length": str(len(data))},
    )


@router.post("/files", responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}})
async def upload_file_without_name():
    raise InvalidFileName("Filename not provided.")


@router.post(
    "/files/{filename}",
    status_code=status.HTTP_201_CREATED,
    response_model=FileInfo,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
async def upload_file(
    request: Request,
    filename: str = Path(..., description="The name to store the file under"),
    app_id: str = Depends(get_app_id),
    settings: Settings = Depends(get_settings_from_app),
    storage: BaseStorage = Depends(get_storage),
):
    """Store the raw request body as a file."""
    body = await request.body()
    validate_upload(filename, body)

    result = await create_file(
        storage,
        settings,
        app_id,
        filename,
        body,
        content_type=request.headers.get("content-type"),
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=result.model_dump(),
        headers={"Location": result.url},
    )


@router.post(
    "/wxfiles/{filename}",
    response_model=FileInfo,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
async def upload_multipart_file(
    request: Request,
    filename: str = Path(..., description="The name to store the file under"),
    app_id: str = Depends(get_app_id),
    settings: Settings = Depends(get_settings_from_app),
    storage: BaseStorage = Depends(get_storage),
):
    """
    Store the file carried in a multipart/form-data envelope.

    The part keyed by `filename` is used, or the fixed name some WeChat
    clients send instead.
    """
    body = await request.body()
    validate_upload(filename, body)

    data = extract_multipart_payload(body, request.headers.get("content-type"), filename)
    result = await create_file(
        storage,
        settings,
        app_id,
        filename,
        data,
        content_type=content_type_for(filename),
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=result.model_dump(),
        headers={"Location": result.url},
    )


@router.delete(
    "/files/{filename}",
    dependencies=[Depends(require_master_key)],
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
async def remove_file(
    filename: str = Path(..., description="The stored filename"),
    app_id: str = Depends(get_app_id),
    storage: BaseStorage = Depends(get_storage),
):
    """Delete a file. Requires the master key."""
    await delete_file(storage, app_id, filename)
    return Response(status_code=status.HTTP_200_OK)
