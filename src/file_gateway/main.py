from textwrap import dedent
import logging
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware

from file_gateway.adapters.storage import BaseStorage, StorageFactory
from file_gateway.errors import (
    FileGatewayError,
    handle_broad_exceptions,
    handle_gateway_errors,
    handle_pydantic_validation_errors,
)
from file_gateway.routers.files import router as files_router
from file_gateway.routers.health import router as health_router
from file_gateway.settings import Settings

# Set up logging
logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("file_gateway").setLevel(level.upper())


def create_app(settings: Optional[Settings] = None, storage: Optional[BaseStorage] = None) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="File Gateway",
        summary="Upload, stream and delete stored files",
        version="v1",
        description=dedent(
            """\
        | Endpoint | Notes |
        | --- | --- |
        | `GET /files/{app_id}/{filename}` | Honours `Range: bytes=start-end` on backends with partial reads |
        | `POST /files/{filename}` | Raw body upload |
        | `POST /wxfiles/{filename}` | multipart/form-data upload |
        | `DELETE /files/{filename}` | Requires `X-Master-Key` |
        """
        ),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length", "Location"],
    )
    app.state.settings = settings
    app.state.storage = storage or StorageFactory.get_storage(settings)
    logger.info(
        "Storage backend %s (partial reads: %s)",
        type(app.state.storage).__name__,
        app.state.storage.supports_partial_read,
    )

    app.include_router(files_router, tags=["files"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=FileGatewayError,
        handler=handle_gateway_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
