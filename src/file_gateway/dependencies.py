import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from file_gateway.adapters.storage import BaseStorage
from file_gateway.settings import Settings


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> BaseStorage:
    """Storage backend built for this app in `create_app`."""
    return request.app.state.storage


def get_app_id(
    request: Request,
    x_application_id: Optional[str] = Header(None),
) -> str:
    return x_application_id or request.app.state.settings.app_id


def require_master_key(
    request: Request,
    x_master_key: Optional[str] = Header(None),
) -> None:
    """Only callers presenting the configured master key may go further."""
    master_key = request.app.state.settings.master_key
    if not master_key or not x_master_key or not hmac.compare_digest(master_key, x_master_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="unauthorized: master key is required",
        )
