from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring API status and storage readiness.

    Returns the deployment mode and which storage backend is serving requests.
    """
    settings = request.app.state.settings
    storage = getattr(request.app.state, "storage", None)

    health_status = {
        "status": "ok",
        "deployment_mode": settings.deployment_mode,
        "components": {
            "api": "ready",
            "storage": "ready" if storage is not None else "unavailable",
        },
        "partial_reads": bool(getattr(storage, "supports_partial_read", False)),
    }
    if storage is None:
        health_status["status"] = "degraded"

    return health_status
