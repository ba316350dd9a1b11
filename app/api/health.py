"""Health endpoints: liveness and readiness."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.router import get_hub
from app.services.hub import StatusHub
from app.services.srs_client import SrsUnavailableError

router = APIRouter(tags=["health"])
logger = logging.getLogger("restream.health")


@router.get("/health/live")
async def liveness():
    """Liveness: process is running. No dependencies checked."""
    return {"status": "ok"}


@router.get("/health/ready")
async def readiness(hub: StatusHub = Depends(get_hub)):
    """Readiness: SRS API (and Redis, when mirrored) are reachable."""
    errors = []
    try:
        await hub.srs.list_streams()
    except SrsUnavailableError as e:
        logger.warning("SRS readiness check failed: %s", e)
        errors.append("srs")

    if hub.mirror is not None:
        try:
            await hub.mirror.ping()
        except Exception as e:
            logger.warning("Redis readiness check failed: %s", e)
            errors.append("redis")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "errors": errors},
        )
    return {"status": "ok", "connections": hub.registry.count()}
