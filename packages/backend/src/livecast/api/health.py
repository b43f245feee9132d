"""Health and status endpoints.

Learn: /health checks dependencies (storage, Redis) for load balancers.
/status reports what the realtime layer is doing: how many viewers are
connected and in which rooms.
"""

from fastapi import APIRouter, Depends

from livecast import __version__
from livecast.api.deps import get_config, get_registry, get_storage
from livecast.config import Settings
from livecast.realtime.registry import ConnectionRegistry
from livecast.storage import Storage

router = APIRouter()


@router.get("/health")
async def health_check(
    storage: Storage = Depends(get_storage),
    config: Settings = Depends(get_config),
):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await storage.ping()
        checks["storage"] = "ok"
    except Exception as e:
        checks["storage"] = f"error: {e}"

    if not config.redis_url:
        checks["redis"] = "disabled"
    else:
        try:
            from livecast.redis_pool import get_redis

            await get_redis().ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        v in ("ok", "disabled") for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks}


@router.get("/status")
async def server_status(
    registry: ConnectionRegistry = Depends(get_registry),
    config: Settings = Depends(get_config),
):
    """Viewer connection counts. WebSockets share the HTTP port."""
    return {
        "server": "running",
        "connectedClients": registry.total(),
        "wsPort": "same as http",
        "httpPort": config.port,
        "rooms": {str(room_id): count for room_id, count in registry.rooms().items()},
    }
