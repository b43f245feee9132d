"""FastAPI application factory.

Learn: create_app() builds every long-lived object once and parks it on
``app.state``:

  storage       — Persistence facade (database or memory backend)
  registry      — which viewer socket is in which campaign room
  broadcaster   — fans messages out to a room
  recent_events — in-memory buffer behind GET /api/events
  url_resolver  — public base URL for absolutizing asset paths
  scheduler     — the component scheduler loop

Lifespan only does I/O: open storage, connect Redis, start the scheduler,
and undo all three on shutdown. Tests that drive the app without a
lifespan (httpx ASGITransport) still get a fully wired app.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livecast import __version__
from livecast.api import api_router
from livecast.config import Settings, settings
from livecast.realtime.broadcast import Broadcaster
from livecast.realtime.registry import ConnectionRegistry
from livecast.services.event_service import RecentEvents
from livecast.services.scheduler import ComponentScheduler
from livecast.storage import Storage, build_storage
from livecast.urls import BaseUrlResolver

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    config: Settings = app.state.config
    logger.info(
        "livecast.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
        storage=config.storage_backend,
    )

    await app.state.storage.init()

    # Redis is optional; without it rate limiting is skipped.
    from livecast.redis_pool import close_redis, init_redis
    if config.redis_url:
        try:
            await init_redis(config.redis_url)
            logger.info("livecast.redis_connected", url=config.redis_url)
        except Exception as e:
            logger.warning("livecast.redis_unavailable", error=str(e))

    scheduler: ComponentScheduler = app.state.scheduler
    if config.scheduler_enabled:
        scheduler.start()

    yield

    logger.info("livecast.shutdown")
    scheduler.stop()
    await close_redis()
    await app.state.storage.close()


def create_app(storage: Optional[Storage] = None, config: Settings = settings) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Livecast",
        description="Live campaign events and scheduled components for viewer apps",
        version=__version__,
        lifespan=lifespan,
    )

    registry = ConnectionRegistry()
    broadcaster = Broadcaster(registry)
    url_resolver = BaseUrlResolver(config.public_url, config.port)
    storage = storage if storage is not None else build_storage(config)

    app.state.config = config
    app.state.storage = storage
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.recent_events = RecentEvents(maxlen=config.recent_events_limit)
    app.state.url_resolver = url_resolver
    app.state.scheduler = ComponentScheduler(
        storage,
        broadcaster,
        url_resolver,
        interval_seconds=config.scheduler_interval_minutes * 60,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from livecast.middleware.rate_limit import RateLimitMiddleware
    from livecast.middleware.request_id import RequestIdMiddleware
    from livecast.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=config.rate_limit_rpm,
        trigger_rpm=config.rate_limit_trigger_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from livecast.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: livecast.main:app)
app = create_app()
