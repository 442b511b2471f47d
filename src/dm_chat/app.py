from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dm_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from dm_chat.api.middleware.metrics import RequestTimingMiddleware
from dm_chat.api.v1.routers import health, messages, ws
from dm_chat.application.exceptions import (
    NotFoundError,
    TransportError,
    UploadError,
    ValidationError,
)
from dm_chat.config import settings
from dm_chat.infrastructure.blob.cloudinary import CloudinaryBlobStore
from dm_chat.infrastructure.bus.local import LocalMessageFanout
from dm_chat.infrastructure.bus.redis_pubsub import (
    RedisMessageFanout,
    RedisPubSubSubscriber,
)
from dm_chat.infrastructure.ws.manager import ConnectionRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    registry: ConnectionRegistry = app.state.registry

    http = httpx.AsyncClient(timeout=settings.UPLOAD_TIMEOUT_SECONDS)
    app.state.blob_store = CloudinaryBlobStore(
        http,
        upload_url=settings.cloudinary_upload_url,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        folder=settings.CLOUDINARY_FOLDER,
        max_bytes=settings.UPLOAD_MAX_BYTES,
    )

    subscriber: RedisPubSubSubscriber | None = None
    if settings.FANOUT_BACKEND == "redis":
        app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Redis connection pool created")
        subscriber = RedisPubSubSubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            registry.publish,
        )
        await subscriber.start()
        app.state.fanout = RedisMessageFanout(app.state.redis, settings.REDIS_PUBSUB_CHANNEL)

    yield

    if subscriber is not None:
        await subscriber.stop()
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    await registry.close_all()
    await http.aclose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Direct Messages Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Process-lifetime state; clients reconnect after a restart.
    registry = ConnectionRegistry(echo_to_sender=settings.ECHO_TO_SENDER)
    app.state.registry = registry
    app.state.fanout = LocalMessageFanout(registry)
    app.state.redis = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": exc.detail})

    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": exc.detail})

    @app.exception_handler(UploadError)
    async def _upload(_req: Request, exc: UploadError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"error": exc.detail})

    @app.exception_handler(TransportError)
    async def _transport(req: Request, exc: TransportError) -> JSONResponse:
        logger.error("%s %s failed: %s", req.method, req.url.path, exc.detail)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.exception_handler(Exception)
    async def _unhandled(req: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", req.method, req.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
