from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from webhook_dispatcher.api.middleware.correlation_id import CorrelationIdMiddleware
from webhook_dispatcher.api.middleware.metrics import RequestTimingMiddleware
from webhook_dispatcher.api.v1.routers import health, hooks
from webhook_dispatcher.application.exceptions import (
    NotFoundError,
    ValidationError,
)
from webhook_dispatcher.config import settings
from webhook_dispatcher.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from webhook_dispatcher.infrastructure.db.session import AsyncSessionLocal
from webhook_dispatcher.infrastructure.db.store import SqlAlchemySubscriptionStore
from webhook_dispatcher.infrastructure.http.httpx_transport import HttpxWebhookTransport
from webhook_dispatcher.services.resthook import Resthook
from webhook_dispatcher.workers.result_forwarder import ResultForwarder

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    app.state.http_client = httpx.AsyncClient(timeout=settings.WEBHOOK_HTTP_TIMEOUT)

    resthook = Resthook(
        SqlAlchemySubscriptionStore(AsyncSessionLocal),
        HttpxWebhookTransport(app.state.http_client),
        settings.retry_policy,
    )
    app.state.resthook = resthook

    forwarder = ResultForwarder(
        resthook.results,
        RedisPubSubPublisher(app.state.redis),
        settings.RESULTS_PUBSUB_CHANNEL,
    )
    await forwarder.start()
    logger.info("Webhook dispatcher started (policy=%s)", resthook.policy)

    yield

    await resthook.close()
    await forwarder.stop()
    await app.state.http_client.aclose()
    await app.state.redis.aclose()
    logger.info("Webhook dispatcher stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Webhook Dispatcher",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(hooks.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(_req: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request data.", "errors": _jsonable_errors(exc)},
        )


def _jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
