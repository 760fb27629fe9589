"""
BioNova-X - Application Factory
================================
Builds the FastAPI application: CORS, per-IP rate limiting, request
logging, error handlers, the ``/api`` router and a plain-text health
check on ``/``.

Lifecycle
---------
The Gemini gateway, the cache store and the orchestrator are created
once in the lifespan and live until shutdown.  Passing an
``orchestrator`` to ``create_app`` skips that step (tests, embedding).

Run with:
    uvicorn bionova.src.main:create_app --factory --port 3001
or ``bionova-server`` (see ``bionova.scripts.serve``).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from bionova.config.settings import settings
from bionova.src.api.rate_limiter import RATE_LIMIT_MESSAGE, SlidingWindowRateLimiter
from bionova.src.api.routes import provider_error_response, router
from bionova.src.api.schemas import validation_error_handler
from bionova.src.core.errors import ProviderError
from bionova.src.core.orchestrator import ResearchOrchestrator
from bionova.src.utils.logger import bind_request_id, get_logger, reset_request_id

logger = get_logger(__name__)

API_PREFIX = "/api"
REQUEST_ID_HEADER = "X-Request-ID"


def create_app(orchestrator: ResearchOrchestrator | None = None, rate_limiter: SlidingWindowRateLimiter | None = None) -> FastAPI:
    """
    Assemble the BioNova-X application.

    Parameters
    ----------
    orchestrator
        Pre-built orchestrator.  When omitted, the lifespan builds one
        from ``settings`` (Gemini gateway + MongoDB cache store).
    rate_limiter
        Limiter shared by every ``/api`` route.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_resources = getattr(app.state, "orchestrator", None) is None
        if owns_resources:
            from bionova.src.core.llm_gateway import GeminiGateway
            from bionova.src.database.cache_store import SearchCacheStore

            app.state.orchestrator = ResearchOrchestrator(gateway=GeminiGateway.from_settings(), cache_store=SearchCacheStore())
            logger.info("BioNova-X backend ready (env=%s, model=%s).", settings.ENV, settings.LLM_MODEL)
        yield
        if owns_resources:
            from bionova.src.database.cache_store import close_mongo_client

            close_mongo_client()

    app = FastAPI(title="BioNova-X Backend", lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.rate_limiter = rate_limiter or SlidingWindowRateLimiter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def rate_limit_and_log(request: Request, call_next):
        """Apply the per-IP budget to ``/api`` and log every request."""
        request_id = uuid4().hex[:8]
        token = bind_request_id(request_id)
        client_ip = request.client.host if request.client else "unknown"
        t_start = time.perf_counter()

        try:
            if request.url.path.startswith(API_PREFIX) and request.method != "OPTIONS":
                decision = request.app.state.rate_limiter.hit(client_ip)
                if not decision.allowed:
                    return JSONResponse(
                        status_code=429,
                        content={"error": RATE_LIMIT_MESSAGE, "details": f"Limit of {request.app.state.rate_limiter.max_requests} requests exceeded; retry in {decision.retry_after}s."},
                        headers={"Retry-After": str(decision.retry_after), REQUEST_ID_HEADER: request_id},
                    )

            response = await call_next(request)
            duration_ms = (time.perf_counter() - t_start) * 1000
            logger.info("[API] %s %s client=%s status=%d %.1fms", request.method, request.url.path, client_ip, response.status_code, duration_ms)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            reset_request_id(token)

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.exception_handler(ProviderError)
    async def _provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error("[API] %s failed at the AI provider: %s", request.url.path, exc)
        return provider_error_response(exc)

    app.include_router(router, prefix=API_PREFIX)

    @app.get("/", response_class=PlainTextResponse)
    async def health() -> str:
        return "BioNova-X Backend is running!"

    return app
