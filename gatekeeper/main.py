"""FastAPI application guarded by the admission pipeline."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gatekeeper.admission.blacklist import IPBlacklist
from gatekeeper.admission.errors import AdmissionError
from gatekeeper.admission.rate_window import SlidingWindowRateLimiter
from gatekeeper.api.admin_routes import router as admin_router
from gatekeeper.api.public_routes import router as public_router
from gatekeeper.api.routing import FieldValidationError
from gatekeeper.config.loader import GatekeeperSettings, get_settings, register_reload_handler
from gatekeeper.health import router as health_router
from gatekeeper.jobs.rate_limit_sweeper import run_rate_limit_sweeper
from gatekeeper.logging_config import setup_logging
from gatekeeper.middleware.admission import AdmissionMiddleware
from gatekeeper.middleware.ip_blacklist import BlacklistGuard
from gatekeeper.middleware.pipeline import MiddlewarePipeline
from gatekeeper.middleware.rate_limiter import RateLimiter
from gatekeeper.middleware.request_sanitizer import RequestSanitizer

logger = structlog.get_logger()


def _build_pipeline(
    settings: GatekeeperSettings,
    blacklist: IPBlacklist,
    limiter: SlidingWindowRateLimiter,
) -> MiddlewarePipeline:
    """Build the ordered admission pipeline. Order is security-critical."""
    pipeline = MiddlewarePipeline()
    pipeline.add(BlacklistGuard(blacklist))  # 0: reject banned clients first
    pipeline.add(RateLimiter(limiter))       # 1
    pipeline.add(RequestSanitizer(           # 2: never denies
        sanitize_headers=settings.sanitize_headers,
        log_payloads=settings.log_payloads,
    ))
    return pipeline


def _build_rate_limiter(settings: GatekeeperSettings) -> SlidingWindowRateLimiter:
    inline = settings.rate_limit_sweep_mode == "inline"
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        sweep_probability=settings.rate_limit_sweep_probability if inline else 0.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    settings: GatekeeperSettings = app.state.settings
    setup_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
        payload_logging=settings.log_payloads,
    )
    register_reload_handler()

    app.state.started_at = time.time()
    sweeper: asyncio.Task | None = None
    if settings.rate_limit_sweep_mode == "background":
        sweeper = asyncio.create_task(
            run_rate_limit_sweeper(app.state.rate_limiter, settings.rate_limit_sweep_interval_seconds)
        )

    logger.info(
        "gatekeeper_started",
        port=settings.listen_port,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        sweep_mode=settings.rate_limit_sweep_mode,
        pipeline=app.state.pipeline.names,
    )

    yield

    if sweeper and not sweeper.done():
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass

    logger.info("gatekeeper_stopped")


async def admission_error_handler(request: Request, exc: AdmissionError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "message": str(exc)},
    )


async def field_validation_handler(request: Request, exc: FieldValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "validation_failed", "message": "Validation failed", "details": {"errors": exc.errors}},
    )


def create_app(settings: GatekeeperSettings | None = None) -> FastAPI:
    """Build an app with its own blacklist and limiter instances."""
    if settings is None:
        settings = get_settings()

    blacklist = IPBlacklist(blacklist=settings.blacklist, whitelist=settings.whitelist)
    limiter = _build_rate_limiter(settings)
    admin_limiter = SlidingWindowRateLimiter(
        max_requests=settings.admin_rate_limit_max,
        window_seconds=settings.admin_rate_limit_window_seconds,
    )

    app = FastAPI(title="Gatekeeper", lifespan=lifespan)
    app.state.settings = settings
    app.state.blacklist = blacklist
    app.state.rate_limiter = limiter
    app.state.admin_rate_limiter = admin_limiter
    app.state.started_at = time.time()
    app.state.pipeline = _build_pipeline(settings, blacklist, limiter)

    app.add_middleware(AdmissionMiddleware, pipeline=app.state.pipeline)
    app.add_exception_handler(AdmissionError, admission_error_handler)
    app.add_exception_handler(FieldValidationError, field_validation_handler)

    app.include_router(health_router)
    app.include_router(public_router)
    app.include_router(admin_router)
    return app
