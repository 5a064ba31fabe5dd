"""GiftPerch API — FastAPI application."""
from __future__ import annotations

import logging

from giftperch.logging_config import setup_logging
setup_logging()
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import settings
from giftperch.deps import build_services, get_services
from giftperch.errors import DownstreamError, GiftPerchError
from giftperch.middleware.request_id import RequestIDMiddleware
from giftperch.middleware.security_headers import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)

# ── Sentry Error Tracking ────────────────────────
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.WARNING, event_level=logging.ERROR),
        ],
        # Scrub sensitive data
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate config and wire external collaborators onto app.state."""
    from giftperch.startup_checks import validate_settings
    validate_settings()

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
    logger.info(
        "Services ready (product search: %s)",
        "live" if app.state.services.product_search.live else "mock",
    )

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="GiftPerch API",
    version="0.1.0",
    description="Gift recipients, saved ideas and Amazon affiliate search for GiftPerch",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Added last so it wraps everything; every log line carries the ID
app.add_middleware(RequestIDMiddleware)


# ---- Routes ----
from giftperch.api.search import router as search_router
app.include_router(search_router)

from giftperch.api.profile import router as profile_router
app.include_router(profile_router)

from giftperch.api.saved_gifts import router as saved_gifts_router
app.include_router(saved_gifts_router)

from giftperch.api.feedback import router as feedback_router
app.include_router(feedback_router)

from giftperch.api.seo import router as seo_router
app.include_router(seo_router)


@app.get("/health")
async def health(request: Request):
    services = get_services(request)
    return {
        "status": "ok",
        "environment": settings.APP_ENV,
        "product_search": "live" if services.product_search.live else "mock",
    }


# ---- Error envelopes ----

@app.exception_handler(GiftPerchError)
async def giftperch_error_handler(request: Request, exc: GiftPerchError):
    if isinstance(exc, DownstreamError):
        logger.error(
            "Downstream failure on %s %s: %s",
            request.method, request.url.path, exc,
            exc_info=exc.__cause__ or exc,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean, structured validation errors instead of raw Pydantic output."""
    errors = []
    for err in exc.errors():
        field = " → ".join(str(loc) for loc in err["loc"]) if err.get("loc") else "unknown"
        errors.append({"field": field, "message": err["msg"]})
    return JSONResponse(status_code=400, content={
        "error": "Invalid request",
        "details": errors,
    })


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Consistent error envelope for all HTTP errors."""
    return JSONResponse(status_code=exc.status_code, content={
        "error": exc.detail if isinstance(exc.detail, str) else "error",
    })


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions — never leak stack traces."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={
        "error": "internal_error",
        "message": "Something went wrong. Please try again.",
    })
