from contextlib import asynccontextmanager
import logging

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.exceptions import IApproveError
from app.core.limiter import limiter
from app.core.logging import setup_logging
from app.db.session import engine
from app.middleware.request_id import RequestIdMiddleware
from app.services import storage as storage_svc

APP_VERSION = "0.1.0"

setup_logging()

logger = logging.getLogger(__name__)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.APP_ENV,
        release=f"i-approve@{APP_VERSION}",
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Attachments are optional, so a missing object store only degrades uploads.
    try:
        storage_svc.ensure_bucket()
    except storage_svc.STORAGE_ERRORS as exc:
        logger.warning("Attachment bucket bootstrap failed (continuing): %s", exc)
    yield
    await engine.dispose()


app = FastAPI(
    title="i-approve",
    description="Two-stage invoice approval: owner, then finance.",
    version=APP_VERSION,
    docs_url="/api/docs" if settings.APP_ENV != "production" else None,
    redoc_url="/api/redoc" if settings.APP_ENV != "production" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
    expose_headers=["X-Request-Id"],
)


# ─── Error mapping ───

@app.exception_handler(IApproveError)
async def domain_exception_handler(request: Request, exc: IApproveError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_detail())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ─── Routers ───
from app.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.APP_ENV, "version": APP_VERSION}
