from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from guardduty.api.routes import audit, guards, health, notifications, schedule
from guardduty.core.config import get_settings
from guardduty.core.exceptions import AppError
from guardduty.core.logging_config import configure_logging
from guardduty.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from guardduty.db.bootstrap import ensure_runtime_schema

settings = get_settings()
configure_logging(settings.log_level, json_output=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.bootstrap_schema_on_startup:
        ensure_runtime_schema()
    yield


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({"message": exc.message, "details": exc.details}),
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(schedule.router, prefix=settings.api_prefix, tags=["schedule"])
app.include_router(guards.router, prefix=settings.api_prefix, tags=["guard-automation"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])
app.include_router(audit.router, prefix=settings.api_prefix, tags=["audit"])
