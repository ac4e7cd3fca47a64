from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from migestion.api.v1.router import api_router
from migestion.core.config import Settings
from migestion.core.errors import AppError, TooManyRequestsError
from migestion.core.logging import get_logger, set_request_id, setup_logging
from migestion.core.rate_limit import TokenBucket
from migestion.core.security_password import PasswordHasher
from migestion.core.tokens import TokenCodec
from migestion.db.bootstrap import run_migrations
from migestion.db.init_db import init_db
from migestion.db.session import Database
from migestion.services.audit import AuditRecorder

logger = get_logger(__name__)

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "TOO_MANY_REQUESTS",
}


def _error(status_code: int, code: str, message: str, errors: Optional[dict] = None, headers=None) -> JSONResponse:
    body = {"code": code, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content={"success": False, "error": body}, headers=headers)


def _request_log_context(request: Request) -> dict:
    ctx = getattr(request.state, "auth", None)
    identity = getattr(ctx, "identity", None)
    return {
        "method": request.method,
        "path": request.url.path,
        "user_id": identity.user_id if identity else None,
        "tenant_id": getattr(ctx, "tenant_id", None),
    }


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def register_exception_handlers(api: FastAPI, settings: Settings) -> None:
    @api.exception_handler(AppError)
    def handle_app_error(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("app_error", code=exc.code, status_code=exc.status_code, message=exc.message, **_request_log_context(request))
        headers = None
        if isinstance(exc, TooManyRequestsError) and exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}
        return _error(exc.status_code, exc.code, exc.message, getattr(exc, "errors", None), headers)

    @api.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: RequestValidationError):
        errors: dict = {}
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ())) or "body"
            ctx = err.get("ctx") or {}
            errors.setdefault(field, []).extend(ctx.get("violations") or [err.get("msg", "Invalid value")])
        logger.warning("validation_error", fields=sorted(errors), **_request_log_context(request))
        return _error(400, "VALIDATION_ERROR", "Validation failed", errors)

    @api.exception_handler(StarletteHTTPException)
    def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
        if exc.status_code == 404:
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        return _error(exc.status_code, code, message, headers=getattr(exc, "headers", None))

    @api.exception_handler(IntegrityError)
    def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("integrity_error", error=str(getattr(exc, "orig", exc)), **_request_log_context(request))
        return _error(409, "CONFLICT", "Resource already exists")

    @api.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled_exception", error_type=type(exc).__name__, **_request_log_context(request))
        message = str(exc) if settings.is_development else "An unexpected error occurred"
        return _error(500, "INTERNAL_ERROR", message)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    api = FastAPI(
        title="MiGestion API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        swagger_ui_parameters={"displayRequestDuration": True, "persistAuthorization": True},
    )

    database = database or Database(settings.DATABASE_URL)
    api.state.settings = settings
    api.state.database = database
    api.state.codec = TokenCodec.from_settings(settings)
    api.state.hasher = PasswordHasher(settings.BCRYPT_ROUNDS)
    api.state.audit = AuditRecorder(database)
    api.state.auth_rate_limiter = TokenBucket(
        settings.AUTH_RATE_LIMIT_MAX,
        settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
        max_keys=settings.AUTH_RATE_LIMIT_MAX_KEYS,
    )

    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    api.add_middleware(RequestIdMiddleware)

    # /metrics (Prometheus)
    if settings.METRICS_ENABLED:
        Instrumentator().instrument(api).expose(api, include_in_schema=False, should_gzip=True)

    register_exception_handlers(api, settings)
    api.include_router(api_router, prefix=settings.API_PREFIX)

    @api.get("/healthz", tags=["health"])
    def healthz():
        return {"status": "ok"}

    @api.on_event("startup")
    def startup():
        database.open()
        if settings.AUTO_MIGRATE:
            run_migrations(database.url)
        if settings.SEED_DEMO_DATA:
            with database.session_scope() as db:
                init_db(db, api.state.hasher)

    @api.on_event("shutdown")
    def shutdown():
        api.state.audit.close()
        database.close()

    return api


api = create_app()
