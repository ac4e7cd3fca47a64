from typing import Generator, Optional, Sequence

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from migestion.core.config import Settings
from migestion.core.context import RequestContext
from migestion.core.errors import AppError, TooManyRequestsError, UnauthorizedError
from migestion.core.security_password import PasswordHasher
from migestion.core.tokens import TokenCodec, extract_bearer
from migestion.services.audit import AuditRecorder
from migestion.services.auth import AuthService, ClientInfo

MAX_USER_AGENT_LENGTH = 500


# ----------------------------------------------------------------------
# Shared resources built once by create_app() and kept on app.state
# ----------------------------------------------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def get_codec(request: Request) -> TokenCodec:
    return request.app.state.codec


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def get_audit_recorder(request: Request) -> AuditRecorder:
    return request.app.state.audit


def client_ip(request: Request, trusted_proxies: Sequence[str] = ()) -> Optional[str]:
    """Peer address, or the address a trusted proxy forwarded for it."""
    peer = request.client.host if request.client else None
    if "*" not in trusted_proxies and peer not in trusted_proxies:
        return peer
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip
    return request.headers.get("x-real-ip") or peer


def get_client_info(request: Request) -> ClientInfo:
    ip = client_ip(request, request.app.state.settings.TRUSTED_PROXIES)
    user_agent = request.headers.get("user-agent")
    return ClientInfo(ip_address=ip, user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None)


def get_auth_service(
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_codec),
    hasher: PasswordHasher = Depends(get_hasher),
    audit: AuditRecorder = Depends(get_audit_recorder),
    client: ClientInfo = Depends(get_client_info),
) -> AuthService:
    return AuthService(db, codec=codec, hasher=hasher, audit=audit, client=client)


# ----------------------------------------------------------------------
# Rate limit for the public auth endpoints, keyed by client IP
# ----------------------------------------------------------------------
def auth_rate_limit(request: Request, client: ClientInfo = Depends(get_client_info)) -> None:
    allowed, retry_after = request.app.state.auth_rate_limiter.consume(client.ip_address or "unknown")
    if not allowed:
        raise TooManyRequestsError(
            "Too many authentication attempts, please try again later",
            retry_after=int(retry_after) + 1,
        )


# ----------------------------------------------------------------------
# Bearer authentication
# ----------------------------------------------------------------------
def authenticate_header(authorization: Optional[str], codec: TokenCodec) -> RequestContext:
    token = extract_bearer(authorization)
    if not token:
        raise UnauthorizedError("Access token required")
    # TokenExpiredError / InvalidTokenError propagate as-is
    return RequestContext.for_identity(codec.verify_access(token))


def _attach(request: Request, ctx: RequestContext) -> None:
    # read by the exception handlers for their log context
    request.state.auth = ctx


def authenticate(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    codec: TokenCodec = Depends(get_codec),
) -> RequestContext:
    ctx = authenticate_header(authorization, codec)
    _attach(request, ctx)
    return ctx


def optional_authenticate(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    codec: TokenCodec = Depends(get_codec),
) -> RequestContext:
    """Same as ``authenticate`` but any failure yields an anonymous context."""
    try:
        ctx = authenticate_header(authorization, codec)
    except AppError:
        ctx = RequestContext.anonymous()
    _attach(request, ctx)
    return ctx
