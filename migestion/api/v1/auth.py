# migestion/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from migestion.api.deps import auth_rate_limit, authenticate, get_auth_service, optional_authenticate
from migestion.core.context import RequestContext
from migestion.core.tenancy import require_tenant
from migestion.schemas.auth import (
    AuthResponse,
    AuthStatusResponse,
    LoginRequest,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RegisterRequest,
    TokenRefreshResponse,
)
from migestion.schemas.common import Envelope
from migestion.schemas.user import IdentityOut, TenantOut, UserOut
from migestion.services.auth import AuthResult, AuthService

router = APIRouter()


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserOut.model_validate(result.user),
        tenant=TenantOut.model_validate(result.tenant),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_at=result.expires_at,
    )


# ---------- public (rate limited) ----------
@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=Envelope[AuthResponse],
    dependencies=[Depends(auth_rate_limit)],
)
def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    result = service.register(
        tenant_name=body.company_name,
        slug=body.slug,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return Envelope(data=_auth_response(result))


@router.post("/login", response_model=Envelope[AuthResponse], dependencies=[Depends(auth_rate_limit)])
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = service.login(email=body.email, password=body.password)
    return Envelope(data=_auth_response(result))


@router.post("/refresh", response_model=Envelope[TokenRefreshResponse], dependencies=[Depends(auth_rate_limit)])
def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    tokens = service.refresh_tokens(body.refresh_token)
    return Envelope(data=TokenRefreshResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.access_token_expires_at,
    ))


@router.get("/status", response_model=Envelope[AuthStatusResponse])
def auth_status(ctx: RequestContext = Depends(optional_authenticate)):
    if ctx.identity is None:
        return Envelope(data=AuthStatusResponse(authenticated=False))
    return Envelope(data=AuthStatusResponse(
        authenticated=True,
        user=IdentityOut.model_validate(ctx.identity.model_dump()),
    ))


# ---------- protected ----------
@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def logout(
    body: LogoutRequest | None = None,
    ctx: RequestContext = Depends(authenticate),
    service: AuthService = Depends(get_auth_service),
):
    if body is not None and body.refresh_token:
        service.logout(body.refresh_token, user_id=ctx.identity.user_id, tenant_id=ctx.tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/logout-all", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def logout_all(
    ctx: RequestContext = Depends(authenticate),
    service: AuthService = Depends(get_auth_service),
):
    service.logout_all(ctx.identity.user_id, tenant_id=ctx.tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=Envelope[MeResponse])
def me(
    ctx: RequestContext = Depends(require_tenant),
    service: AuthService = Depends(get_auth_service),
):
    user, tenant = service.get_current_user(ctx.identity.user_id)
    return Envelope(data=MeResponse(user=UserOut.model_validate(user), tenant=TenantOut.model_validate(tenant)))
