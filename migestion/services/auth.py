from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from migestion.core.errors import (
    ConflictError,
    DuplicateEmailError,
    DuplicateSlugError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from migestion.core.logging import get_logger
from migestion.core.security_password import PasswordHasher, validate_password_strength
from migestion.core.tokens import TokenCodec, hash_token
from migestion.crud.refresh_token import refresh_token_crud
from migestion.crud.tenant import tenant_crud
from migestion.crud.user import user_crud
from migestion.models.tenant import Tenant, TenantStatus
from migestion.models.user import User, UserStatus
from migestion.schemas.token import AccessClaims, TokenPair
from migestion.services.audit import AuditContext, AuditRecorder

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    user: User
    tenant: Tenant
    tokens: TokenPair

    @property
    def expires_at(self) -> datetime:
        return self.tokens.access_token_expires_at


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AuthService:
    """Registration, login and the refresh-token lifecycle.

    A refresh-token row moves one way only: active -> revoked. Logout,
    logout-all and rotation on refresh all end in ``revoked``; a row past its
    ``expires_at`` is treated as dead as well.

    Login failures (unknown email, wrong password, inactive user, inactive
    tenant) all raise the same ``InvalidCredentialsError``.
    """

    def __init__(
        self,
        db: Session,
        *,
        codec: TokenCodec,
        hasher: PasswordHasher,
        audit: Optional[AuditRecorder] = None,
        client: Optional[ClientInfo] = None,
    ) -> None:
        self.db = db
        self.codec = codec
        self.hasher = hasher
        self.audit = audit
        self.client = client or ClientInfo()

    # ------------------------------------------------------------------ #
    # registration / login
    # ------------------------------------------------------------------ #
    def register(
        self,
        *,
        tenant_name: str,
        slug: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> AuthResult:
        email = normalize_email(email)
        violations = validate_password_strength(password)
        if violations:
            raise ValidationError({"password": violations})

        if tenant_crud.get_by_slug(self.db, slug):
            raise DuplicateSlugError()
        # global on purpose: login resolves the tenant from the email
        if user_crud.get_by_email_across_tenants(self.db, email):
            raise DuplicateEmailError()

        password_hash = self.hasher.hash(password)
        try:
            tenant, user = tenant_crud.create_with_owner(
                self.db,
                tenant_name=tenant_name,
                tenant_slug=slug,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
            )
        except IntegrityError:
            # lost a race against a concurrent registration
            if tenant_crud.get_by_slug(self.db, slug):
                raise DuplicateSlugError()
            if user_crud.get_by_email_across_tenants(self.db, email):
                raise DuplicateEmailError()
            raise ConflictError()

        tokens = self._issue_tokens(user)
        self.db.commit()
        logger.info("tenant_registered", tenant_id=tenant.id, user_id=user.id, slug=tenant.slug)

        self._audit(
            tenant.id,
            user.id,
            action="create",
            entity="tenant",
            entity_id=tenant.id,
            new_values={"name": tenant.name, "slug": tenant.slug},
        )
        return AuthResult(user=user, tenant=tenant, tokens=tokens)

    def login(self, *, email: str, password: str) -> AuthResult:
        user = user_crud.get_by_email_across_tenants(self.db, normalize_email(email))
        if user is None:
            self.hasher.dummy_verify()
            raise InvalidCredentialsError()

        ok, new_hash = self.hasher.verify_and_maybe_upgrade(password, user.password_hash)
        if not ok:
            raise InvalidCredentialsError()
        if user.status != UserStatus.ACTIVE.value:
            raise InvalidCredentialsError()
        tenant = user.tenant
        if tenant is None or tenant.status != TenantStatus.ACTIVE.value:
            raise InvalidCredentialsError()

        user_crud.touch_last_login(self.db, user)
        if new_hash:
            user_crud.update_password_hash(self.db, user, new_hash)
        tokens = self._issue_tokens(user)
        self.db.commit()
        logger.info("user_logged_in", tenant_id=tenant.id, user_id=user.id, rehashed=bool(new_hash))

        self._audit(tenant.id, user.id, action="login", entity="session")
        return AuthResult(user=user, tenant=tenant, tokens=tokens)

    # ------------------------------------------------------------------ #
    # refresh-token lifecycle
    # ------------------------------------------------------------------ #
    def refresh_tokens(self, raw_refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair, revoking the one presented."""
        claims = self.codec.verify_refresh(raw_refresh_token)

        token_hash = hash_token(raw_refresh_token)
        stored = refresh_token_crud.get_by_hash(self.db, token_hash)
        if not refresh_token_crud.is_usable(stored) or stored.user_id != claims.user_id:
            raise InvalidTokenError()

        user = user_crud.get_with_tenant(self.db, claims.user_id)
        if user is None:
            raise NotFoundError("User")

        # conditional revoke: only one concurrent caller can consume the row
        if refresh_token_crud.revoke(self.db, token_hash) == 0:
            self.db.rollback()
            raise InvalidTokenError()

        tokens = self._issue_tokens(user)
        self.db.commit()
        logger.info("refresh_token_rotated", user_id=user.id)
        return tokens

    def logout(
        self,
        raw_refresh_token: str,
        *,
        user_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> None:
        """Revoke one refresh token. Unknown or already revoked tokens are a no-op."""
        if tenant_id:
            self._audit(tenant_id, user_id, action="logout", entity="session")

        token_hash = hash_token(raw_refresh_token)
        stored = refresh_token_crud.get_by_hash(self.db, token_hash)
        if stored is not None and stored.revoked_at is None:
            refresh_token_crud.revoke(self.db, token_hash)
            self.db.commit()

    def logout_all(self, user_id: str, *, tenant_id: Optional[str] = None) -> int:
        if tenant_id:
            self._audit(tenant_id, user_id, action="logout", entity="session", new_values={"allDevices": True})

        revoked = refresh_token_crud.revoke_all_for_user(self.db, user_id)
        self.db.commit()
        logger.info("sessions_revoked", user_id=user_id, count=revoked)
        return revoked

    def get_current_user(self, user_id: str) -> Tuple[User, Tenant]:
        user = user_crud.get_with_tenant(self.db, user_id)
        if user is None or user.tenant is None:
            raise NotFoundError("User")
        return user, user.tenant

    # ------------------------------------------------------------------ #
    def _issue_tokens(self, user: User) -> TokenPair:
        tokens = self.codec.generate_pair(
            AccessClaims(user_id=user.id, tenant_id=user.tenant_id, email=user.email, role=user.role)
        )
        refresh_token_crud.create(self.db, {
            "user_id": user.id,
            "token_hash": hash_token(tokens.refresh_token),
            "expires_at": tokens.refresh_token_expires_at,
        })
        return tokens

    def _audit(self, tenant_id: str, user_id: Optional[str], **event) -> None:
        if self.audit is None:
            return
        context = AuditContext(
            tenant_id=tenant_id,
            user_id=user_id,
            ip_address=self.client.ip_address,
            user_agent=self.client.user_agent,
        )
        self.audit.record(context, **event)
