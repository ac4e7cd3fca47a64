"""AuthService: registration, login and the refresh-token lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest
from passlib.hash import bcrypt
from sqlalchemy import func, select

from migestion.core.errors import (
    DuplicateEmailError,
    DuplicateSlugError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from migestion.core.tokens import hash_token
from migestion.crud.refresh_token import refresh_token_crud
from migestion.models import AuditLog, RefreshToken, Tenant, User


def _register(service, **overrides):
    data = dict(
        tenant_name="Acme Inc",
        slug="acme",
        email="a@x.com",
        password="Passw0rd",
        first_name="Ana",
        last_name="Lima",
    )
    data.update(overrides)
    return service.register(**data)


class TestRegister:
    def test_creates_active_tenant_with_single_owner(self, service, db_session, codec):
        result = _register(service)

        assert result.tenant.slug == "acme"
        assert result.tenant.status == "active"
        assert result.user.role == "owner"
        assert result.user.status == "active"
        users = db_session.scalars(select(User).where(User.tenant_id == result.tenant.id)).all()
        assert [u.id for u in users] == [result.user.id]

        assert codec.verify_access(result.tokens.access_token).tenant_id == result.tenant.id
        assert codec.verify_refresh(result.tokens.refresh_token).user_id == result.user.id
        assert result.expires_at == result.tokens.access_token_expires_at

    def test_stores_only_the_refresh_token_hash(self, service, db_session):
        result = _register(service)

        rows = db_session.scalars(select(RefreshToken)).all()
        assert len(rows) == 1
        assert rows[0].token_hash == hash_token(result.tokens.refresh_token)
        assert rows[0].revoked_at is None

    def test_email_is_normalized(self, service):
        result = _register(service, email="  A@X.COM ")

        assert result.user.email == "a@x.com"

    def test_password_is_hashed(self, service, hasher):
        result = _register(service)

        assert result.user.password_hash != "Passw0rd"
        assert hasher.verify("Passw0rd", result.user.password_hash)

    def test_duplicate_slug(self, service):
        _register(service)

        with pytest.raises(DuplicateSlugError) as exc:
            _register(service, email="b@x.com")
        assert exc.value.status_code == 409
        assert exc.value.code == "DUPLICATE_SLUG"

    def test_duplicate_email_in_any_tenant(self, service):
        _register(service)

        with pytest.raises(DuplicateEmailError):
            _register(service, slug="other")

    def test_weak_password_reports_all_violations(self, service, db_session):
        with pytest.raises(ValidationError) as exc:
            _register(service, password="short")

        assert len(exc.value.errors["password"]) == 3
        assert db_session.scalar(select(func.count(Tenant.id))) == 0

    def test_audits_tenant_creation(self, service, db_session, audit_errors):
        result = _register(service)

        entry = db_session.scalars(select(AuditLog)).one()
        assert entry.action == "create"
        assert entry.entity == "tenant"
        assert entry.entity_id == result.tenant.id
        assert entry.new_values == {"name": "Acme Inc", "slug": "acme"}
        assert entry.ip_address == "203.0.113.7"
        assert audit_errors == []


class TestLogin:
    def test_success_issues_new_pair(self, service, db_session):
        registered = _register(service)

        result = service.login(email="a@x.com", password="Passw0rd")

        assert result.user.id == registered.user.id
        assert result.tenant.id == registered.tenant.id
        assert result.tokens.refresh_token != registered.tokens.refresh_token
        assert result.user.last_login_at is not None
        assert db_session.scalar(select(func.count(RefreshToken.id))) == 2

    def test_email_is_case_insensitive(self, service):
        _register(service)

        assert service.login(email="A@X.com", password="Passw0rd").user.email == "a@x.com"

    def test_unknown_email(self, service):
        with pytest.raises(InvalidCredentialsError):
            service.login(email="nobody@x.com", password="Passw0rd")

    def test_wrong_password(self, service):
        _register(service)

        with pytest.raises(InvalidCredentialsError) as exc:
            service.login(email="a@x.com", password="WrongPass1")
        assert exc.value.code == "INVALID_CREDENTIALS"

    def test_inactive_user_looks_like_bad_credentials(self, service, db_session):
        result = _register(service)
        result.user.status = "inactive"
        db_session.commit()

        with pytest.raises(InvalidCredentialsError) as exc:
            service.login(email="a@x.com", password="Passw0rd")
        assert exc.value.message == "Invalid email or password"

    def test_suspended_tenant_looks_like_bad_credentials(self, service, db_session):
        result = _register(service)
        result.tenant.status = "suspended"
        db_session.commit()

        with pytest.raises(InvalidCredentialsError) as exc:
            service.login(email="a@x.com", password="Passw0rd")
        assert exc.value.message == "Invalid email or password"

    def test_rehashes_weaker_hash(self, service, db_session):
        result = _register(service)
        result.user.password_hash = bcrypt.using(rounds=4).hash("Passw0rd")
        db_session.commit()

        service.login(email="a@x.com", password="Passw0rd")

        db_session.expire_all()
        assert db_session.get(User, result.user.id).password_hash.startswith("$2b$10$")

    def test_audits_login(self, service, db_session):
        _register(service)

        service.login(email="a@x.com", password="Passw0rd")

        actions = db_session.scalars(select(AuditLog.action).order_by(AuditLog.created_at)).all()
        assert actions == ["create", "login"]


class TestRefresh:
    def test_rotation(self, service, db_session):
        registered = _register(service)
        original = registered.tokens.refresh_token

        rotated = service.refresh_tokens(original)

        assert rotated.refresh_token != original
        db_session.expire_all()
        assert refresh_token_crud.get_by_hash(db_session, hash_token(original)).revoked_at is not None
        assert refresh_token_crud.get_by_hash(db_session, hash_token(rotated.refresh_token)).revoked_at is None

        with pytest.raises(InvalidTokenError):
            service.refresh_tokens(original)
        assert service.refresh_tokens(rotated.refresh_token).refresh_token != rotated.refresh_token

    def test_unknown_but_well_signed_token(self, service, codec):
        registered = _register(service)
        stray = codec.generate_pair(
            codec.verify_access(registered.tokens.access_token)
        ).refresh_token

        with pytest.raises(InvalidTokenError):
            service.refresh_tokens(stray)

    def test_stored_expiry_is_checked(self, service, db_session):
        registered = _register(service)
        row = refresh_token_crud.get_by_hash(db_session, hash_token(registered.tokens.refresh_token))
        row.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
        db_session.commit()

        with pytest.raises(InvalidTokenError):
            service.refresh_tokens(registered.tokens.refresh_token)

    def test_access_token_is_not_a_refresh_token(self, service):
        registered = _register(service)

        with pytest.raises(InvalidTokenError):
            service.refresh_tokens(registered.tokens.access_token)

    def test_lost_race_fails_and_issues_nothing(self, service, db_session, monkeypatch):
        registered = _register(service)
        monkeypatch.setattr(refresh_token_crud, "revoke", lambda db, token_hash: 0)

        with pytest.raises(InvalidTokenError):
            service.refresh_tokens(registered.tokens.refresh_token)
        assert db_session.scalar(select(func.count(RefreshToken.id))) == 1


class TestLogout:
    def test_logout_is_idempotent(self, service, db_session):
        registered = _register(service)
        raw = registered.tokens.refresh_token

        service.logout(raw)
        service.logout(raw)

        db_session.expire_all()
        assert refresh_token_crud.get_by_hash(db_session, hash_token(raw)).revoked_at is not None
        with pytest.raises(InvalidTokenError):
            service.refresh_tokens(raw)

    def test_unknown_token_is_a_no_op(self, service):
        service.logout("never-issued")

    def test_logout_all_revokes_every_session(self, service, db_session):
        registered = _register(service)
        second = service.login(email="a@x.com", password="Passw0rd")

        revoked = service.logout_all(registered.user.id, tenant_id=registered.tenant.id)

        assert revoked == 2
        for raw in (registered.tokens.refresh_token, second.tokens.refresh_token):
            with pytest.raises(InvalidTokenError):
                service.refresh_tokens(raw)
        assert service.logout_all(registered.user.id) == 0

    def test_logout_audited_when_tenant_known(self, service, db_session):
        registered = _register(service)

        service.logout(registered.tokens.refresh_token, user_id=registered.user.id, tenant_id=registered.tenant.id)

        entry = db_session.scalars(select(AuditLog).where(AuditLog.action == "logout")).one()
        assert entry.entity == "session"
        assert entry.user_id == registered.user.id


class TestCurrentUser:
    def test_returns_user_and_tenant(self, service):
        registered = _register(service)

        user, tenant = service.get_current_user(registered.user.id)

        assert user.email == "a@x.com"
        assert tenant.slug == "acme"

    def test_missing_user(self, service):
        with pytest.raises(NotFoundError) as exc:
            service.get_current_user("does-not-exist")
        assert exc.value.message == "User not found"
        assert exc.value.status_code == 404
