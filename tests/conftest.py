import os
import sys
import tempfile
from pathlib import Path

# Environment for anything read at import time (module-level Settings and app)
_test_tmp_dir = tempfile.mkdtemp(prefix="migestion_test_")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_test_tmp_dir, 'import.db')}")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret-0123456789abcdefghij")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdefghij")
os.environ.setdefault("AUTO_MIGRATE", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("AUTH_RATE_LIMIT_MAX", "1000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from migestion.core.config import Settings  # noqa: E402
from migestion.core.security_password import PasswordHasher  # noqa: E402
from migestion.core.tokens import TokenCodec  # noqa: E402
from migestion.db.session import Database  # noqa: E402
from migestion.main import create_app  # noqa: E402
from migestion.services.audit import AuditRecorder  # noqa: E402
from migestion.services.auth import AuthService, ClientInfo  # noqa: E402

OWNER = {
    "companyName": "Acme Inc",
    "slug": "acme",
    "email": "a@x.com",
    "password": "Passw0rd",
    "firstName": "Ana",
    "lastName": "Lima",
}


@pytest.fixture
def settings(tmp_path):
    return Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def database(settings):
    db = Database(settings.DATABASE_URL).open()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def db_session(database):
    with database.session_scope() as session:
        yield session


@pytest.fixture
def codec(settings):
    return TokenCodec.from_settings(settings)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=10)


@pytest.fixture
def audit_errors():
    return []


@pytest.fixture
def audit(database, audit_errors):
    """Writes inline so tests can read the trail right after the call."""
    return AuditRecorder(database, dispatch=lambda fn: fn(), on_error=audit_errors.append)


@pytest.fixture
def service(db_session, codec, hasher, audit):
    return AuthService(
        db_session,
        codec=codec,
        hasher=hasher,
        audit=audit,
        client=ClientInfo(ip_address="203.0.113.7", user_agent="pytest"),
    )


@pytest.fixture
def app(settings, database, audit):
    api = create_app(settings, database=database)
    api.state.audit = audit
    return api


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def registered(client):
    """Registers the ``acme`` tenant and returns the response data."""
    resp = client.post("/api/v1/auth/register", json=OWNER)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
