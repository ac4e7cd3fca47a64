# migestion/core/tokens.py
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from migestion.core.config import DURATION_RE, Settings
from migestion.core.errors import InvalidTokenError, TokenExpiredError
from migestion.schemas.token import AccessClaims, RefreshClaims, TokenPair

ISSUER = "migestion"
AUDIENCE = "migestion-api"

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(text: str) -> timedelta:
    """'15m' -> 15 minutes. Units: s, m, h, d."""
    match = DURATION_RE.match(text or "")
    if not match:
        raise ValueError(f"Invalid duration format: {text!r}")
    value, unit = match.groups()
    return timedelta(seconds=int(value) * _UNIT_SECONDS[unit])


def hash_token(raw: str) -> str:
    """SHA-256 hex digest; only this is stored for refresh tokens."""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def extract_bearer(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


class TokenCodec:
    """Signs and verifies access and refresh JWTs.

    The two token classes use separate secrets and carry a ``type`` claim, so
    one can never be accepted where the other is expected. Access tokens are
    stateless; refresh tokens are only half the story, since the stored hash
    decides whether they were revoked.
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        access_expiry: str = "15m",
        refresh_expiry: str = "7d",
        algorithm: str = "HS256",
    ) -> None:
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = parse_duration(access_expiry)
        self.refresh_ttl = parse_duration(refresh_expiry)
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            access_expiry=settings.JWT_ACCESS_EXPIRY,
            refresh_expiry=settings.JWT_REFRESH_EXPIRY,
            algorithm=settings.JWT_ALGORITHM,
        )

    def generate_pair(self, claims: AccessClaims) -> TokenPair:
        now = _now()
        access_exp = now + self.access_ttl
        refresh_exp = now + self.refresh_ttl

        access_payload: Dict[str, Any] = {
            "type": "access",
            "sub": claims.user_id,
            "tenant_id": claims.tenant_id,
            "email": claims.email,
            "role": claims.role,
            "iss": ISSUER,
            "aud": AUDIENCE,
            "iat": int(now.timestamp()),
            "exp": int(access_exp.timestamp()),
        }
        refresh_payload: Dict[str, Any] = {
            "type": "refresh",
            "sub": claims.user_id,
            "jti": uuid.uuid4().hex,
            "iss": ISSUER,
            "iat": int(now.timestamp()),
            "exp": int(refresh_exp.timestamp()),
        }
        return TokenPair(
            access_token=jwt.encode(access_payload, self.access_secret, algorithm=self.algorithm),
            refresh_token=jwt.encode(refresh_payload, self.refresh_secret, algorithm=self.algorithm),
            access_token_expires_at=access_exp,
            refresh_token_expires_at=refresh_exp,
        )

    def _decode(self, token: str, secret: str, audience: Optional[str]) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                audience=audience,
                issuer=ISSUER,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise InvalidTokenError()
        if not isinstance(payload, dict):
            raise InvalidTokenError()
        return payload

    def verify_access(self, token: str) -> AccessClaims:
        payload = self._decode(token, self.access_secret, AUDIENCE)
        if payload.get("type") != "access":
            raise InvalidTokenError()
        try:
            return AccessClaims(
                user_id=payload["sub"],
                tenant_id=payload["tenant_id"],
                email=payload["email"],
                role=payload["role"],
            )
        except (KeyError, ValueError):
            raise InvalidTokenError()

    def verify_refresh(self, token: str) -> RefreshClaims:
        payload = self._decode(token, self.refresh_secret, None)
        if payload.get("type") != "refresh":
            raise InvalidTokenError()
        if not payload.get("sub") or not payload.get("jti"):
            raise InvalidTokenError()
        return RefreshClaims(user_id=payload["sub"], token_id=payload["jti"])
