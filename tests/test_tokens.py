"""Access/refresh JWT codec."""

import time
from datetime import timedelta

import pytest
from jose import jwt

from migestion.core.errors import InvalidTokenError, TokenExpiredError
from migestion.core.tokens import AUDIENCE, ISSUER, TokenCodec, extract_bearer, hash_token, parse_duration
from migestion.schemas.token import AccessClaims

CLAIMS = AccessClaims(user_id="u-1", tenant_id="t-1", email="a@x.com", role="owner")


def _access_payload(**overrides):
    now = int(time.time())
    payload = {
        "type": "access",
        "sub": "u-1",
        "tenant_id": "t-1",
        "email": "a@x.com",
        "role": "owner",
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + 60,
    }
    payload.update(overrides)
    return payload


class TestDuration:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("30s", timedelta(seconds=30)),
            ("15m", timedelta(minutes=15)),
            ("2h", timedelta(hours=2)),
            ("7d", timedelta(days=7)),
        ],
    )
    def test_units(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "15", "m", "1w", "-1m", "1.5h", " 15m"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestHelpers:
    def test_hash_token_is_deterministic_sha256(self):
        assert hash_token("abc") == hash_token("abc")
        assert hash_token("abc") != hash_token("abd")
        assert len(hash_token("abc")) == 64

    @pytest.mark.parametrize(
        "header,expected",
        [
            (None, None),
            ("", None),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer", None),
            ("Bearer ", None),
            ("bearer abc", None),
            ("Bearer abc.def.ghi", "abc.def.ghi"),
        ],
    )
    def test_extract_bearer(self, header, expected):
        assert extract_bearer(header) == expected


class TestCodec:
    def test_access_round_trip(self, codec):
        pair = codec.generate_pair(CLAIMS)

        assert codec.verify_access(pair.access_token) == CLAIMS

    def test_refresh_round_trip(self, codec):
        pair = codec.generate_pair(CLAIMS)

        claims = codec.verify_refresh(pair.refresh_token)

        assert claims.user_id == "u-1"
        assert claims.token_id

    def test_expiries_follow_settings(self, codec):
        pair = codec.generate_pair(CLAIMS)

        delta = pair.refresh_token_expires_at - pair.access_token_expires_at
        assert delta == timedelta(days=7) - timedelta(minutes=15)

    def test_refresh_token_ids_are_unique_within_the_same_second(self, codec):
        first = codec.generate_pair(CLAIMS)
        second = codec.generate_pair(CLAIMS)

        assert first.refresh_token != second.refresh_token
        assert codec.verify_refresh(first.refresh_token).token_id != codec.verify_refresh(second.refresh_token).token_id

    def test_refresh_token_has_no_audience(self, codec):
        pair = codec.generate_pair(CLAIMS)

        claims = jwt.get_unverified_claims(pair.refresh_token)

        assert "aud" not in claims
        assert claims["iss"] == ISSUER

    def test_access_token_rejected_by_refresh_verifier(self, codec):
        pair = codec.generate_pair(CLAIMS)

        with pytest.raises(InvalidTokenError):
            codec.verify_refresh(pair.access_token)

    def test_refresh_token_rejected_by_access_verifier(self, codec):
        pair = codec.generate_pair(CLAIMS)

        with pytest.raises(InvalidTokenError):
            codec.verify_access(pair.refresh_token)

    def test_type_claim_is_checked_even_with_the_right_secret(self, codec):
        token = jwt.encode(_access_payload(type="refresh"), codec.access_secret, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            codec.verify_access(token)

    def test_wrong_secret(self, codec):
        token = jwt.encode(_access_payload(), "some-other-secret-that-is-long-enough", algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            codec.verify_access(token)

    def test_wrong_issuer(self, codec):
        token = jwt.encode(_access_payload(iss="someone-else"), codec.access_secret, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            codec.verify_access(token)

    def test_wrong_audience(self, codec):
        token = jwt.encode(_access_payload(aud="other-api"), codec.access_secret, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            codec.verify_access(token)

    def test_expired_access_token(self, codec):
        past = int(time.time()) - 120
        token = jwt.encode(_access_payload(iat=past - 60, exp=past), codec.access_secret, algorithm="HS256")

        with pytest.raises(TokenExpiredError) as exc:
            codec.verify_access(token)
        assert exc.value.code == "TOKEN_EXPIRED"

    def test_expired_refresh_token(self, codec):
        past = int(time.time()) - 120
        payload = {"type": "refresh", "sub": "u-1", "jti": "x", "iss": ISSUER, "iat": past - 60, "exp": past}
        token = jwt.encode(payload, codec.refresh_secret, algorithm="HS256")

        with pytest.raises(TokenExpiredError):
            codec.verify_refresh(token)

    def test_missing_claims(self, codec):
        payload = _access_payload()
        del payload["role"]
        token = jwt.encode(payload, codec.access_secret, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            codec.verify_access(token)

    def test_garbage(self, codec):
        with pytest.raises(InvalidTokenError) as exc:
            codec.verify_access("not.a.jwt")
        assert exc.value.code == "INVALID_TOKEN"
        assert exc.value.status_code == 401

    def test_rejects_bad_duration(self):
        with pytest.raises(ValueError):
            TokenCodec(access_secret="a" * 32, refresh_secret="b" * 32, access_expiry="soon")
