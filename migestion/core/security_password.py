# migestion/core/security_password.py
from __future__ import annotations

import re
from typing import List, Tuple

from passlib.context import CryptContext

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

_STRENGTH_RULES = (
    (lambda p: len(p) >= PASSWORD_MIN_LENGTH, f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"),
    (lambda p: re.search(r"[A-Z]", p) is not None, "Password must contain at least one uppercase letter"),
    (lambda p: re.search(r"[a-z]", p) is not None, "Password must contain at least one lowercase letter"),
    (lambda p: re.search(r"\d", p) is not None, "Password must contain at least one number"),
)


def validate_password_strength(plain: str) -> List[str]:
    """Every rule the password breaks; empty when it is acceptable."""
    return [message for check, message in _STRENGTH_RULES if not check(plain)]


class PasswordHasher:
    """bcrypt hashing with a configurable cost factor.

    Hashes made with fewer rounds than the current setting still verify, and
    ``verify_and_maybe_upgrade`` hands back a replacement hash for them.
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__default_rounds=rounds,
            bcrypt__min_rounds=rounds,
        )

    def hash(self, plain: str) -> str:
        return self._context.hash(plain)

    def verify(self, plain: str, stored_hash: str) -> bool:
        try:
            return self._context.verify(plain, stored_hash)
        except (ValueError, TypeError):
            # unknown or malformed hash
            return False

    def dummy_verify(self) -> bool:
        """Burn the same time as a real check, for lookups that found no user."""
        return self._context.dummy_verify()

    def verify_and_maybe_upgrade(self, plain: str, stored_hash: str) -> Tuple[bool, str | None]:
        if not self.verify(plain, stored_hash):
            return False, None
        if self._context.needs_update(stored_hash):
            return True, self.hash(plain)
        return True, None
