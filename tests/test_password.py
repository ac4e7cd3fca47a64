"""Password hashing and strength rules."""

from passlib.hash import bcrypt

from migestion.core.security_password import PasswordHasher, validate_password_strength


class TestStrength:
    def test_strong_password_has_no_violations(self):
        assert validate_password_strength("Passw0rd") == []

    def test_reports_every_broken_rule(self):
        violations = validate_password_strength("abc")

        assert violations == [
            "Password must be at least 8 characters long",
            "Password must contain at least one uppercase letter",
            "Password must contain at least one number",
        ]

    def test_empty_password_breaks_all_rules(self):
        assert len(validate_password_strength("")) == 4

    def test_missing_lowercase(self):
        assert validate_password_strength("PASSW0RD1") == ["Password must contain at least one lowercase letter"]


class TestHasher:
    def test_hash_verifies(self, hasher):
        stored = hasher.hash("Passw0rd")

        assert stored != "Passw0rd"
        assert stored.startswith("$2b$10$")
        assert hasher.verify("Passw0rd", stored) is True

    def test_other_password_does_not_verify(self, hasher):
        stored = hasher.hash("Passw0rd")

        assert hasher.verify("Passw0rd!", stored) is False
        assert hasher.verify("", stored) is False

    def test_hashes_are_salted(self, hasher):
        assert hasher.hash("Passw0rd") != hasher.hash("Passw0rd")

    def test_malformed_hash_returns_false(self, hasher):
        assert hasher.verify("Passw0rd", "not-a-hash") is False

    def test_weaker_hash_is_upgraded(self, hasher):
        weak = bcrypt.using(rounds=4).hash("Passw0rd")

        ok, new_hash = hasher.verify_and_maybe_upgrade("Passw0rd", weak)

        assert ok is True
        assert new_hash is not None and new_hash.startswith("$2b$10$")
        assert hasher.verify("Passw0rd", new_hash)

    def test_current_hash_is_not_upgraded(self, hasher):
        ok, new_hash = hasher.verify_and_maybe_upgrade("Passw0rd", hasher.hash("Passw0rd"))

        assert ok is True
        assert new_hash is None

    def test_failed_verify_never_upgrades(self, hasher):
        weak = bcrypt.using(rounds=4).hash("Passw0rd")

        assert hasher.verify_and_maybe_upgrade("nope", weak) == (False, None)

    def test_higher_rounds_setting(self):
        stored = PasswordHasher(rounds=11).hash("Passw0rd")

        assert stored.startswith("$2b$11$")
