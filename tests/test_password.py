"""Password hashing and policy."""

import pytest

from portal_auth.security.password import PasswordService

STRONG = "Correct-Horse-9-Battery"


@pytest.fixture(scope="module")
def passwords() -> PasswordService:
    return PasswordService(rounds=10)


class TestHashing:
    def test_hash_and_verify(self, passwords):
        hashed = passwords.hash_password(STRONG)
        assert hashed.startswith("$2")
        assert hashed != STRONG
        assert passwords.verify_password(STRONG, hashed)
        assert not passwords.verify_password("correct-horse-9-battery", hashed)

    def test_salted(self, passwords):
        assert passwords.hash_password(STRONG) != passwords.hash_password(STRONG)

    def test_malformed_hash_never_matches(self, passwords):
        assert not passwords.verify_password(STRONG, "not-a-bcrypt-hash")

    def test_long_input_does_not_raise(self, passwords):
        long_password = "Aa1!" * 40
        hashed = passwords.hash_password(long_password)
        assert passwords.verify_password(long_password, hashed)

    def test_burn_verification_returns_nothing(self, passwords):
        assert passwords.burn_verification(STRONG) is None


class TestPolicy:
    def test_strong_password_accepted(self, passwords):
        assert passwords.validate_password_strength(STRONG) == (True, [])

    @pytest.mark.parametrize(
        ("candidate", "message"),
        [
            ("Sh0rt!", "at least 12 characters"),
            ("no-upper-case-9x", "uppercase"),
            ("NO-LOWER-CASE-9X", "lowercase"),
            ("No-Digits-Here-X", "digit"),
            ("NoSpecialChars9X", "special character"),
            ("MyPassword-2024x", "common patterns"),
            ("Aaaaa-Bbbbb-9xyz", "common patterns"),
        ],
    )
    def test_policy_violations(self, passwords, candidate, message):
        valid, errors = passwords.validate_password_strength(candidate)
        assert not valid
        assert any(message in error for error in errors)
