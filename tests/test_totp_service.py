"""TOTP generation, verification and enrollment data."""

import base64
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from portal_auth.services.totp_service import TotpService, is_totp_format
from tests.conftest import NOW

# RFC 6238 appendix B seed ("12345678901234567890") in base32
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.fixture
def totp() -> TotpService:
    return TotpService(valid_window=1)


class TestCodeGeneration:
    """Codes match the published SHA-1 test vectors (last six digits)."""

    @pytest.mark.parametrize(
        ("timestamp", "expected"),
        [
            (59, "287082"),
            (1111111109, "081804"),
            (1234567890, "005924"),
            (2000000000, "279037"),
        ],
    )
    def test_rfc_vectors(self, totp, timestamp, expected):
        assert totp.generate_totp(RFC_SECRET, timestamp) == expected

    def test_time_step_accepts_datetime(self, totp):
        assert totp.time_step(NOW) == int(NOW.timestamp()) // 30

    def test_code_is_zero_padded(self, totp):
        # 1234567890 yields a code with leading zeros
        assert len(totp.generate_totp(RFC_SECRET, 1234567890)) == 6


class TestVerification:
    def test_current_code_accepted(self, totp):
        secret = totp.generate_secret()
        code = totp.generate_totp(secret, NOW)
        assert totp.match_step(secret, code, NOW) == totp.time_step(NOW)

    def test_adjacent_steps_accepted(self, totp):
        secret = totp.generate_secret()
        previous = totp.generate_totp(secret, NOW - timedelta(seconds=30))
        following = totp.generate_totp(secret, NOW + timedelta(seconds=30))
        assert totp.verify(secret, previous, NOW)
        assert totp.verify(secret, following, NOW)

    def test_code_outside_window_rejected(self, totp):
        secret = totp.generate_secret()
        stale = totp.generate_totp(secret, NOW - timedelta(seconds=90))
        # Guard against a coincidental match within the window
        window = {totp.generate_totp(secret, NOW + timedelta(seconds=30 * d)) for d in (-1, 0, 1)}
        if stale not in window:
            assert not totp.verify(secret, stale, NOW)

    def test_zero_window_accepts_only_current_step(self):
        strict = TotpService(valid_window=0)
        secret = strict.generate_secret()
        current = strict.generate_totp(secret, NOW)
        previous = strict.generate_totp(secret, NOW - timedelta(seconds=30))
        assert strict.verify(secret, current, NOW)
        if previous != current:
            assert not strict.verify(secret, previous, NOW)

    def test_replayed_step_rejected(self, totp):
        secret = totp.generate_secret()
        code = totp.generate_totp(secret, NOW)
        step = totp.time_step(NOW)
        assert totp.match_step(secret, code, NOW, last_used_step=step) is None

    def test_newer_step_accepted_after_use(self, totp):
        secret = totp.generate_secret()
        later = NOW + timedelta(seconds=30)
        code = totp.generate_totp(secret, later)
        step = totp.time_step(NOW)
        assert totp.match_step(secret, code, later, last_used_step=step) == step + 1

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef", "12 456", "１２３４５６"])
    def test_malformed_codes_rejected(self, totp, code):
        assert not totp.verify(RFC_SECRET, code, 59)

    def test_surrounding_whitespace_ignored(self, totp):
        assert totp.verify(RFC_SECRET, " 287082 ", 59)


class TestFormat:
    @pytest.mark.parametrize(("code", "expected"), [("123456", True), ("12345", False), ("ABCD-EFGH", False)])
    def test_is_totp_format(self, code, expected):
        assert is_totp_format(code) is expected


class TestEnrollmentData:
    def test_secret_is_160_bit_base32(self, totp):
        secret = totp.generate_secret()
        assert "=" not in secret
        decoded = base64.b32decode(secret + "=" * (-len(secret) % 8))
        assert len(decoded) == 20

    def test_secrets_are_unique(self, totp):
        assert len({totp.generate_secret() for _ in range(20)}) == 20

    def test_secret_encryption_round_trip(self, totp):
        secret = totp.generate_secret()
        encrypted = totp.encrypt_secret(secret)
        assert secret.encode() not in encrypted
        assert totp.decrypt_secret(encrypted) == secret

    def test_provisioning_uri(self, totp):
        uri = totp.get_provisioning_uri("JBSWY3DPEHPK3PXP", "bob@example.com", issuer="Acme Portal")
        parsed = urlparse(uri)
        params = parse_qs(parsed.query)

        assert parsed.scheme == "otpauth"
        assert parsed.netloc == "totp"
        assert parsed.path == "/Acme%20Portal:bob%40example.com"
        assert params["secret"] == ["JBSWY3DPEHPK3PXP"]
        assert params["issuer"] == ["Acme Portal"]
        assert params["digits"] == ["6"]
        assert params["period"] == ["30"]

    def test_qr_code_data_uri(self, totp):
        data_uri = totp.generate_qr_code_data_uri("otpauth://totp/x:y?secret=JBSWY3DPEHPK3PXP")
        prefix = "data:image/png;base64,"
        assert data_uri.startswith(prefix)
        assert base64.b64decode(data_uri[len(prefix):]).startswith(b"\x89PNG")
