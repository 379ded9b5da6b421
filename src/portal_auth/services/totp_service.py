"""TOTP (Time-based One-Time Password) service for two-factor authentication."""

import base64
import hashlib
import hmac
import io
import secrets
import struct
import urllib.parse
from datetime import datetime

import qrcode

from portal_auth.config import get_settings
from portal_auth.security.encryption import get_encryption_service

# TOTP Constants (RFC 6238)
TOTP_DIGITS = 6
TOTP_PERIOD = 30  # seconds
TOTP_ALGORITHM = "SHA1"
TOTP_SECRET_LENGTH = 20  # 160 bits, standard for authenticator app compatibility


def is_totp_format(code: str) -> bool:
    """Whether a submitted code has the shape of a TOTP code (exactly 6 digits)."""
    return len(code) == TOTP_DIGITS and code.isascii() and code.isdigit()


class TotpService:
    """Service for TOTP generation and verification.

    Implements RFC 6238 (TOTP) over RFC 4226 (HOTP). The service is stateless:
    replay protection is enforced by the caller persisting the step returned
    from match_step.
    """

    def __init__(self, valid_window: int | None = None) -> None:
        """Initialize TOTP service.

        Args:
            valid_window: Steps accepted either side of the current one
                (defaults to TOTP_VALID_WINDOW from settings)
        """
        self.settings = get_settings()
        self.encryption = get_encryption_service()
        self.valid_window = (
            valid_window if valid_window is not None else self.settings.totp_valid_window
        )

    def generate_secret(self) -> str:
        """Generate a new TOTP secret key.

        Returns:
            Base32-encoded 160-bit secret without padding (RFC 4648)
        """
        random_bytes = secrets.token_bytes(TOTP_SECRET_LENGTH)
        return base64.b32encode(random_bytes).decode("ascii").rstrip("=")

    def encrypt_secret(self, secret: str) -> bytes:
        """Encrypt TOTP secret for database storage."""
        return self.encryption.encrypt_string(secret)

    def decrypt_secret(self, encrypted_data: bytes) -> str:
        """Decrypt TOTP secret from database."""
        return self.encryption.decrypt_string(encrypted_data)

    def get_provisioning_uri(
        self,
        secret: str,
        email: str,
        issuer: str | None = None,
    ) -> str:
        """Generate the otpauth:// provisioning URI for authenticator app enrollment.

        Format: otpauth://totp/{issuer}:{email}?secret=...&issuer=...&algorithm=SHA1&digits=6&period=30

        Args:
            secret: Base32-encoded TOTP secret
            email: Account name shown in the app
            issuer: Issuer name (default: APP_NAME from settings)

        Returns:
            OTPAuth URI string
        """
        if issuer is None:
            issuer = self.settings.app_name

        encoded_issuer = urllib.parse.quote(issuer, safe="")
        encoded_email = urllib.parse.quote(email, safe="")

        return (
            f"otpauth://totp/{encoded_issuer}:{encoded_email}"
            f"?secret={secret.rstrip('=')}"
            f"&issuer={encoded_issuer}"
            f"&algorithm={TOTP_ALGORITHM}"
            f"&digits={TOTP_DIGITS}"
            f"&period={TOTP_PERIOD}"
        )

    def generate_qr_code_data_uri(self, provisioning_uri: str) -> str:
        """Render the provisioning URI as a PNG QR code data URI.

        Args:
            provisioning_uri: OTPAuth URI to encode

        Returns:
            Data URI string (data:image/png;base64,...)
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(provisioning_uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")

        b64 = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{b64}"

    @staticmethod
    def time_step(now: datetime | float) -> int:
        """Time counter (number of 30-second periods since the epoch)."""
        timestamp = now.timestamp() if isinstance(now, datetime) else now
        return int(timestamp // TOTP_PERIOD)

    def code_for_step(self, secret: str, step: int) -> str:
        """Compute the HOTP value for a time counter.

        Args:
            secret: Base32-encoded TOTP secret
            step: Time counter

        Returns:
            Zero-padded 6-digit code
        """
        secret_padded = secret.upper() + "=" * (-len(secret) % 8)
        key = base64.b32decode(secret_padded)

        hmac_hash = hmac.new(key, struct.pack(">Q", step), hashlib.sha1).digest()

        # Dynamic truncation (RFC 4226 section 5.3)
        offset = hmac_hash[-1] & 0x0F
        binary = struct.unpack(">I", hmac_hash[offset : offset + 4])[0] & 0x7FFFFFFF

        return str(binary % (10**TOTP_DIGITS)).zfill(TOTP_DIGITS)

    def generate_totp(self, secret: str, now: datetime | float) -> str:
        """Generate the TOTP code valid at a given time.

        Args:
            secret: Base32-encoded TOTP secret
            now: Aware datetime or Unix timestamp

        Returns:
            6-digit TOTP code
        """
        return self.code_for_step(secret, self.time_step(now))

    def match_step(
        self,
        secret: str,
        code: str,
        now: datetime | float,
        last_used_step: int | None = None,
    ) -> int | None:
        """Find the time step a submitted code belongs to.

        The current step and valid_window steps either side are checked,
        newest first. Steps at or before last_used_step are never matched,
        which rejects replay of an accepted code.

        Args:
            secret: Base32-encoded TOTP secret
            code: Submitted code
            now: Current time
            last_used_step: Step of the last accepted code, if any

        Returns:
            The matching step, or None
        """
        code = code.strip()
        if not is_totp_format(code):
            return None

        current = self.time_step(now)
        for step in range(current + self.valid_window, current - self.valid_window - 1, -1):
            if last_used_step is not None and step <= last_used_step:
                break
            if hmac.compare_digest(code, self.code_for_step(secret, step)):
                return step
        return None

    def verify(
        self,
        secret: str,
        code: str,
        now: datetime | float,
        last_used_step: int | None = None,
    ) -> bool:
        """Verify a TOTP code with clock-skew tolerance and replay rejection."""
        return self.match_step(secret, code, now, last_used_step) is not None


# Global instance
_totp_service: TotpService | None = None


def get_totp_service() -> TotpService:
    """Get or create the TOTP service singleton."""
    global _totp_service
    if _totp_service is None:
        _totp_service = TotpService()
    return _totp_service
