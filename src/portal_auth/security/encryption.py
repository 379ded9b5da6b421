"""AES-256-GCM encryption of secrets at rest, with key versioning for rotation."""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from portal_auth.config import get_settings


class EncryptionService:
    """Encrypts short secrets (TOTP seeds) using AES-256-GCM.

    New data is always sealed with the current key. Older ciphertexts remain
    readable as long as their key is listed in ENCRYPTION_KEY_LEGACY.

    Data format: magic (2 bytes) + key version (1 byte) + nonce (12 bytes) + ciphertext
    """

    MAGIC_BYTES = b"\xEC\x01"
    NONCE_SIZE = 12  # 96 bits for GCM
    HEADER_SIZE = len(MAGIC_BYTES) + 1

    def __init__(
        self,
        current_key: str | None = None,
        legacy_keys: list[str] | None = None,
    ) -> None:
        """Initialize encryption service with current key and optional legacy keys.

        Args:
            current_key: Current encryption key (base64-encoded, 32 bytes decoded)
            legacy_keys: Keys kept for decryption only (oldest to newest)
        """
        settings = get_settings()

        if current_key is None:
            current_key = settings.encryption_key
        if legacy_keys is None:
            legacy_keys = [
                key.strip() for key in settings.encryption_key_legacy.split(",") if key.strip()
            ]

        # Key version == index in the chain; the current key is always last
        self._key_chain = [self._decode_key(key) for key in legacy_keys]
        self._key_chain.append(self._decode_key(current_key))
        self._current_version = len(self._key_chain) - 1
        self._current_aesgcm = AESGCM(self._key_chain[-1])

    @staticmethod
    def _decode_key(key: str) -> bytes:
        """Decode and validate a base64-encoded encryption key.

        Raises:
            ValueError: If key is not valid base64 or not 32 bytes
        """
        padded_key = key + "=" * (-len(key) % 4)
        try:
            decoded = base64.urlsafe_b64decode(padded_key)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64-encoded encryption key: {type(e).__name__}") from e

        if len(decoded) != 32:
            raise ValueError("Encryption key must be 32 bytes (256 bits)")
        return decoded

    def encrypt_string(self, value: str) -> bytes:
        """Encrypt a string with the current key.

        Args:
            value: Plaintext

        Returns:
            Versioned ciphertext bytes
        """
        nonce = os.urandom(self.NONCE_SIZE)
        ciphertext = self._current_aesgcm.encrypt(nonce, value.encode("utf-8"), None)
        return self.MAGIC_BYTES + bytes([self._current_version]) + nonce + ciphertext

    def decrypt_string(self, encrypted_data: bytes) -> str:
        """Decrypt bytes produced by encrypt_string.

        The key named by the version byte is tried first, then every other
        known key (newest first) in case the chain was reordered.

        Raises:
            ValueError: If the data is malformed or no key can open it
        """
        if (
            len(encrypted_data) <= self.HEADER_SIZE + self.NONCE_SIZE
            or encrypted_data[: len(self.MAGIC_BYTES)] != self.MAGIC_BYTES
        ):
            raise ValueError("Invalid encrypted data")

        version = encrypted_data[len(self.MAGIC_BYTES)]
        nonce = encrypted_data[self.HEADER_SIZE : self.HEADER_SIZE + self.NONCE_SIZE]
        ciphertext = encrypted_data[self.HEADER_SIZE + self.NONCE_SIZE :]

        candidates = list(reversed(self._key_chain))
        if version < len(self._key_chain):
            preferred = self._key_chain[version]
            candidates.remove(preferred)
            candidates.insert(0, preferred)

        for key in candidates:
            try:
                return AESGCM(key).decrypt(nonce, ciphertext, None).decode("utf-8")
            except InvalidTag:
                continue

        raise ValueError("Decryption failed: no valid key found")

    def re_encrypt(self, encrypted_data: bytes) -> bytes:
        """Re-seal data with the current key (key rotation)."""
        return self.encrypt_string(self.decrypt_string(encrypted_data))


# Global instance
_encryption_service: EncryptionService | None = None


def get_encryption_service() -> EncryptionService:
    """Get or create the encryption service singleton."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service
