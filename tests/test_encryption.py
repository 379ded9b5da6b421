"""Encryption of secrets at rest and key rotation."""

import base64

import pytest

from portal_auth.security.encryption import EncryptionService

OLD_KEY = base64.urlsafe_b64encode(b"o" * 32).decode()
NEW_KEY = base64.urlsafe_b64encode(b"n" * 32).decode()


class TestEncryption:
    def test_round_trip(self):
        service = EncryptionService(current_key=NEW_KEY, legacy_keys=[])
        sealed = service.encrypt_string("JBSWY3DPEHPK3PXP")
        assert b"JBSWY3DPEHPK3PXP" not in sealed
        assert service.decrypt_string(sealed) == "JBSWY3DPEHPK3PXP"

    def test_nonce_is_random(self):
        service = EncryptionService(current_key=NEW_KEY, legacy_keys=[])
        assert service.encrypt_string("x") != service.encrypt_string("x")

    def test_legacy_key_still_decrypts(self):
        old = EncryptionService(current_key=OLD_KEY, legacy_keys=[])
        sealed = old.encrypt_string("JBSWY3DPEHPK3PXP")

        rotated = EncryptionService(current_key=NEW_KEY, legacy_keys=[OLD_KEY])
        assert rotated.decrypt_string(sealed) == "JBSWY3DPEHPK3PXP"

        resealed = rotated.re_encrypt(sealed)
        assert EncryptionService(current_key=NEW_KEY, legacy_keys=[]).decrypt_string(resealed) == "JBSWY3DPEHPK3PXP"

    def test_unknown_key_fails(self):
        sealed = EncryptionService(current_key=OLD_KEY, legacy_keys=[]).encrypt_string("x")
        with pytest.raises(ValueError):
            EncryptionService(current_key=NEW_KEY, legacy_keys=[]).decrypt_string(sealed)

    def test_tampered_data_fails(self):
        service = EncryptionService(current_key=NEW_KEY, legacy_keys=[])
        sealed = bytearray(service.encrypt_string("x"))
        sealed[-1] ^= 0x01
        with pytest.raises(ValueError):
            service.decrypt_string(bytes(sealed))

    @pytest.mark.parametrize("key", ["short", base64.urlsafe_b64encode(b"k" * 16).decode()])
    def test_invalid_keys_rejected(self, key):
        with pytest.raises(ValueError):
            EncryptionService(current_key=key, legacy_keys=[])
