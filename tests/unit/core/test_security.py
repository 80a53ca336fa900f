"""Unit tests for webhook signatures and secret encryption."""

from cryptography.fernet import Fernet

from app.core.encryption import SecretEncryption
from app.core.security import compute_signature, verify_signature

SECRET = "whsec_test"
BODY = b'{"id":"evt1","type":"transaction.completed","data":{"id":"txn_1"}}'


class TestVerifySignature:
    def test_valid_signature(self):
        assert verify_signature(SECRET, BODY, compute_signature(SECRET, BODY)) is True

    def test_flipped_byte_is_rejected(self):
        signature = compute_signature(SECRET, BODY)
        tampered = bytearray(BODY)
        tampered[10] ^= 0x01
        assert verify_signature(SECRET, bytes(tampered), signature) is False

    def test_missing_signature(self):
        assert verify_signature(SECRET, BODY, None) is False
        assert verify_signature(SECRET, BODY, "") is False

    def test_wrong_secret(self):
        assert verify_signature("other", BODY, compute_signature(SECRET, BODY)) is False

    def test_uppercase_hex_accepted(self):
        assert verify_signature(SECRET, BODY, compute_signature(SECRET, BODY).upper()) is True


class TestSecretEncryption:
    def test_round_trip(self):
        encryption = SecretEncryption(Fernet.generate_key().decode())
        ciphertext = encryption.encrypt("whsec_123")
        assert ciphertext != "whsec_123"
        assert encryption.decrypt(ciphertext) == "whsec_123"

    def test_disabled_passes_through(self):
        encryption = SecretEncryption("")
        assert encryption.is_enabled is False
        assert encryption.encrypt("whsec_123") == "whsec_123"

    def test_legacy_plaintext_is_returned_unchanged(self):
        encryption = SecretEncryption(Fernet.generate_key().decode())
        assert encryption.decrypt("whsec_plain") == "whsec_plain"
