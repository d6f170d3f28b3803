# pqc_primitives/symmetric_ciphers.py
import logging

from Crypto.Cipher import AES

from envelope.errors import AeadError

logger = logging.getLogger(__name__)

AES_KEY_SIZE = 32
GCM_NONCE_SIZE = 12
GCM_TAG_SIZE = 16


def aes_gcm_encrypt(plaintext_bytes: bytes, aes_key_bytes: bytes, nonce_bytes: bytes, aad_bytes: bytes = b"") -> bytes:
    """
    Encrypts with AES-256-GCM under an explicit nonce and associated data.
    Returns ciphertext || 16-byte tag.
    """
    if len(aes_key_bytes) != AES_KEY_SIZE:
        raise AeadError(f"AES-256-GCM needs a {AES_KEY_SIZE}-byte key, got {len(aes_key_bytes)}")
    if len(nonce_bytes) != GCM_NONCE_SIZE:
        raise AeadError(f"AES-256-GCM needs a {GCM_NONCE_SIZE}-byte nonce, got {len(nonce_bytes)}")
    try:
        cipher = AES.new(aes_key_bytes, AES.MODE_GCM, nonce=nonce_bytes, mac_len=GCM_TAG_SIZE)
        cipher.update(aad_bytes)
        ciphertext_bytes, tag_bytes = cipher.encrypt_and_digest(plaintext_bytes)
    except (TypeError, ValueError) as crypto_error:
        raise AeadError(f"AES-GCM encryption failed: {crypto_error}") from crypto_error
    return ciphertext_bytes + tag_bytes


def aes_gcm_decrypt(sealed_bytes: bytes, aes_key_bytes: bytes, nonce_bytes: bytes, aad_bytes: bytes = b"") -> bytes:
    """Decrypts ciphertext || tag produced by aes_gcm_encrypt. Raises AeadError on any failure."""
    if len(aes_key_bytes) != AES_KEY_SIZE:
        raise AeadError(f"AES-256-GCM needs a {AES_KEY_SIZE}-byte key, got {len(aes_key_bytes)}")
    if len(nonce_bytes) != GCM_NONCE_SIZE:
        raise AeadError(f"AES-256-GCM needs a {GCM_NONCE_SIZE}-byte nonce, got {len(nonce_bytes)}")
    if len(sealed_bytes) < GCM_TAG_SIZE:
        raise AeadError("AES-GCM ciphertext shorter than its tag")

    ciphertext_bytes = sealed_bytes[:-GCM_TAG_SIZE]
    tag_bytes = sealed_bytes[-GCM_TAG_SIZE:]
    try:
        cipher = AES.new(aes_key_bytes, AES.MODE_GCM, nonce=nonce_bytes, mac_len=GCM_TAG_SIZE)
        cipher.update(aad_bytes)
        return cipher.decrypt_and_verify(ciphertext_bytes, tag_bytes)
    except (TypeError, ValueError) as crypto_error:
        # PyCryptodome reports a tag mismatch as ValueError("MAC check failed")
        logger.debug(f"AES-GCM decryption failed (crypto error or tag mismatch): {crypto_error}")
        raise AeadError("AES-GCM authentication failed") from crypto_error


class AesGcmAead:
    """AES-256-GCM adapter for the envelope Aead interface."""

    name = "AES-256-GCM"
    key_size = AES_KEY_SIZE

    def seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> bytes:
        return aes_gcm_encrypt(plaintext, key, nonce, aad)

    def open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes) -> bytes:
        return aes_gcm_decrypt(ciphertext, key, nonce, aad)
