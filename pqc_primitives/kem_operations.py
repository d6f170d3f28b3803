# pqc_primitives/kem_operations.py
import logging
from typing import Tuple

from kyber_py.kyber import Kyber768
from nacl.bindings import crypto_scalarmult
from nacl.public import PrivateKey

from envelope.errors import KemError
from envelope.hkdf import KeyPurpose, derive_key

logger = logging.getLogger(__name__)

KYBER768_PUBLIC_KEY_SIZE = 1184
KYBER768_SECRET_KEY_SIZE = 2400
KYBER768_CIPHERTEXT_SIZE = 1088
SHARED_SECRET_SIZE = 32
X25519_KEY_SIZE = 32


def kyber_encapsulate(recipient_public_key: bytes) -> Tuple[bytes, bytes]:
    """
    Performs KEM encapsulation using kyber-py (Kyber768).
    Returns (ciphertext, shared_secret).
    """
    if len(recipient_public_key) != KYBER768_PUBLIC_KEY_SIZE:
        raise KemError(f"Kyber768 public key must be {KYBER768_PUBLIC_KEY_SIZE} bytes, got {len(recipient_public_key)}")
    try:
        # kyber-py returns (shared_secret, ciphertext)
        shared_secret, ciphertext = Kyber768.encaps(recipient_public_key)
    except Exception as e:
        raise KemError(f"Kyber768 encapsulation failed: {e}") from e

    if len(ciphertext) != KYBER768_CIPHERTEXT_SIZE or len(shared_secret) != SHARED_SECRET_SIZE:
        raise KemError(
            f"Kyber768.encaps() produced unexpected sizes: ct={len(ciphertext)}, ss={len(shared_secret)}"
        )
    return ciphertext, shared_secret


def kyber_decapsulate(ciphertext: bytes, recipient_secret_key: bytes) -> bytes:
    """Performs KEM decapsulation using kyber-py (Kyber768). Returns the shared secret."""
    if len(ciphertext) != KYBER768_CIPHERTEXT_SIZE:
        raise KemError(f"Kyber768 ciphertext must be {KYBER768_CIPHERTEXT_SIZE} bytes, got {len(ciphertext)}")
    if len(recipient_secret_key) != KYBER768_SECRET_KEY_SIZE:
        raise KemError(f"Kyber768 secret key must be {KYBER768_SECRET_KEY_SIZE} bytes, got {len(recipient_secret_key)}")
    try:
        shared_secret = Kyber768.decaps(recipient_secret_key, ciphertext)
    except Exception as e:
        raise KemError(f"Kyber768 decapsulation failed: {e}") from e

    if len(shared_secret) != SHARED_SECRET_SIZE:
        raise KemError(f"Kyber768.decaps() produced a {len(shared_secret)}-byte shared secret")
    return shared_secret


def _x25519(secret_key: bytes, public_key: bytes) -> bytes:
    try:
        return crypto_scalarmult(secret_key, public_key)
    except Exception as e:
        # libsodium refuses low-order points (all-zero output)
        raise KemError(f"X25519 key agreement failed: {e}") from e


class Kyber768Kem:
    """Post-quantum only key establishment."""

    name = "ML-KEM-768"
    hybrid = False

    def keygen(self) -> Tuple[bytes, bytes]:
        return Kyber768.keygen()

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        return kyber_encapsulate(public_key)

    def decapsulate(self, ciphertext: bytes, private_key: bytes) -> bytes:
        return kyber_decapsulate(ciphertext, private_key)


class HybridX25519Kyber768Kem:
    """
    X25519 (PyNaCl) combined with Kyber768 (kyber-py).

    Keys and ciphertexts are the X25519 part (32 bytes) followed by the Kyber768
    part. The two shared secrets are combined with HKDF under the hybrid combiner
    label, salted with the full ciphertext, so breaking either primitive alone
    does not reveal the result.
    """

    name = "X25519+ML-KEM-768"
    hybrid = True

    def keygen(self) -> Tuple[bytes, bytes]:
        x_sk = PrivateKey.generate()
        kyber_pk, kyber_sk = Kyber768.keygen()
        return bytes(x_sk.public_key) + kyber_pk, bytes(x_sk) + kyber_sk

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        if len(public_key) != X25519_KEY_SIZE + KYBER768_PUBLIC_KEY_SIZE:
            raise KemError(f"Hybrid public key has unexpected length {len(public_key)}")
        x_pk, kyber_pk = public_key[:X25519_KEY_SIZE], public_key[X25519_KEY_SIZE:]

        ephemeral = PrivateKey.generate()
        ephemeral_pk = bytes(ephemeral.public_key)
        ss_classical = _x25519(bytes(ephemeral), x_pk)
        kyber_ct, ss_pq = kyber_encapsulate(kyber_pk)

        ciphertext = ephemeral_pk + kyber_ct
        return ciphertext, self._combine(ss_classical, ss_pq, ciphertext)

    def decapsulate(self, ciphertext: bytes, private_key: bytes) -> bytes:
        if len(ciphertext) != X25519_KEY_SIZE + KYBER768_CIPHERTEXT_SIZE:
            raise KemError(f"Hybrid ciphertext has unexpected length {len(ciphertext)}")
        if len(private_key) != X25519_KEY_SIZE + KYBER768_SECRET_KEY_SIZE:
            raise KemError(f"Hybrid private key has unexpected length {len(private_key)}")

        ephemeral_pk, kyber_ct = ciphertext[:X25519_KEY_SIZE], ciphertext[X25519_KEY_SIZE:]
        x_sk, kyber_sk = private_key[:X25519_KEY_SIZE], private_key[X25519_KEY_SIZE:]

        ss_classical = _x25519(x_sk, ephemeral_pk)
        ss_pq = kyber_decapsulate(kyber_ct, kyber_sk)
        return self._combine(ss_classical, ss_pq, ciphertext)

    @staticmethod
    def _combine(ss_classical: bytes, ss_pq: bytes, ciphertext: bytes) -> bytes:
        return derive_key(KeyPurpose.HYBRID_COMBINER, ss_classical + ss_pq, salt=ciphertext)

