"""
Deterministic in-process collaborators for envelope tests.

The real Kyber768 / Dilithium3 adapters are pure Python and slow, so most pipeline
tests run against these stand-ins and only a handful exercise pqc_primitives.
"""
import hashlib
import hmac
import os
from typing import Optional, Tuple

from envelope.errors import KemError
from envelope.policy import Policy

TENANT = b"t1"
POLICY_ID = b"p1"
PATH = b"/a"
REQUIRED_ALGS = b"ML-KEM-768+ML-DSA-65+AES-256-GCM"

FAKE_KEM_CIPHERTEXT_SIZE = 32


class FakeKem:
    """Shared-key KEM: the public key equals the private key."""

    name = "fake-kem"

    def __init__(self, hybrid: bool = True):
        self.hybrid = hybrid

    def keygen(self) -> Tuple[bytes, bytes]:
        key = os.urandom(32)
        return key, key

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        ciphertext = os.urandom(FAKE_KEM_CIPHERTEXT_SIZE)
        return ciphertext, hashlib.sha256(public_key + ciphertext).digest()

    def decapsulate(self, ciphertext: bytes, private_key: bytes) -> bytes:
        if len(ciphertext) != FAKE_KEM_CIPHERTEXT_SIZE:
            raise KemError(f"fake ciphertext must be {FAKE_KEM_CIPHERTEXT_SIZE} bytes")
        return hashlib.sha256(private_key + ciphertext).digest()


class ExplodingKem(FakeKem):
    def decapsulate(self, ciphertext: bytes, private_key: bytes) -> bytes:
        raise RuntimeError("decapsulation backend crashed")


class HmacSigner:
    """MAC standing in for a signature scheme: the public key equals the secret key."""

    name = "hmac-sha256"

    def keygen(self) -> Tuple[bytes, bytes]:
        key = os.urandom(32)
        return key, key

    def sign(self, message: bytes, secret_key: bytes) -> bytes:
        return hmac.new(secret_key, message, hashlib.sha256).digest()

    def verify(self, message: bytes, signature: bytes, public_key: bytes) -> bool:
        return hmac.compare_digest(self.sign(message, public_key), signature)


class AcceptAnySigner(HmacSigner):
    """Lets every signature through so later gates can be reached."""

    def verify(self, message: bytes, signature: bytes, public_key: bytes) -> bool:
        return True


class FailingPolicyStore:
    def lookup(self, tenant_id: bytes, policy_id: bytes) -> Optional[Policy]:
        raise TimeoutError("policy backend timed out")


def make_policy(**overrides) -> Policy:
    fields = dict(
        tenant_id=TENANT,
        policy_id=POLICY_ID,
        path=PATH,
        required_algs=REQUIRED_ALGS,
        max_age_ms=5000,
    )
    fields.update(overrides)
    return Policy(**fields)
