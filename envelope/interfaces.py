# envelope/interfaces.py
"""
Interfaces of the external collaborators the envelope core depends on.

Concrete adapters for the crypto primitives live in pqc_primitives; policy stores
live in envelope.policy and envelope.policy_bundle.
"""
import time
from typing import Optional, Protocol, Tuple, runtime_checkable

from .policy import Policy


@runtime_checkable
class PolicyStore(Protocol):
    def lookup(self, tenant_id: bytes, policy_id: bytes) -> Optional[Policy]:
        ...


@runtime_checkable
class Clock(Protocol):
    def now_ms(self) -> int:
        ...


@runtime_checkable
class Kem(Protocol):
    """Key encapsulation. decapsulate raises KemError on failure."""
    name: str
    hybrid: bool

    def keygen(self) -> Tuple[bytes, bytes]:
        ...

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        """Returns (ciphertext, shared_secret)."""
        ...

    def decapsulate(self, ciphertext: bytes, private_key: bytes) -> bytes:
        ...


@runtime_checkable
class SignatureScheme(Protocol):
    name: str

    def keygen(self) -> Tuple[bytes, bytes]:
        ...

    def sign(self, message: bytes, secret_key: bytes) -> bytes:
        ...

    def verify(self, message: bytes, signature: bytes, public_key: bytes) -> bool:
        ...


@runtime_checkable
class Aead(Protocol):
    """Authenticated encryption. open raises AeadError on failure."""
    name: str

    def seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> bytes:
        ...

    def open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes) -> bytes:
        ...


class SystemClock:
    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class FixedClock:
    """Clock pinned to a given instant; handy for replaying or testing verifications."""

    def __init__(self, now_ms: int):
        self._now_ms = now_ms

    def now_ms(self) -> int:
        return self._now_ms
