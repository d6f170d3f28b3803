# envelope/hkdf.py
"""
HKDF-SHA256 (RFC 5869) with purpose-separated info labels.

Keys for different purposes are derived under distinct labels from KeyPurpose.
The labels are a closed, versioned set: callers pick a member, they never pass
free-form info bytes that could come from a peer.
"""
from enum import Enum

from Crypto.Hash import HMAC, SHA256

from .framing import frame_fields

HASH_LEN = SHA256.digest_size
MAX_OUTPUT_LENGTH = 255 * HASH_LEN


class KeyPurpose(Enum):
    PAYLOAD_KEY = b"hybrid-envelope/v1/payload-key"
    SIGNING_CONTEXT = b"hybrid-envelope/v1/signing-context"
    HYBRID_COMBINER = b"hybrid-envelope/v1/hybrid-kem-combiner"


def _hmac_sha256(key: bytes, data: bytes) -> bytes:
    return HMAC.new(key, msg=data, digestmod=SHA256).digest()


def extract(salt: bytes, ikm: bytes) -> bytes:
    """HKDF-Extract. An empty salt is equivalent to HASH_LEN zero bytes."""
    if not salt:
        salt = b"\x00" * HASH_LEN
    return _hmac_sha256(salt, ikm)


def expand(prk: bytes, info: bytes, length: int) -> bytes:
    """HKDF-Expand. Rejects lengths above 255 * HASH_LEN instead of truncating."""
    if len(prk) != HASH_LEN:
        raise ValueError(f"PRK must be {HASH_LEN} bytes, got {len(prk)}")
    if length < 0 or length > MAX_OUTPUT_LENGTH:
        raise ValueError(f"HKDF output length must be between 0 and {MAX_OUTPUT_LENGTH}, got {length}")

    okm = b""
    block = b""
    counter = 1
    while len(okm) < length:
        block = _hmac_sha256(prk, block + info + bytes([counter]))
        okm += block
        counter += 1
    return okm[:length]


def derive_key(purpose: KeyPurpose, ikm: bytes, salt: bytes = b"", length: int = HASH_LEN) -> bytes:
    if not isinstance(purpose, KeyPurpose):
        raise TypeError(f"purpose must be a KeyPurpose, got {type(purpose).__name__}")
    return expand(extract(salt, ikm), purpose.value, length)


def derive_payload_key(shared_secret: bytes, tenant_id: bytes, policy_id: bytes, path: bytes) -> bytes:
    """AEAD key for one envelope, salted with its (tenant, policy, path) scope."""
    salt = frame_fields(tenant_id, policy_id, path)
    return derive_key(KeyPurpose.PAYLOAD_KEY, shared_secret, salt=salt)


def derive_signing_context(aad_bytes: bytes) -> bytes:
    """Label-separated commitment to the AAD, included in the signed message."""
    return derive_key(KeyPurpose.SIGNING_CONTEXT, aad_bytes)
