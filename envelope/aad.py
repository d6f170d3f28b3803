# envelope/aad.py
"""
Canonical associated data (AAD) for the envelope AEAD.

Layout (big-endian):
  ver               u8
  tenant_id         u32 length + bytes
  policy_id         u32 length + bytes
  path              u32 length + bytes
  ts_epoch_ms       u64
  required_algs     u32 length + bytes
  hybrid            u8 (0x00 / 0x01)
  attest present    u8 (0x00 absent / 0x01 present)
  device_attest     u32 length + bytes, only when present

Every field boundary is self-describing, which makes to_bytes injective;
from_bytes is its exact inverse.
"""
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field

from .framing import FrameReader, MAX_U64, pack_bytes, pack_u8, pack_u64
from .errors import FramingError

if TYPE_CHECKING:
    from .codec import Envelope

ATTEST_ABSENT = 0x00
ATTEST_PRESENT = 0x01


class ContextFlags(BaseModel):
    """
    Protocol-level flags bound into the AAD but not carried in the envelope frame.
    Sender and verifier must agree on them; any difference breaks the AEAD tag.
    """
    model_config = ConfigDict(frozen=True, strict=True)

    required_algs: bytes = Field(..., description="Algorithm suite the sender claims to use.")
    hybrid: bool = Field(True, description="Classical + post-quantum key establishment in effect.")
    device_attest_hash: Optional[bytes] = Field(None, description="Optional device attestation digest.")


class Aad(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)

    ver: int = Field(..., ge=0, le=0xFF)
    tenant_id: bytes
    policy_id: bytes
    path: bytes
    ts_epoch_ms: int = Field(..., ge=0, le=MAX_U64)
    required_algs: bytes
    hybrid: bool
    device_attest_hash: Optional[bytes] = None

    def to_bytes(self) -> bytes:
        parts = [
            pack_u8(self.ver),
            pack_bytes(self.tenant_id),
            pack_bytes(self.policy_id),
            pack_bytes(self.path),
            pack_u64(self.ts_epoch_ms),
            pack_bytes(self.required_algs),
            pack_u8(1 if self.hybrid else 0),
        ]
        if self.device_attest_hash is None:
            parts.append(pack_u8(ATTEST_ABSENT))
        else:
            parts.append(pack_u8(ATTEST_PRESENT))
            parts.append(pack_bytes(self.device_attest_hash))
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Aad":
        reader = FrameReader(data)
        ver = reader.read_u8("ver")
        tenant_id = reader.read_bytes("tenant_id")
        policy_id = reader.read_bytes("policy_id")
        path = reader.read_bytes("path")
        ts_epoch_ms = reader.read_u64("ts_epoch_ms")
        required_algs = reader.read_bytes("required_algs")

        hybrid_tag = reader.read_u8("hybrid")
        if hybrid_tag not in (0, 1):
            raise FramingError(f"Invalid hybrid tag {hybrid_tag:#04x}")

        attest_tag = reader.read_u8("device_attest discriminant")
        if attest_tag == ATTEST_ABSENT:
            device_attest_hash = None
        elif attest_tag == ATTEST_PRESENT:
            device_attest_hash = reader.read_bytes("device_attest_hash")
        else:
            raise FramingError(f"Invalid device attestation discriminant {attest_tag:#04x}")
        reader.finish()

        return cls(
            ver=ver,
            tenant_id=tenant_id,
            policy_id=policy_id,
            path=path,
            ts_epoch_ms=ts_epoch_ms,
            required_algs=required_algs,
            hybrid=bool(hybrid_tag),
            device_attest_hash=device_attest_hash,
        )


def build_aad(
    ver: int,
    tenant_id: bytes,
    policy_id: bytes,
    path: bytes,
    ts_epoch_ms: int,
    required_algs: bytes,
    hybrid: bool,
    device_attest_hash: Optional[bytes] = None,
) -> Aad:
    return Aad(
        ver=ver,
        tenant_id=tenant_id,
        policy_id=policy_id,
        path=path,
        ts_epoch_ms=ts_epoch_ms,
        required_algs=required_algs,
        hybrid=hybrid,
        device_attest_hash=device_attest_hash,
    )


def aad_for_envelope(envelope: "Envelope", flags: ContextFlags) -> Aad:
    """Derive the AAD from a decoded envelope's context fields plus the protocol flags."""
    return build_aad(
        ver=envelope.version,
        tenant_id=envelope.tenant_id,
        policy_id=envelope.policy_id,
        path=envelope.path,
        ts_epoch_ms=envelope.ts_epoch_ms,
        required_algs=flags.required_algs,
        hybrid=flags.hybrid,
        device_attest_hash=flags.device_attest_hash,
    )
