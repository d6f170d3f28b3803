# envelope/codec.py
"""
Binary wire format of the envelope.

Frame (big-endian):
  version          u8 (must be 1)
  tenant_id        u32 length + bytes
  policy_id        u32 length + bytes
  path             u32 length + bytes
  ts_epoch_ms      u64
  nonce            12 bytes
  kem_ciphertext   u32 length + bytes
  signature        u32 length + bytes
  ciphertext       u32 length + bytes

decode() is total: any input either yields an Envelope that re-encodes to exactly
the same bytes, or raises MalformedEnvelope.
"""
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import FramingError, MalformedEnvelope
from .framing import FrameReader, LENGTH_PREFIX, MAX_U64, U64, U8, pack_bytes, pack_u8, pack_u64
from .hkdf import derive_signing_context

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1
NONCE_SIZE = 12
MAX_ENVELOPE_BYTES = 1 << 20  # 1 MiB hard ceiling for one frame

SIGNED_MESSAGE_LABEL = b"hybrid-envelope/v1/signed-message"

_FIXED_OVERHEAD = U8.size + U64.size + NONCE_SIZE + 6 * LENGTH_PREFIX.size


class Envelope(BaseModel):
    """
    One hybrid-encrypted, policy-bound message.
    Construction validates every field; an existing Envelope is always encodable.
    """
    model_config = ConfigDict(frozen=True, strict=True)

    version: int = Field(ENVELOPE_VERSION, description="Protocol version, only 1 is defined.")
    tenant_id: bytes = Field(..., description="Tenant namespace.")
    policy_id: bytes = Field(..., description="Policy that governs this message.")
    path: bytes = Field(..., description="Resource path the message is scoped to.")
    ts_epoch_ms: int = Field(..., ge=0, le=MAX_U64, description="Creation time, ms since epoch.")
    nonce: bytes = Field(..., description="96-bit AEAD nonce.")
    kem_ciphertext: bytes = Field(b"", description="KEM encapsulation output.")
    signature: bytes = Field(b"", description="Signature over the signed message.")
    ciphertext: bytes = Field(b"", description="AEAD ciphertext || tag.")

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != ENVELOPE_VERSION:
            raise ValueError(f"Unsupported envelope version {v}; only {ENVELOPE_VERSION} is defined")
        return v

    @field_validator("nonce")
    @classmethod
    def validate_nonce(cls, v: bytes) -> bytes:
        if len(v) != NONCE_SIZE:
            raise ValueError(f"Nonce must be exactly {NONCE_SIZE} bytes, got {len(v)}")
        return v

    @model_validator(mode="after")
    def validate_size(self) -> "Envelope":
        size = self.encoded_size()
        if size > MAX_ENVELOPE_BYTES:
            raise ValueError(f"Encoded envelope would be {size} bytes, above the {MAX_ENVELOPE_BYTES} byte limit")
        return self

    def encoded_size(self) -> int:
        return _FIXED_OVERHEAD + sum(
            len(field)
            for field in (
                self.tenant_id, self.policy_id, self.path,
                self.kem_ciphertext, self.signature, self.ciphertext,
            )
        )

    def with_signature(self, signature: bytes) -> "Envelope":
        return Envelope(**{**self.model_dump(), "signature": signature})


def encode(envelope: Envelope) -> bytes:
    return b"".join([
        pack_u8(envelope.version),
        pack_bytes(envelope.tenant_id),
        pack_bytes(envelope.policy_id),
        pack_bytes(envelope.path),
        pack_u64(envelope.ts_epoch_ms),
        envelope.nonce,
        pack_bytes(envelope.kem_ciphertext),
        pack_bytes(envelope.signature),
        pack_bytes(envelope.ciphertext),
    ])


def decode(data: bytes, max_size: int = MAX_ENVELOPE_BYTES) -> Envelope:
    """Parse one frame. Raises MalformedEnvelope and nothing else."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise MalformedEnvelope(f"Envelope must be bytes, got {type(data).__name__}")
    limit = min(max_size, MAX_ENVELOPE_BYTES)
    if len(data) > limit:
        raise MalformedEnvelope(f"Envelope is {len(data)} bytes, above the {limit} byte limit")

    try:
        reader = FrameReader(data)
        version = reader.read_u8("version")
        if version != ENVELOPE_VERSION:
            raise MalformedEnvelope(f"Unsupported envelope version {version}")
        tenant_id = reader.read_bytes("tenant_id")
        policy_id = reader.read_bytes("policy_id")
        path = reader.read_bytes("path")
        ts_epoch_ms = reader.read_u64("ts_epoch_ms")
        nonce = reader.read_fixed(NONCE_SIZE, "nonce")
        kem_ciphertext = reader.read_bytes("kem_ciphertext")
        signature = reader.read_bytes("signature")
        ciphertext = reader.read_bytes("ciphertext")
        reader.finish()

        return Envelope(
            version=version,
            tenant_id=tenant_id,
            policy_id=policy_id,
            path=path,
            ts_epoch_ms=ts_epoch_ms,
            nonce=nonce,
            kem_ciphertext=kem_ciphertext,
            signature=signature,
            ciphertext=ciphertext,
        )
    except FramingError as e:
        logger.debug(f"Rejected {len(data)}-byte frame: {e}")
        raise MalformedEnvelope(str(e)) from e
    except ValidationError as e:
        logger.debug(f"Rejected {len(data)}-byte frame with invalid fields: {e}")
        raise MalformedEnvelope(f"Envelope fields failed validation: {e.error_count()} error(s)") from e


def signed_message(envelope: Envelope, aad_bytes: bytes) -> bytes:
    """
    The exact byte string the sender signs and the verifier checks.

    Covers the AAD (and a label-separated digest of it), the nonce, the KEM
    ciphertext and the AEAD ciphertext: every frame field except the signature.
    """
    return b"".join([
        SIGNED_MESSAGE_LABEL,
        pack_bytes(aad_bytes),
        derive_signing_context(aad_bytes),
        envelope.nonce,
        pack_bytes(envelope.kem_ciphertext),
        pack_bytes(envelope.ciphertext),
    ])
