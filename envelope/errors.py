# envelope/errors.py
"""
Error taxonomy for the envelope protocol.

Rejections carry a machine-readable ``reason`` for out-of-band logging only. The
verification pipeline collapses all of them into a single ``Decision.REJECT`` so a
remote peer cannot learn which gate failed.
"""


class EnvelopeError(Exception):
    """Base exception for the envelope package."""
    pass


class FramingError(EnvelopeError, ValueError):
    """Raised when a length-prefixed frame is truncated, oversized or has trailing bytes."""
    pass


# --- Rejections raised by the verification pipeline ---

class EnvelopeRejected(EnvelopeError):
    """Base exception for verification failures."""
    reason = "rejected"


class MalformedEnvelope(EnvelopeRejected):
    """Raised on framing, length, version or nonce-length violations during decode."""
    reason = "malformed_envelope"


class ContextInconsistent(EnvelopeRejected):
    """Raised when the rebuilt AAD does not match the decoded envelope context."""
    reason = "context_inconsistent"


class PolicyNotFound(EnvelopeRejected):
    """Raised when the policy store has no policy for (tenant_id, policy_id)."""
    reason = "policy_not_found"


class PolicyStoreUnavailable(EnvelopeRejected):
    """Raised when the policy store itself fails (timeout, I/O error)."""
    reason = "policy_store_unavailable"


class PolicyMismatch(EnvelopeRejected):
    """Raised when context fields or freshness fail the policy predicate."""
    reason = "policy_mismatch"


class SignatureInvalid(EnvelopeRejected):
    """Raised when the envelope signature does not verify."""
    reason = "signature_invalid"


class KeyEstablishmentFailed(EnvelopeRejected):
    """Raised when KEM decapsulation or payload key derivation fails."""
    reason = "key_establishment_failed"


class PayloadAuthenticationFailed(EnvelopeRejected):
    """Raised when AEAD decryption fails (tag mismatch, wrong key, tampered AAD)."""
    reason = "payload_authentication_failed"


# --- Collaborator failures raised by primitive adapters ---

class CryptoPrimitiveError(EnvelopeError):
    """Base exception for failures raised by KEM, signature and AEAD adapters."""
    pass


class KemError(CryptoPrimitiveError):
    pass


class SignatureError(CryptoPrimitiveError):
    pass


class AeadError(CryptoPrimitiveError):
    pass


# --- Supporting components ---

class PolicyBundleError(EnvelopeError):
    """Raised when a policy bundle cannot be signed, parsed or verified."""
    pass


class KeyManagerError(EnvelopeError):
    """Raised when party keys are missing or the key file cannot be written."""
    pass
