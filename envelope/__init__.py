# envelope/__init__.py
from .aad import Aad, ContextFlags, aad_for_envelope, build_aad
from .codec import ENVELOPE_VERSION, MAX_ENVELOPE_BYTES, NONCE_SIZE, Envelope, decode, encode, signed_message
from .errors import (
    EnvelopeError,
    EnvelopeRejected,
    KeyEstablishmentFailed,
    MalformedEnvelope,
    PayloadAuthenticationFailed,
    PolicyMismatch,
    PolicyNotFound,
    SignatureInvalid,
)
from .hkdf import KeyPurpose, derive_key, expand, extract
from .interfaces import FixedClock, SystemClock
from .pipeline import OpenedEnvelope, VerificationPipeline
from .policy import Decision, InMemoryPolicyStore, Policy, verify_policy
from .policy_bundle import PolicyDistributor, SignedPolicyBundle
from .sealer import EnvelopeSealer

__all__ = [
    "Aad",
    "ContextFlags",
    "Decision",
    "ENVELOPE_VERSION",
    "Envelope",
    "EnvelopeError",
    "EnvelopeRejected",
    "EnvelopeSealer",
    "FixedClock",
    "InMemoryPolicyStore",
    "KeyEstablishmentFailed",
    "KeyPurpose",
    "MAX_ENVELOPE_BYTES",
    "MalformedEnvelope",
    "NONCE_SIZE",
    "OpenedEnvelope",
    "PayloadAuthenticationFailed",
    "Policy",
    "PolicyDistributor",
    "PolicyMismatch",
    "PolicyNotFound",
    "SignatureInvalid",
    "SignedPolicyBundle",
    "SystemClock",
    "VerificationPipeline",
    "aad_for_envelope",
    "build_aad",
    "decode",
    "derive_key",
    "encode",
    "expand",
    "extract",
    "signed_message",
    "verify_policy",
]
