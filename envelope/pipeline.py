# envelope/pipeline.py
"""
Fail-closed verification of received envelopes.

Gates, in order, each proceeding only on success:
1. Decode the frame
2. Rebuild the AAD from the decoded context and check it is self-consistent
3. Look up the policy and run the policy predicate
4. Verify the sender's signature over the signed message
5. Decapsulate the KEM ciphertext and derive the payload key
6. AEAD-decrypt the payload under the AAD

verify() and unpack() expose only the binary outcome. The failing gate is logged
for operators but never returned, so a remote peer cannot tell which check failed.
open_envelope() raises the specific rejection and is meant for in-process
diagnostics only.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .aad import Aad, ContextFlags, aad_for_envelope
from .codec import MAX_ENVELOPE_BYTES, Envelope, decode, signed_message
from .errors import (
    AeadError,
    ContextInconsistent,
    EnvelopeRejected,
    FramingError,
    KemError,
    KeyEstablishmentFailed,
    PayloadAuthenticationFailed,
    PolicyMismatch,
    PolicyNotFound,
    PolicyStoreUnavailable,
    SignatureInvalid,
)
from .hkdf import derive_payload_key
from .interfaces import Aead, Clock, Kem, PolicyStore, SignatureScheme, SystemClock
from .policy import Decision, Policy, verify_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenedEnvelope:
    envelope: Envelope
    policy: Policy
    plaintext: bytes


class VerificationPipeline:
    """
    Verifies envelopes addressed to one recipient key from one sender key.
    Holds only immutable configuration and can be shared between threads.
    """

    def __init__(
        self,
        policy_store: PolicyStore,
        kem: Kem,
        signature_scheme: SignatureScheme,
        aead: Aead,
        kem_private_key: bytes,
        signer_public_key: bytes,
        clock: Optional[Clock] = None,
        max_envelope_bytes: int = MAX_ENVELOPE_BYTES,
    ):
        self.policy_store = policy_store
        self.kem = kem
        self.signature_scheme = signature_scheme
        self.aead = aead
        self.kem_private_key = kem_private_key
        self.signer_public_key = signer_public_key
        self.clock = clock or SystemClock()
        self.max_envelope_bytes = max_envelope_bytes

    # --- uniform outcome ---

    def verify(self, data: bytes, flags: ContextFlags) -> Decision:
        return Decision.ACCEPT if self._evaluate(data, flags) is not None else Decision.REJECT

    def unpack(self, data: bytes, flags: ContextFlags) -> Optional[OpenedEnvelope]:
        """The opened envelope on Accept, None on Reject."""
        return self._evaluate(data, flags)

    def _evaluate(self, data: bytes, flags: ContextFlags) -> Optional[OpenedEnvelope]:
        try:
            opened = self.open_envelope(data, flags)
        except EnvelopeRejected as e:
            logger.warning(f"VERIFY: REJECT ({e.reason}): {e}")
            return None
        except Exception as e:
            logger.exception(f"VERIFY: REJECT (internal_error): unexpected error during verification: {e}")
            return None
        logger.info(
            f"VERIFY: ACCEPT tenant={opened.envelope.tenant_id!r} policy={opened.envelope.policy_id!r} "
            f"path={opened.envelope.path!r} ({len(opened.plaintext)} bytes)"
        )
        return opened

    # --- gates ---

    def open_envelope(self, data: bytes, flags: ContextFlags) -> OpenedEnvelope:
        envelope = decode(data, self.max_envelope_bytes)
        aad, aad_bytes = self._check_context(envelope, flags)
        policy = self._check_policy(aad)
        self._check_signature(envelope, aad_bytes)
        payload_key = self._establish_key(envelope, flags)
        plaintext = self._decrypt_payload(envelope, payload_key, aad_bytes)
        return OpenedEnvelope(envelope=envelope, policy=policy, plaintext=plaintext)

    def _check_context(self, envelope: Envelope, flags: ContextFlags) -> Tuple[Aad, bytes]:
        aad = aad_for_envelope(envelope, flags)
        aad_bytes = aad.to_bytes()
        try:
            reparsed = Aad.from_bytes(aad_bytes)
        except FramingError as e:
            raise ContextInconsistent(f"Rebuilt AAD does not parse: {e}") from e

        header = (envelope.version, envelope.tenant_id, envelope.policy_id, envelope.path, envelope.ts_epoch_ms)
        bound = (reparsed.ver, reparsed.tenant_id, reparsed.policy_id, reparsed.path, reparsed.ts_epoch_ms)
        if reparsed != aad or bound != header:
            raise ContextInconsistent("Rebuilt AAD does not match the decoded envelope context")
        logger.debug(f"VERIFY: context bound into {len(aad_bytes)} AAD bytes")
        return aad, aad_bytes

    def _check_policy(self, aad: Aad) -> Policy:
        try:
            policy = self.policy_store.lookup(aad.tenant_id, aad.policy_id)
        except Exception as e:
            raise PolicyStoreUnavailable(f"Policy store lookup failed: {e}") from e
        if policy is None:
            raise PolicyNotFound(f"No policy {aad.policy_id!r} for tenant {aad.tenant_id!r}")

        now_ms = self.clock.now_ms()
        if verify_policy(aad, policy, now_ms) is not Decision.ACCEPT:
            raise PolicyMismatch(
                f"Envelope context does not satisfy policy {policy.policy_id!r} v{policy.version} "
                f"(age={now_ms - aad.ts_epoch_ms} ms, max={policy.max_age_ms} ms)"
            )
        return policy

    def _check_signature(self, envelope: Envelope, aad_bytes: bytes) -> None:
        message = signed_message(envelope, aad_bytes)
        try:
            valid = self.signature_scheme.verify(message, envelope.signature, self.signer_public_key)
        except Exception as e:
            raise SignatureInvalid(f"Signature verification raised: {e}") from e
        if valid is not True:
            raise SignatureInvalid(f"{self.signature_scheme.name} signature did not verify")

    def _establish_key(self, envelope: Envelope, flags: ContextFlags) -> bytes:
        if self.kem.hybrid != flags.hybrid:
            raise KeyEstablishmentFailed(
                f"KEM {self.kem.name} (hybrid={self.kem.hybrid}) cannot serve hybrid={flags.hybrid} envelopes"
            )
        try:
            shared_secret = self.kem.decapsulate(envelope.kem_ciphertext, self.kem_private_key)
            return derive_payload_key(shared_secret, envelope.tenant_id, envelope.policy_id, envelope.path)
        except (KemError, ValueError) as e:
            raise KeyEstablishmentFailed(f"{self.kem.name} key establishment failed: {e}") from e

    def _decrypt_payload(self, envelope: Envelope, payload_key: bytes, aad_bytes: bytes) -> bytes:
        try:
            return self.aead.open(payload_key, envelope.nonce, aad_bytes, envelope.ciphertext)
        except AeadError as e:
            raise PayloadAuthenticationFailed(f"{self.aead.name} payload did not authenticate") from e
