# envelope/sealer.py
import logging
from typing import Optional

from Crypto.Random import get_random_bytes

from .aad import ContextFlags, aad_for_envelope
from .codec import ENVELOPE_VERSION, NONCE_SIZE, Envelope, encode, signed_message
from .errors import EnvelopeError
from .hkdf import derive_payload_key
from .interfaces import Aead, Clock, Kem, SignatureScheme, SystemClock

logger = logging.getLogger(__name__)


class EnvelopeSealer:
    """
    Sender side of the protocol: encrypts a payload for one recipient and signs it.
    Uses the same ContextFlags the verifier will bind into the AAD.
    """

    def __init__(
        self,
        kem: Kem,
        signature_scheme: SignatureScheme,
        aead: Aead,
        flags: ContextFlags,
        clock: Optional[Clock] = None,
    ):
        if kem.hybrid != flags.hybrid:
            raise EnvelopeError(
                f"KEM {kem.name} (hybrid={kem.hybrid}) does not match context flags (hybrid={flags.hybrid})"
            )
        self.kem = kem
        self.signature_scheme = signature_scheme
        self.aead = aead
        self.flags = flags
        self.clock = clock or SystemClock()

    def seal(
        self,
        payload: bytes,
        tenant_id: bytes,
        policy_id: bytes,
        path: bytes,
        recipient_kem_public_key: bytes,
        sender_signing_key: bytes,
        nonce: Optional[bytes] = None,
    ) -> Envelope:
        label = f"SEAL ({tenant_id!r}/{policy_id!r} {path!r})"
        nonce = nonce if nonce is not None else get_random_bytes(NONCE_SIZE)

        # 1. Key establishment
        kem_ciphertext, shared_secret = self.kem.encapsulate(recipient_kem_public_key)
        payload_key = derive_payload_key(shared_secret, tenant_id, policy_id, path)

        # 2. Envelope header; validates nonce length and field sizes
        header = Envelope(
            version=ENVELOPE_VERSION,
            tenant_id=tenant_id,
            policy_id=policy_id,
            path=path,
            ts_epoch_ms=self.clock.now_ms(),
            nonce=nonce,
            kem_ciphertext=kem_ciphertext,
        )
        aad_bytes = aad_for_envelope(header, self.flags).to_bytes()

        # 3. Encrypt under the AAD
        logger.debug(f"{label}: encrypting {len(payload)} bytes with {self.aead.name}")
        ciphertext = self.aead.seal(payload_key, nonce, aad_bytes, payload)
        unsigned = Envelope(**{**header.model_dump(), "ciphertext": ciphertext})

        # 4. Sign
        signature = self.signature_scheme.sign(signed_message(unsigned, aad_bytes), sender_signing_key)
        envelope = unsigned.with_signature(signature)
        logger.info(f"{label}: sealed envelope ({envelope.encoded_size()} bytes, kem={self.kem.name})")
        return envelope

    def seal_bytes(self, *args, **kwargs) -> bytes:
        return encode(self.seal(*args, **kwargs))
