from typing import Optional

import pytest

from envelope import ContextFlags, EnvelopeSealer, FixedClock, InMemoryPolicyStore, VerificationPipeline
from pqc_primitives import AesGcmAead

from fakes import REQUIRED_ALGS, FakeKem, HmacSigner, make_policy


class Parties:
    """One sender and one recipient with fake key material."""

    def __init__(self, signer=None, kem=None):
        self.kem = kem or FakeKem(hybrid=True)
        self.signer = signer or HmacSigner()
        self.kem_pk, self.kem_sk = self.kem.keygen()
        self.sig_pk, self.sig_sk = self.signer.keygen()

    def sealer(self, flags: ContextFlags, ts_ms: int = 1000) -> EnvelopeSealer:
        return EnvelopeSealer(
            kem=self.kem,
            signature_scheme=self.signer,
            aead=AesGcmAead(),
            flags=flags,
            clock=FixedClock(ts_ms),
        )

    def seal(self, payload: bytes, flags: ContextFlags, ts_ms: int = 1000, **scope) -> bytes:
        fields = dict(tenant_id=b"t1", policy_id=b"p1", path=b"/a")
        fields.update(scope)
        return self.sealer(flags, ts_ms).seal_bytes(
            payload,
            recipient_kem_public_key=self.kem_pk,
            sender_signing_key=self.sig_sk,
            **fields,
        )

    def pipeline(
        self,
        now_ms: int = 3000,
        policy_store=None,
        kem=None,
        signer=None,
        kem_private_key: Optional[bytes] = None,
        signer_public_key: Optional[bytes] = None,
    ) -> VerificationPipeline:
        return VerificationPipeline(
            policy_store=policy_store if policy_store is not None else InMemoryPolicyStore([make_policy()]),
            kem=kem or self.kem,
            signature_scheme=signer or self.signer,
            aead=AesGcmAead(),
            kem_private_key=kem_private_key or self.kem_sk,
            signer_public_key=signer_public_key or self.sig_pk,
            clock=FixedClock(now_ms),
        )


@pytest.fixture
def flags() -> ContextFlags:
    return ContextFlags(required_algs=REQUIRED_ALGS, hybrid=True)


@pytest.fixture
def parties() -> Parties:
    return Parties()


@pytest.fixture
def make_parties():
    return Parties
