# envelope/policy_bundle.py
"""
Signed policy bundles and the distributor that serves them as a PolicyStore.

A bundle is a versioned list of policies with a validity window, signed by a
policy authority. The distributor stages a newer verified bundle and only serves
it after activate_next(), so a rollout can be switched over atomically.
"""
import json
import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import PolicyBundleError, SignatureError
from .interfaces import Clock, SignatureScheme, SystemClock
from .policy import Policy

logger = logging.getLogger(__name__)


class SignedPolicyBundle(BaseModel):
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    policies: List[Policy] = Field(default_factory=list)
    version: int = Field(..., ge=1, description="Monotonic bundle version.")
    created_at: int = Field(..., ge=0, description="Unix seconds when the bundle was issued.")
    not_after: int = Field(..., ge=0, description="Unix seconds after which the bundle is stale.")
    signer_kid: str = Field(..., description="Key id of the policy authority.")
    signature: bytes = Field(b"", description="Signature over the canonical bundle body.")

    @classmethod
    def create(
        cls,
        policies: List[Policy],
        version: int,
        ttl_secs: int,
        signer_kid: str,
        scheme: SignatureScheme,
        signing_key: bytes,
        now_s: Optional[int] = None,
    ) -> "SignedPolicyBundle":
        if now_s is None:
            now_s = SystemClock().now_ms() // 1000
        unsigned = cls(
            policies=policies,
            version=version,
            created_at=now_s,
            not_after=now_s + ttl_secs,
            signer_kid=signer_kid,
        )
        try:
            signature = scheme.sign(unsigned.signing_payload(), signing_key)
        except SignatureError as e:
            raise PolicyBundleError(f"Could not sign policy bundle v{version}: {e}") from e
        logger.info(f"Signed policy bundle v{version} with {len(policies)} policies (kid={signer_kid})")
        return unsigned.model_copy(update={"signature": signature})

    def signing_payload(self) -> bytes:
        """Canonical JSON of everything except the signature."""
        body = self.model_dump(mode="json", exclude={"signature"})
        return json.dumps(body, sort_keys=True, separators=(',', ':')).encode('utf-8')

    def verify(self, scheme: SignatureScheme, public_key: bytes) -> bool:
        return scheme.verify(self.signing_payload(), self.signature, public_key)

    def is_valid(self, now_s: int) -> bool:
        return self.created_at <= now_s < self.not_after

    def find(self, tenant_id: bytes, policy_id: bytes) -> Optional[Policy]:
        for policy in self.policies:
            if policy.tenant_id == tenant_id and policy.policy_id == policy_id:
                return policy
        return None

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, raw: str) -> "SignedPolicyBundle":
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise PolicyBundleError(f"Invalid policy bundle document: {e.error_count()} error(s)") from e


class PolicyDistributor:
    """PolicyStore backed by the active signed bundle."""

    def __init__(self, scheme: SignatureScheme, authority_public_key: bytes, clock: Optional[Clock] = None):
        self.scheme = scheme
        self.authority_public_key = authority_public_key
        self.clock = clock or SystemClock()
        self._current: Optional[SignedPolicyBundle] = None
        self._next: Optional[SignedPolicyBundle] = None

    @property
    def current_version(self) -> int:
        return self._current.version if self._current else 0

    def update_bundle(self, bundle: SignedPolicyBundle) -> bool:
        """
        Stage a bundle for activation.
        Returns False when it is not newer than the active one.
        Raises PolicyBundleError when its signature does not verify.
        """
        if not bundle.verify(self.scheme, self.authority_public_key):
            logger.error(f"Policy bundle v{bundle.version} (kid={bundle.signer_kid}) failed signature verification")
            raise PolicyBundleError(f"Signature verification failed for policy bundle v{bundle.version}")
        if bundle.version <= self.current_version:
            logger.warning(
                f"Ignoring policy bundle v{bundle.version}; active version is {self.current_version}"
            )
            return False
        self._next = bundle
        logger.info(f"Staged policy bundle v{bundle.version}")
        return True

    def activate_next(self) -> bool:
        if self._next is None:
            return False
        self._current, self._next = self._next, None
        logger.info(f"Activated policy bundle v{self._current.version}")
        return True

    def lookup(self, tenant_id: bytes, policy_id: bytes) -> Optional[Policy]:
        if self._current is None:
            return None
        if not self._current.is_valid(self.clock.now_ms() // 1000):
            logger.warning(f"Active policy bundle v{self._current.version} is outside its validity window")
            return None
        return self._current.find(tenant_id, policy_id)
