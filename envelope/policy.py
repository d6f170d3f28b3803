# envelope/policy.py
import hmac
import logging
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .aad import Aad

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class Policy(BaseModel):
    """
    Verifier-side policy record. Owned by the policy store; the core only reads it.
    Bytes fields travel as base64 in JSON.
    """
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    tenant_id: bytes = Field(..., description="Tenant namespace the policy belongs to.")
    policy_id: bytes = Field(..., description="Policy identifier within the tenant.")
    path: bytes = Field(..., description="Resource path the policy governs.")
    required_algs: bytes = Field(..., description="Exact algorithm suite senders must declare.")
    max_age_ms: int = Field(..., ge=0, description="Maximum envelope age, inclusive.")
    version: int = Field(1, ge=1, description="Policy revision.")

    @classmethod
    def from_plain(cls, entry: Dict[str, Any]) -> "Policy":
        """Build a policy from a hand-written entry whose identifiers are UTF-8 text, not base64."""
        fields = {
            key: value.encode('utf-8') if key in _IDENTIFIER_FIELDS and isinstance(value, str) else value
            for key, value in entry.items()
        }
        return cls.model_validate(fields)


_IDENTIFIER_FIELDS = ("tenant_id", "policy_id", "path", "required_algs")


def _same(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)


def verify_policy(context: Aad, policy: Policy, now_ms: int) -> Decision:
    """
    Accept iff tenant, policy id, path and required algorithms are byte-identical
    and the envelope is not from the future and at most max_age_ms old.

    All four comparisons are always evaluated so the running time does not depend
    on which field differs.
    """
    matches = [
        _same(context.tenant_id, policy.tenant_id),
        _same(context.policy_id, policy.policy_id),
        _same(context.path, policy.path),
        _same(context.required_algs, policy.required_algs),
    ]
    if context.ts_epoch_ms > now_ms:
        fresh = False
    else:
        fresh = now_ms - context.ts_epoch_ms <= policy.max_age_ms

    if all(matches) and fresh:
        return Decision.ACCEPT
    return Decision.REJECT


class InMemoryPolicyStore:
    """Dictionary-backed PolicyStore keyed by (tenant_id, policy_id)."""

    def __init__(self, policies: Optional[Iterable[Policy]] = None):
        self._policies: Dict[Tuple[bytes, bytes], Policy] = {}
        for policy in policies or ():
            self.add(policy)

    def add(self, policy: Policy) -> None:
        self._policies[(policy.tenant_id, policy.policy_id)] = policy
        logger.debug(f"Policy store: registered policy {policy.policy_id!r} for tenant {policy.tenant_id!r}")

    def lookup(self, tenant_id: bytes, policy_id: bytes) -> Optional[Policy]:
        return self._policies.get((tenant_id, policy_id))

    def __len__(self) -> int:
        return len(self._policies)
