"""
Access control policy for the health record ledger.

Rules are pure predicates over (caller role, caller id, target ids,
provider ids). ``PolicyEngine`` applies them, logs every decision and
raises the matching ledger error on deny:

- admin-only: registry mutations require an existing Admin caller
- self-exclusion: admins cannot edit or delete themselves, nobody
  authors or edits a record about themselves or a record they wrote
- role-match: records are only written about Patient users
- same-provider: records are edited only from the provider that owns them
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import json
import logging

from ..errors import (
    PatientNotFound,
    PermissionDenied,
    ProviderMismatch,
    SelfModification,
    SelfRecord,
    SelfRecordKind,
)
from ..ledger.models import Role, User

logger = logging.getLogger(__name__)


class PolicyDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass
class PolicyResult:
    decision: PolicyDecision
    reason: str

    @property
    def allowed(self) -> bool:
        return self.decision == PolicyDecision.ALLOW


def is_admin(role: Optional[int]) -> bool:
    return role is not None and Role(role) == Role.ADMIN


def has_role(role: Optional[int], expected: Role) -> bool:
    return role is not None and Role(role) == expected


def is_self(caller_id: Optional[int], target_id: Optional[int]) -> bool:
    return caller_id is not None and caller_id == target_id


def same_provider(caller_provider_id: int, record_provider_id: int) -> bool:
    return caller_provider_id == record_provider_id


class PolicyEngine:
    def check_admin(self, caller: Optional[User]) -> PolicyResult:
        if caller is not None and caller.exists and is_admin(caller.role):
            return PolicyResult(PolicyDecision.ALLOW, "admin_privilege")
        return PolicyResult(PolicyDecision.DENY, "admin_required")

    def require_admin(self, caller: Optional[User], action: str) -> None:
        result = self.check_admin(caller)
        self.audit(caller, action, None, result)
        if not result.allowed:
            raise PermissionDenied()

    def forbid_self_modification(self, caller: User, target_id: int, action: str) -> None:
        if is_self(caller.id, target_id):
            self.audit(caller, action, target_id, PolicyResult(PolicyDecision.DENY, "self_modification"))
            message = (
                "cannot delete your own record" if action == "delete_user" else None
            )
            raise SelfModification(message)

    def forbid_self_subject(self, caller: User, patient_id: int, action: str) -> None:
        if is_self(caller.id, patient_id):
            self.audit(caller, action, patient_id, PolicyResult(PolicyDecision.DENY, "self_subject"))
            raise SelfRecord(SelfRecordKind.AS_SUBJECT)

    def forbid_self_author(self, caller: User, doctor_id: int, action: str) -> None:
        if is_self(caller.id, doctor_id):
            self.audit(caller, action, doctor_id, PolicyResult(PolicyDecision.DENY, "self_author"))
            raise SelfRecord(SelfRecordKind.AS_AUTHOR)

    def require_patient(self, caller: User, patient: Optional[User], patient_id: int, action: str) -> None:
        if patient is None or not patient.exists or not has_role(patient.role, Role.PATIENT):
            self.audit(caller, action, patient_id, PolicyResult(PolicyDecision.DENY, "patient_required"))
            raise PatientNotFound()

    def require_same_provider(self, caller: User, record_provider_id: int, patient_id: int, action: str) -> None:
        if not same_provider(caller.provider_id, record_provider_id):
            self.audit(caller, action, patient_id, PolicyResult(PolicyDecision.DENY, "provider_mismatch"))
            raise ProviderMismatch()

    def audit(
        self,
        caller: Optional[User],
        action: str,
        target: Optional[int],
        result: PolicyResult,
    ) -> None:
        payload = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "source": caller.id if caller is not None else None,
            "action": action,
            "target": target,
            "decision": result.decision.value,
            "reason": result.reason,
        }
        logger.info("policy_decision=%s", json.dumps(payload, separators=(",", ":")))


# Module-level singleton
policy_engine = PolicyEngine()
