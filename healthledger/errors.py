"""
Error taxonomy for the health record ledger.

Every failed check raises one of these; callers branch on the class or on
the stable ``code`` attribute rather than parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class HealthLedgerError(Exception):
    """Base class for all ledger failures."""

    code: str = "ledger_error"
    default_message: str = "ledger operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(HealthLedgerError):
    code = "permission_denied"
    default_message = "only admin"


class AlreadyExists(HealthLedgerError):
    code = "already_exists"
    default_message = "user already exists"


class ProviderNotFound(HealthLedgerError):
    code = "provider_not_found"
    default_message = "service provider does not exist"


class UserNotFound(HealthLedgerError):
    code = "user_not_found"
    default_message = "user does not exist"


class IdentityConflict(HealthLedgerError):
    code = "identity_conflict"
    default_message = "new user address belongs to another existing user"


class SelfModification(HealthLedgerError):
    code = "self_modification"
    default_message = "cannot modify your own record"


class HasRecords(HealthLedgerError):
    code = "has_records"
    default_message = "cannot delete because patient records exist"


class PatientNotFound(HealthLedgerError):
    code = "patient_not_found"
    default_message = "patient does not exist"


class SelfRecordKind(str, Enum):
    AS_SUBJECT = "as_subject"
    AS_AUTHOR = "as_author"


class SelfRecord(HealthLedgerError):
    code = "self_record"

    def __init__(self, kind: SelfRecordKind, message: Optional[str] = None):
        self.kind = kind
        if message is None:
            message = (
                "cannot create/modify your own record"
                if kind == SelfRecordKind.AS_SUBJECT
                else "cannot create/modify your own records"
            )
        super().__init__(message)


class ProviderMismatch(HealthLedgerError):
    code = "provider_mismatch"
    default_message = "cannot modify records of other providers"


class RecordNotFound(HealthLedgerError):
    code = "record_not_found"
    default_message = "patientId and recordId combination does not exist"


class UnknownCaller(HealthLedgerError):
    code = "unknown_caller"
    default_message = "user does not exists"


class NoHistory(HealthLedgerError):
    code = "no_history"
    default_message = "no history exists for the patient"


class InvalidToken(HealthLedgerError):
    code = "invalid_token"
    default_message = "caller token is invalid or expired"


__all__ = [
    "HealthLedgerError",
    "PermissionDenied",
    "AlreadyExists",
    "ProviderNotFound",
    "UserNotFound",
    "IdentityConflict",
    "SelfModification",
    "HasRecords",
    "PatientNotFound",
    "SelfRecordKind",
    "SelfRecord",
    "ProviderMismatch",
    "RecordNotFound",
    "UnknownCaller",
    "NoHistory",
    "InvalidToken",
]
