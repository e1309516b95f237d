"""
Audit logging for ledger operations.

Every mutation attempt emits one structured event with its outcome. Events
carry ids and outcomes only: callers appear as user ids, and record remarks,
names and identities are redacted before they reach the log or the
in-memory buffer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import functools
import json
import logging

from ..errors import HealthLedgerError
from .models import AuditCategory

logger = logging.getLogger(__name__)

_EVENT_BUFFER_LIMIT = 1000


class AuditService:
    SENSITIVE_KEYS = {
        "health_remarks",
        "remarks",
        "identity",
        "caller",
        "new_identity",
        "name",
        "diagnosis",
        "medical_record",
        "phi",
        "pii",
    }

    def __init__(self, buffer_limit: int = _EVENT_BUFFER_LIMIT):
        self.buffer_limit = buffer_limit
        self._events: List[dict] = []

    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        """Recursively redact sensitive values, keeping structure and ids."""
        if isinstance(data, dict):
            out: Dict[str, Any] = {}
            for k, v in data.items():
                if str(k).lower() in cls.SENSITIVE_KEYS:
                    out[k] = "[REDACTED]"
                else:
                    out[k] = cls._sanitize(v)
            return out
        if isinstance(data, list):
            return [cls._sanitize(x) for x in data[:50]]  # cap length
        if isinstance(data, (int, float, bool, str)) or data is None:
            return data
        return "[REDACTED]"

    def log_event(
        self,
        event_type: str,
        category: AuditCategory,
        result: str,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> dict:
        payload = {
            "type": event_type,
            "category": category.value,
            "result": result,
            "user_id": user_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "details": self._sanitize(details or {}),
            "ts": datetime.now(tz=timezone.utc).isoformat(),
        }
        logger.info("audit_event=%s", json.dumps(payload, separators=(",", ":")))
        self._events.append(payload)
        if len(self._events) > self.buffer_limit:
            del self._events[: len(self._events) - self.buffer_limit]
        return payload

    def list_events(self, limit: int = 100, offset: int = 0) -> dict:
        items = list(self._events)
        items.reverse()
        slice_ = items[offset : offset + limit]
        return {
            "items": slice_,
            "total": len(self._events),
            "limit": limit,
            "offset": offset,
        }


_AUDIT_SERVICE: Optional[AuditService] = None


def get_audit_service() -> AuditService:
    global _AUDIT_SERVICE
    if _AUDIT_SERVICE is None:
        _AUDIT_SERVICE = AuditService()
    return _AUDIT_SERVICE


def audited(event_type: str, category: AuditCategory) -> Callable:
    """Decorator emitting one audit event per call of a ledger operation.

    The wrapped coroutine's owner must expose an ``audit`` attribute and a
    ``caller_id`` coroutine. The event carries the caller's user id, the
    outcome and, on failure, the error code; the error itself propagates
    unchanged.
    """

    def _decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def _wrapper(self, *args, **kwargs):
            caller = args[0] if args else kwargs.get("caller")
            user_id = await self.caller_id(caller) if caller is not None else None
            try:
                result = await func(self, *args, **kwargs)
            except Exception as e:
                code = e.code if isinstance(e, HealthLedgerError) else "internal_error"
                self.audit.log_event(
                    event_type,
                    category,
                    "failure",
                    user_id=user_id,
                    details={"error": code},
                )
                raise
            self.audit.log_event(
                event_type,
                category,
                "success",
                user_id=user_id,
                resource_id=str(result) if isinstance(result, int) else None,
            )
            return result

        return _wrapper

    return _decorator
