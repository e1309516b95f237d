from .engine import (
    PolicyDecision,
    PolicyEngine,
    PolicyResult,
    has_role,
    is_admin,
    is_self,
    policy_engine,
    same_provider,
)

__all__ = [
    "PolicyDecision",
    "PolicyEngine",
    "PolicyResult",
    "has_role",
    "is_admin",
    "is_self",
    "policy_engine",
    "same_provider",
]
