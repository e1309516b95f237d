"""
Health record management facade.

``HealthRecordMgt`` is the surface the substrate calls: each operation runs
in its own ledger transaction, so a failed check leaves no partial writes.
"""

from __future__ import annotations

from typing import Iterable, List, Optional
import logging

from .audit.models import AuditCategory
from .audit.service import AuditService, audited
from .identity.auth import AuthManager, get_auth_manager
from .identity.directory import Caller, IdentityDirectory
from .ledger.models import PROVIDER_COUNTER, Role
from .ledger.service import Ledger, current_counter, ensure_counters
from .policy.engine import PolicyEngine, policy_engine
from .providers.service import ProviderRegistry
from .records.service import HealthRecordStore
from . import schemas
from .users.service import UserRegistry

logger = logging.getLogger(__name__)


class HealthRecordMgt:
    def __init__(
        self,
        ledger: Ledger,
        policy: Optional[PolicyEngine] = None,
        audit: Optional[AuditService] = None,
        auth: Optional[AuthManager] = None,
    ):
        self.ledger = ledger
        self.policy = policy or policy_engine
        self.audit = audit or AuditService()
        self._auth = auth

    @classmethod
    async def create(
        cls,
        ledger: Ledger,
        initial_admin_identities: Iterable[str],
        initial_provider_name: str,
        **kwargs,
    ) -> "HealthRecordMgt":
        """Create the schema and seed provider 1 plus the initial admins.

        Admins get user ids in the order given, the first one id 1. A
        ledger that was already seeded is left as it is.
        """
        identities = list(dict.fromkeys(initial_admin_identities))
        if not identities:
            raise ValueError("at least one initial admin identity is required")
        mgt = cls(ledger, **kwargs)
        await ledger.init_schema()
        await mgt._seed(identities, initial_provider_name)
        return mgt

    async def _seed(self, identities: List[str], provider_name: str) -> None:
        async with self.ledger.transaction() as session:
            if await current_counter(session, PROVIDER_COUNTER) > 0:
                logger.info("Ledger already initialized; skipping seed")
                return
            await ensure_counters(session)
            provider_id = await ProviderRegistry(session, self.policy).seed(provider_name)
            users = UserRegistry(session, self.policy)
            for identity in identities:
                await users.seed_admin(identity, provider_id)
        self.audit.log_event(
            "ledger_initialized",
            AuditCategory.SYSTEM,
            "success",
            details={"admins": len(identities)},
        )
        logger.info("Ledger initialized with %d admin(s)", len(identities))

    @property
    def auth(self) -> AuthManager:
        if self._auth is None:
            self._auth = get_auth_manager()
        return self._auth

    def authenticate(self, token: str) -> Caller:
        return self.auth.authenticate(token)

    async def caller_id(self, caller: Caller) -> Optional[int]:
        """Id of the live user bound to the caller, or None for an unknown caller."""
        async with self.ledger.transaction() as session:
            user = await IdentityDirectory(session).lookup(caller.identity)
            return user.id if user is not None else None

    # Providers

    @audited("provider_added", AuditCategory.PROVIDER)
    async def add_provider(self, caller: Caller, name: str) -> int:
        async with self.ledger.transaction() as session:
            return await ProviderRegistry(session, self.policy).add_provider(caller, name)

    @audited("provider_updated", AuditCategory.PROVIDER)
    async def update_provider(self, caller: Caller, provider_id: int, name: str) -> None:
        async with self.ledger.transaction() as session:
            await ProviderRegistry(session, self.policy).update_provider(
                caller, provider_id, name
            )

    async def get_provider(self, provider_id: int) -> Optional[schemas.ServiceProvider]:
        async with self.ledger.transaction() as session:
            row = await ProviderRegistry(session, self.policy).get(provider_id)
            return schemas.ServiceProvider.model_validate(row) if row else None

    # Users

    @audited("user_added", AuditCategory.USER)
    async def add_user(
        self, caller: Caller, identity: str, name: str, role: Role, provider_id: int
    ) -> int:
        async with self.ledger.transaction() as session:
            return await UserRegistry(session, self.policy).add_user(
                caller, identity, name, role, provider_id
            )

    @audited("user_updated", AuditCategory.USER)
    async def update_user(
        self,
        caller: Caller,
        user_id: int,
        identity: str,
        name: str,
        role: Role,
        provider_id: int,
    ) -> None:
        async with self.ledger.transaction() as session:
            await UserRegistry(session, self.policy).update_user(
                caller, user_id, identity, name, role, provider_id
            )

    @audited("user_deleted", AuditCategory.USER)
    async def delete_user(self, caller: Caller, user_id: int) -> None:
        async with self.ledger.transaction() as session:
            await UserRegistry(session, self.policy).delete_user(caller, user_id)

    async def get_user(self, user_id: int) -> Optional[schemas.UserProfile]:
        async with self.ledger.transaction() as session:
            row = await UserRegistry(session, self.policy).get(user_id)
            return schemas.UserProfile.model_validate(row) if row else None

    # Health records

    @audited("health_record_created", AuditCategory.HEALTH_RECORD)
    async def create_health_record(
        self, caller: Caller, patient_id: int, remarks: str
    ) -> int:
        async with self.ledger.transaction() as session:
            return await HealthRecordStore(session, self.policy).create_health_record(
                caller, patient_id, remarks
            )

    @audited("health_record_updated", AuditCategory.HEALTH_RECORD)
    async def update_health_record(
        self, caller: Caller, patient_id: int, record_id: int, remarks: str
    ) -> None:
        async with self.ledger.transaction() as session:
            await HealthRecordStore(session, self.policy).update_health_record(
                caller, patient_id, record_id, remarks
            )

    @audited("health_records_read", AuditCategory.HEALTH_RECORD)
    async def get_health_records(
        self, caller: Caller, patient_id: int
    ) -> List[schemas.HealthRecord]:
        async with self.ledger.transaction() as session:
            rows = await HealthRecordStore(session, self.policy).get_health_records(
                caller, patient_id
            )
            return [schemas.HealthRecord.model_validate(r) for r in rows]

    @audited("own_health_records_read", AuditCategory.HEALTH_RECORD)
    async def get_my_health_records(self, caller: Caller) -> List[schemas.HealthRecord]:
        async with self.ledger.transaction() as session:
            rows = await HealthRecordStore(session, self.policy).get_my_health_records(
                caller
            )
            return [schemas.HealthRecord.model_validate(r) for r in rows]

    async def get_health_record(
        self, patient_id: int, record_id: int
    ) -> Optional[schemas.HealthRecord]:
        async with self.ledger.transaction() as session:
            row = await HealthRecordStore(session, self.policy).get(patient_id, record_id)
            return schemas.HealthRecord.model_validate(row) if row else None
