from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ProviderNotFound
from ..identity.directory import Caller, IdentityDirectory
from ..ledger.models import PROVIDER_COUNTER, ServiceProvider, utcnow
from ..ledger.service import next_counter
from ..policy.engine import PolicyEngine


class ProviderRegistry:
    """Service providers keyed by sequential id. Admin-only mutation, no delete."""

    def __init__(self, db: AsyncSession, policy: PolicyEngine):
        self.db = db
        self.policy = policy
        self.directory = IdentityDirectory(db)
        self.logger = logging.getLogger(__name__)

    async def seed(self, name: str) -> int:
        """Create the first provider at initialization, before any admin exists."""
        return await self._insert(name)

    async def add_provider(self, caller: Caller, name: str) -> int:
        admin = await self.directory.lookup(caller.identity)
        self.policy.require_admin(admin, "add_provider")
        provider_id = await self._insert(name)
        self.logger.info("Provider %d added by user %d", provider_id, admin.id)
        return provider_id

    async def update_provider(self, caller: Caller, provider_id: int, name: str) -> None:
        admin = await self.directory.lookup(caller.identity)
        self.policy.require_admin(admin, "update_provider")
        provider = await self.get(provider_id)
        if provider is None:
            raise ProviderNotFound()
        provider.name = name
        provider.updated_at = utcnow()
        await self.db.flush()
        self.logger.info("Provider %d updated by user %d", provider_id, admin.id)

    async def get(self, provider_id: int) -> Optional[ServiceProvider]:
        if provider_id < 1:
            return None
        return await self.db.get(ServiceProvider, provider_id)

    async def exists(self, provider_id: int) -> bool:
        return await self.get(provider_id) is not None

    async def _insert(self, name: str) -> int:
        provider_id = await next_counter(self.db, PROVIDER_COUNTER)
        self.db.add(ServiceProvider(id=provider_id, name=name))  # type: ignore[call-arg]
        await self.db.flush()
        return provider_id
