from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import (
    AlreadyExists,
    HasRecords,
    IdentityConflict,
    ProviderNotFound,
    UserNotFound,
)
from ..identity.directory import Caller, IdentityDirectory
from ..ledger.models import USER_COUNTER, Role, User, utcnow
from ..ledger.service import record_count, next_counter
from ..policy.engine import PolicyEngine, has_role
from ..providers.service import ProviderRegistry


class UserRegistry:
    """User profiles keyed by sequential id.

    Deleting a user only tombstones it (``exists=False``): the id is never
    handed out again, so ``doctor_id`` references on stored records stay
    valid, while the identity is released for a future ``add_user``.
    """

    def __init__(self, db: AsyncSession, policy: PolicyEngine):
        self.db = db
        self.policy = policy
        self.directory = IdentityDirectory(db)
        self.providers = ProviderRegistry(db, policy)
        self.logger = logging.getLogger(__name__)

    async def seed_admin(
        self, identity: str, provider_id: int, name: str = "admin"
    ) -> Optional[int]:
        """Create an initial admin; skips identities that are already bound."""
        if await self.directory.lookup(identity) is not None:
            return None
        return await self._insert(identity, name, Role.ADMIN, provider_id)

    async def add_user(
        self, caller: Caller, identity: str, name: str, role: Role, provider_id: int
    ) -> int:
        admin = await self.directory.lookup(caller.identity)
        self.policy.require_admin(admin, "add_user")

        if await self.directory.lookup(identity) is not None:
            raise AlreadyExists()
        if not await self.providers.exists(provider_id):
            raise ProviderNotFound()

        user_id = await self._insert(identity, name, Role(role), provider_id)
        self.logger.info(
            "User %d added with role %s by user %d", user_id, Role(role).name, admin.id
        )
        return user_id

    async def update_user(
        self,
        caller: Caller,
        user_id: int,
        identity: str,
        name: str,
        role: Role,
        provider_id: int,
    ) -> None:
        admin = await self.directory.lookup(caller.identity)
        self.policy.require_admin(admin, "update_user")

        user = await self.get_existing(user_id)
        if user is None:
            raise UserNotFound()
        holder = await self.directory.lookup(identity)
        if holder is not None and holder.id != user.id:
            raise IdentityConflict()
        self.policy.forbid_self_modification(admin, user.id, "update_user")
        if not await self.providers.exists(provider_id):
            raise ProviderNotFound()

        if identity != user.identity:
            await self.directory.unbind(user.identity)
            await self.directory.bind(identity, user.id)
        user.identity = identity
        user.name = name
        user.role = int(Role(role))
        user.provider_id = provider_id
        user.updated_at = utcnow()
        await self.db.flush()
        self.logger.info("User %d updated by user %d", user.id, admin.id)

    async def delete_user(self, caller: Caller, user_id: int) -> None:
        admin = await self.directory.lookup(caller.identity)
        self.policy.require_admin(admin, "delete_user")

        user = await self.get_existing(user_id)
        if user is None:
            raise UserNotFound()
        self.policy.forbid_self_modification(admin, user.id, "delete_user")
        if has_role(user.role, Role.PATIENT) and await record_count(self.db, user.id) > 0:
            raise HasRecords()

        user.exists = False
        user.updated_at = utcnow()
        await self.directory.unbind(user.identity)
        await self.db.flush()
        self.logger.info("User %d deleted by user %d", user.id, admin.id)

    async def get(self, user_id: int) -> Optional[User]:
        if user_id < 1:
            return None
        return await self.db.get(User, user_id)

    async def get_existing(self, user_id: int) -> Optional[User]:
        user = await self.get(user_id)
        if user is None or not user.exists:
            return None
        return user

    async def _insert(
        self, identity: str, name: str, role: Role, provider_id: int
    ) -> int:
        user_id = await next_counter(self.db, USER_COUNTER)
        self.db.add(
            User(  # type: ignore[call-arg]
                id=user_id,
                identity=identity,
                name=name,
                role=int(role),
                provider_id=provider_id,
                exists=True,
            )
        )
        await self.db.flush()
        await self.directory.bind(identity, user_id)
        return user_id
