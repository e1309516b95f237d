from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import UnknownCaller
from ..ledger.models import IdentityIndex, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Authenticated identity of whoever invoked an operation."""

    identity: str


class IdentityDirectory:
    """Maps an external identity to the live user bound to it.

    Holds no primary data: the index is derivable from the users table
    (the one existing user carrying each identity).
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, identity: str) -> Optional[User]:
        entry = await self.db.get(IdentityIndex, identity)
        if entry is None:
            return None
        user = await self.db.get(User, entry.user_id)
        if user is None or not user.exists:
            return None
        return user

    async def resolve(self, caller: Caller) -> User:
        user = await self.lookup(caller.identity)
        if user is None:
            raise UnknownCaller()
        return user

    async def bind(self, identity: str, user_id: int) -> None:
        entry = await self.db.get(IdentityIndex, identity)
        if entry is None:
            self.db.add(IdentityIndex(identity=identity, user_id=user_id))  # type: ignore[call-arg]
        else:
            entry.user_id = user_id
        await self.db.flush()

    async def unbind(self, identity: str) -> None:
        entry = await self.db.get(IdentityIndex, identity)
        if entry is not None:
            await self.db.delete(entry)
            await self.db.flush()
