"""
Ledger substrate: one atomic database transaction per operation plus the
monotonic counters that number providers, users and per-patient records.

Counters only ever grow. Transactions on a ledger run one at a time, so an
operation always sees the committed result of the one before it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import asyncio
import logging

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..database import create_engine_for_url
from .models import PROVIDER_COUNTER, USER_COUNTER, Base, LedgerCounter, RecordCounter

logger = logging.getLogger(__name__)

# Key of the PostgreSQL advisory lock shared by every process on one ledger
LEDGER_LOCK_KEY = 0x4C454447


class Ledger:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            engine, expire_on_commit=False
        )
        self._lock = asyncio.Lock()

    @classmethod
    def from_url(cls, url: str) -> "Ledger":
        return cls(create_engine_for_url(url))

    @property
    def is_postgres(self) -> bool:
        return self.engine.dialect.name == "postgresql"

    async def init_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session whose work commits on exit or rolls back on any error.

        Holds the ledger lock until the transaction has committed or rolled
        back. On PostgreSQL a transaction-scoped advisory lock extends this
        to other processes sharing the database.
        """
        async with self._lock:
            async with self._session_maker() as session:
                async with session.begin():
                    if self.is_postgres:
                        await session.execute(
                            text("SELECT pg_advisory_xact_lock(:key)"),
                            {"key": LEDGER_LOCK_KEY},
                        )
                    yield session

    async def dispose(self) -> None:
        await self.engine.dispose()


async def ensure_counters(session: AsyncSession) -> None:
    """Create the provider and user counter rows at zero if they are missing."""
    for name in (PROVIDER_COUNTER, USER_COUNTER):
        if await session.get(LedgerCounter, name) is None:
            session.add(LedgerCounter(name=name, value=0))  # type: ignore[call-arg]
    await session.flush()


async def current_counter(session: AsyncSession, name: str) -> int:
    row = await session.get(LedgerCounter, name)
    return row.value if row else 0


async def next_counter(session: AsyncSession, name: str) -> int:
    """Bump the named counter and return its new value."""
    row = await session.scalar(
        select(LedgerCounter).where(LedgerCounter.name == name).with_for_update()
    )
    if row is None:
        row = LedgerCounter(name=name, value=0)  # type: ignore[call-arg]
        session.add(row)
    row.value += 1
    await session.flush()
    logger.debug("counter %s -> %d", name, row.value)
    return row.value


async def record_count(session: AsyncSession, patient_id: int) -> int:
    row = await session.get(RecordCounter, patient_id)
    return row.value if row else 0


async def next_record_id(session: AsyncSession, patient_id: int) -> int:
    row: Optional[RecordCounter] = await session.scalar(
        select(RecordCounter)
        .where(RecordCounter.patient_id == patient_id)
        .with_for_update()
    )
    if row is None:
        row = RecordCounter(patient_id=patient_id, value=0)  # type: ignore[call-arg]
        session.add(row)
    row.value += 1
    await session.flush()
    return row.value
