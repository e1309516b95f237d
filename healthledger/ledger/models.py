"""
Ledger tables: providers, users, health records, the identity index and
the monotonic counters that number them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum

from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Text,
)
from sqlalchemy.orm import declarative_base, Mapped, mapped_column


Base = declarative_base()


class Role(IntEnum):
    ADMIN = 0
    DOCTOR = 1
    PATIENT = 2


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# Names of rows in ledger_counters
PROVIDER_COUNTER = "next_provider_id"
USER_COUNTER = "next_user_id"


class ServiceProvider(Base):
    __tablename__ = "service_providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    # Not unique: tombstoned users keep their identity, identity_index holds the live binding
    identity: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[int] = mapped_column(Integer, nullable=False)
    provider_id: Mapped[int] = mapped_column(
        ForeignKey("service_providers.id"), nullable=False
    )
    exists: Mapped[bool] = mapped_column(
        "exists_flag", Boolean, default=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class IdentityIndex(Base):
    __tablename__ = "identity_index"

    identity: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)


class HealthRecord(Base):
    __tablename__ = "health_records"

    patient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), primary_key=True, autoincrement=False
    )
    record_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    health_remarks: Mapped[str] = mapped_column(Text, nullable=False)
    doctor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    provider_id: Mapped[int] = mapped_column(
        ForeignKey("service_providers.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class LedgerCounter(Base):
    __tablename__ = "ledger_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class RecordCounter(Base):
    __tablename__ = "record_counters"

    patient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), primary_key=True, autoincrement=False
    )
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
