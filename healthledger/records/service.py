"""
Health record store.

Records are keyed by ``(patient_id, record_id)`` with ``record_id`` drawn
from a per-patient counter starting at 1. Authorship (``doctor_id``) and
the provider snapshot taken at authorship are fixed at creation; updates
only ever replace ``health_remarks``. There is no delete.

Writes are gated by the policy engine. Reads only require the caller to be
a known user and are not provider-scoped.
"""

from __future__ import annotations

from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NoHistory, RecordNotFound
from ..identity.directory import Caller, IdentityDirectory
from ..ledger.models import HealthRecord, User, utcnow
from ..ledger.service import next_record_id, record_count
from ..policy.engine import PolicyEngine

logger = logging.getLogger(__name__)


class HealthRecordStore:
    def __init__(self, db: AsyncSession, policy: PolicyEngine):
        self.db = db
        self.policy = policy
        self.directory = IdentityDirectory(db)

    async def create_health_record(
        self, caller: Caller, patient_id: int, remarks: str
    ) -> int:
        doctor = await self.directory.resolve(caller)
        self.policy.forbid_self_subject(doctor, patient_id, "create_health_record")
        patient = await self.db.get(User, patient_id) if patient_id >= 1 else None
        self.policy.require_patient(doctor, patient, patient_id, "create_health_record")

        record_id = await next_record_id(self.db, patient_id)
        self.db.add(
            HealthRecord(  # type: ignore[call-arg]
                patient_id=patient_id,
                record_id=record_id,
                health_remarks=remarks,
                doctor_id=doctor.id,
                provider_id=doctor.provider_id,
            )
        )
        await self.db.flush()
        logger.info(
            "Record %d/%d created by user %d at provider %d",
            patient_id,
            record_id,
            doctor.id,
            doctor.provider_id,
        )
        return record_id

    async def update_health_record(
        self, caller: Caller, patient_id: int, record_id: int, remarks: str
    ) -> None:
        record = await self.get(patient_id, record_id)
        if record is None:
            raise RecordNotFound()
        editor = await self.directory.resolve(caller)
        self.policy.forbid_self_subject(editor, record.patient_id, "update_health_record")
        self.policy.forbid_self_author(editor, record.doctor_id, "update_health_record")
        self.policy.require_same_provider(
            editor, record.provider_id, record.patient_id, "update_health_record"
        )

        record.health_remarks = remarks
        record.updated_at = utcnow()
        await self.db.flush()
        logger.info(
            "Record %d/%d updated by user %d", patient_id, record_id, editor.id
        )

    async def get_health_records(
        self, caller: Caller, patient_id: int
    ) -> List[HealthRecord]:
        await self.directory.resolve(caller)
        return await self._list(patient_id)

    async def get_my_health_records(self, caller: Caller) -> List[HealthRecord]:
        me = await self.directory.resolve(caller)
        if await record_count(self.db, me.id) == 0:
            raise NoHistory()
        return await self._list(me.id)

    async def get(self, patient_id: int, record_id: int) -> Optional[HealthRecord]:
        if patient_id < 1 or record_id < 1:
            return None
        return await self.db.get(HealthRecord, (patient_id, record_id))

    async def _list(self, patient_id: int) -> List[HealthRecord]:
        count = await record_count(self.db, patient_id)
        if count == 0:
            return []
        result = await self.db.execute(
            select(HealthRecord)
            .where(
                HealthRecord.patient_id == patient_id,
                HealthRecord.record_id <= count,
            )
            .order_by(HealthRecord.record_id)
        )
        return list(result.scalars().all())
