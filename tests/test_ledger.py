"""
Ledger initialization, the reference scenario, transaction rollback and
serialization of racing operations.
"""

import asyncio
import warnings

import pytest

from healthledger import Caller, HealthRecordMgt, Ledger, Role
from healthledger.errors import AlreadyExists, HealthLedgerError, PermissionDenied
from healthledger.ledger.models import (
    PROVIDER_COUNTER,
    USER_COUNTER,
    LedgerCounter,
    ServiceProvider,
    utcnow,
)
from healthledger.ledger.service import current_counter


@pytest.mark.asyncio
async def test_reference_scenario():
    admin, doctor, patient = Caller("0xadmin"), Caller("0xtaha"), Caller("0xpatient")
    ledger = Ledger.from_url("sqlite+aiosqlite:///:memory:")
    try:
        mgt = await HealthRecordMgt.create(ledger, [admin.identity], "ABC Hospital")
        assert (await mgt.get_provider(1)).name == "ABC Hospital"
        assert (await mgt.get_user(1)).role == Role.ADMIN

        assert await mgt.add_user(admin, doctor.identity, "Dr.Taha", Role.DOCTOR, 1) == 2
        assert await mgt.add_user(admin, patient.identity, "Mr.Patient", Role.PATIENT, 1) == 3
        await mgt.create_health_record(doctor, 3, "cold and flu")

        records = await mgt.get_health_records(doctor, 3)
        assert [r.model_dump() for r in records] == [
            {
                "patient_id": 3,
                "record_id": 1,
                "health_remarks": "cold and flu",
                "doctor_id": 2,
                "provider_id": 1,
            }
        ]
    finally:
        await ledger.dispose()


@pytest.mark.asyncio
async def test_multiple_initial_admins():
    ledger = Ledger.from_url("sqlite+aiosqlite:///:memory:")
    try:
        mgt = await HealthRecordMgt.create(
            ledger, ["0xa", "0xb", "0xa"], "ABC Hospital"
        )
        first, second = await mgt.get_user(1), await mgt.get_user(2)
        assert first.identity == "0xa"
        assert second.identity == "0xb"
        assert second.role == Role.ADMIN and second.provider_id == 1
        assert await mgt.get_user(3) is None

        # each seeded admin may manage the other but not themself
        await mgt.update_user(Caller("0xa"), 2, "0xb", "Ops", Role.ADMIN, 1)
        assert (await mgt.get_user(2)).name == "Ops"
    finally:
        await ledger.dispose()


@pytest.mark.asyncio
async def test_initial_admins_required():
    ledger = Ledger.from_url("sqlite+aiosqlite:///:memory:")
    try:
        with pytest.raises(ValueError):
            await HealthRecordMgt.create(ledger, [], "ABC Hospital")
    finally:
        await ledger.dispose()


@pytest.mark.asyncio
async def test_reopening_a_seeded_ledger_keeps_state(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"
    ledger = Ledger.from_url(url)
    try:
        mgt = await HealthRecordMgt.create(ledger, ["0xa"], "ABC Hospital")
        await mgt.add_user(Caller("0xa"), "0xdoc", "Dr.Taha", Role.DOCTOR, 1)
    finally:
        await ledger.dispose()

    ledger = Ledger.from_url(url)
    try:
        mgt = await HealthRecordMgt.create(ledger, ["0xz"], "Other Hospital")
        assert (await mgt.get_provider(1)).name == "ABC Hospital"
        assert (await mgt.get_user(2)).name == "Dr.Taha"
        assert await mgt.get_provider(2) is None
        with pytest.raises(PermissionDenied):
            await mgt.add_provider(Caller("0xz"), "Other Hospital")
    finally:
        await ledger.dispose()


@pytest.mark.asyncio
async def test_failed_operation_rolls_back_partial_writes(mgt, accounts, monkeypatch):
    from healthledger.users import service as users_service

    async def broken_bind(self, identity, user_id):
        raise HealthLedgerError("bind failed")

    monkeypatch.setattr(users_service.IdentityDirectory, "bind", broken_bind)

    with pytest.raises(HealthLedgerError, match="bind failed"):
        await mgt.add_user(accounts[0], accounts[1].identity, "Dr.Taha", Role.DOCTOR, 1)

    monkeypatch.undo()
    assert await mgt.get_user(2) is None
    async with mgt.ledger.transaction() as session:
        assert await current_counter(session, USER_COUNTER) == 1


@pytest.mark.asyncio
async def test_seed_creates_counter_rows(mgt):
    async with mgt.ledger.transaction() as session:
        assert (await session.get(LedgerCounter, PROVIDER_COUNTER)).value == 1
        assert (await session.get(LedgerCounter, USER_COUNTER)).value == 1


@pytest.mark.asyncio
async def test_racing_add_users_get_consecutive_ids(mgt, accounts):
    ids = await asyncio.gather(
        mgt.add_user(accounts[0], accounts[1].identity, "Dr.Taha", Role.DOCTOR, 1),
        mgt.add_user(accounts[0], accounts[2].identity, "Mr.Patient", Role.PATIENT, 1),
    )
    assert sorted(ids) == [2, 3]
    assert (await mgt.get_user(2)).exists and (await mgt.get_user(3)).exists


@pytest.mark.asyncio
async def test_racing_add_users_with_one_identity(mgt, accounts):
    results = await asyncio.gather(
        mgt.add_user(accounts[0], accounts[1].identity, "Dr.Taha", Role.DOCTOR, 1),
        mgt.add_user(accounts[0], accounts[1].identity, "Dr.Taha", Role.DOCTOR, 1),
        return_exceptions=True,
    )
    assert 2 in results
    assert sum(isinstance(r, AlreadyExists) for r in results) == 1
    assert await mgt.get_user(3) is None


@pytest.mark.asyncio
async def test_racing_record_creation_on_file_ledger(tmp_path, accounts):
    admin, doctor = accounts[0], accounts[1]
    ledger = Ledger.from_url(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    try:
        mgt = await HealthRecordMgt.create(ledger, [admin.identity], "ABC Hospital")
        await mgt.add_user(admin, doctor.identity, "Dr.Taha", Role.DOCTOR, 1)
        await mgt.add_user(admin, accounts[2].identity, "Mr.Patient", Role.PATIENT, 1)

        record_ids = await asyncio.gather(
            mgt.create_health_record(doctor, 3, "cold and flu"),
            mgt.create_health_record(doctor, 3, "fever"),
        )
        assert sorted(record_ids) == [1, 2]
        records = await mgt.get_health_records(doctor, 3)
        assert [r.record_id for r in records] == [1, 2]
    finally:
        await ledger.dispose()


@pytest.mark.asyncio
async def test_timestamps_are_timezone_aware(mgt, accounts):
    assert utcnow().utcoffset().total_seconds() == 0
    with warnings.catch_warnings():
        warnings.filterwarnings("error", message=".*utcnow.*")
        await mgt.update_provider(accounts[0], 1, "XYZ Hospital")
    async with mgt.ledger.transaction() as session:
        provider = await session.get(ServiceProvider, 1)
        assert provider.updated_at is not None
