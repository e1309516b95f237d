import pytest
import pytest_asyncio

from healthledger import Caller, HealthRecordMgt, Ledger


@pytest.fixture
def accounts():
    """Ten distinct authenticated callers; accounts[0] is the initial admin."""
    return [Caller(identity=f"0x{i:040x}") for i in range(10)]


@pytest_asyncio.fixture
async def mgt(accounts):
    ledger = Ledger.from_url("sqlite+aiosqlite:///:memory:")
    svc = await HealthRecordMgt.create(ledger, [accounts[0].identity], "ABC Hospital")
    try:
        yield svc
    finally:
        await ledger.dispose()
