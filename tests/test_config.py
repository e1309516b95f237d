import pytest

from healthledger import database
from healthledger.config import Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    database.reset_engine()
    yield
    reset_settings()
    database.reset_engine()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db:5432/ledger")
    monkeypatch.setenv("DEV_MODE", "yes")
    monkeypatch.setenv("INITIAL_ADMIN_IDENTITIES", "0xa, 0xb,,")
    monkeypatch.setenv("INITIAL_PROVIDER_NAME", "PQR Hospital")
    monkeypatch.setenv("TOKEN_EXPIRES_MINUTES", "30")

    settings = get_settings()
    assert settings.database_url.startswith("postgresql+asyncpg://")
    assert settings.dev_mode is True
    assert settings.initial_admin_identities == ["0xa", "0xb"]
    assert settings.initial_provider_name == "PQR Hospital"
    assert settings.token_expires_minutes == 30
    assert settings.is_sqlite is False


def test_defaults_under_pytest(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("TEST_DB_URL", raising=False)
    monkeypatch.delenv("TOKEN_EXPIRES_MINUTES", raising=False)
    monkeypatch.delenv("INITIAL_PROVIDER_NAME", raising=False)

    settings = Settings.from_env()
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"
    assert settings.is_sqlite
    assert settings.token_expires_minutes == 15
    assert settings.initial_provider_name == "ABC Hospital"


def test_bad_int_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("TOKEN_EXPIRES_MINUTES", "soon")
    assert Settings.from_env().token_expires_minutes == 15


def test_sqlite_refused_outside_tests_and_dev_mode(monkeypatch):
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    settings = Settings(database_url="sqlite+aiosqlite:///ledger.db", dev_mode=False)
    with pytest.raises(RuntimeError, match="SQLite is not allowed"):
        database.get_engine(settings)


def test_sqlite_allowed_in_dev_mode(monkeypatch):
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:", dev_mode=True)
    engine = database.get_engine(settings)
    assert engine.dialect.name == "sqlite"
