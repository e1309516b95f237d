import asyncio
import logging
from typing import Optional

from .config import Settings, get_settings
from .database import get_engine
from .ledger.service import Ledger
from .audit.service import get_audit_service
from .service import HealthRecordMgt


class AddTraceIdFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "trace_id"):
            record.trace_id = "system"
        return True


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - trace_id=%(trace_id)s - %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(AddTraceIdFilter())
    return logging.getLogger("healthledger")


async def bootstrap(settings: Optional[Settings] = None) -> HealthRecordMgt:
    """Open the configured ledger and seed it from INITIAL_ADMIN_IDENTITIES."""
    settings = settings or get_settings()
    if not settings.initial_admin_identities:
        raise RuntimeError("INITIAL_ADMIN_IDENTITIES must list at least one identity")
    ledger = Ledger(get_engine(settings))
    return await HealthRecordMgt.create(
        ledger,
        settings.initial_admin_identities,
        settings.initial_provider_name,
        audit=get_audit_service(),
    )


async def _run() -> None:
    logger = logging.getLogger("healthledger")
    mgt = await bootstrap()
    try:
        provider = await mgt.get_provider(1)
        logger.info("Ledger ready; provider 1 is %s", provider.name if provider else None)
    finally:
        await mgt.ledger.dispose()


def main() -> None:
    logger = configure_logging()
    logger.info("Health record ledger starting")
    asyncio.run(_run())


if __name__ == "__main__":
    main()
