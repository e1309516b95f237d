"""Access-controlled registry of medical records shared across providers."""

from .identity.directory import Caller
from .ledger.models import Role
from .ledger.service import Ledger
from .service import HealthRecordMgt

__all__ = ["Caller", "HealthRecordMgt", "Ledger", "Role"]
