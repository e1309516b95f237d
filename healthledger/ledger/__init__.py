from .models import Role
from .service import Ledger

__all__ = ["Ledger", "Role"]
