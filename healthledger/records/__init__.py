from .service import HealthRecordStore

__all__ = ["HealthRecordStore"]
