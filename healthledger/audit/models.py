from enum import Enum


class AuditCategory(str, Enum):
    SYSTEM = "system"
    SECURITY = "security"
    PROVIDER = "provider"
    USER = "user"
    HEALTH_RECORD = "health_record"
