from .models import AuditCategory
from .service import AuditService, get_audit_service

__all__ = ["AuditCategory", "AuditService", "get_audit_service"]
