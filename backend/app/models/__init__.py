from app.models.user import User, UserRole
from app.models.invoice import Invoice, ApprovalStep
from app.models.audit import AuditLog

__all__ = [
    "User", "UserRole",
    "Invoice", "ApprovalStep",
    "AuditLog",
]
