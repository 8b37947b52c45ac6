from fieldtrack.models.user import User
from fieldtrack.models.client import Client
from fieldtrack.models.visit import Visit
from fieldtrack.models.invoice import Invoice
from fieldtrack.models.audit_log import AuditLog

__all__ = ["User", "Client", "Visit", "Invoice", "AuditLog"]
