"""Decision audit trail for permgate."""

from permgate.audit.logger import AuditEventType, AuditLogger

__all__ = ["AuditEventType", "AuditLogger"]
