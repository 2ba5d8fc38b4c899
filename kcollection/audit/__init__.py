"""Audit logging for kcollection."""

from kcollection.audit.logger import AuditLogger, init_audit_logger

__all__ = [
    "AuditLogger",
    "init_audit_logger",
]
