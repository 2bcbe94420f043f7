"""Detour audit log package.

    from detour.audit import AuditLog, SeenEntry
"""

from detour.audit.log import AuditLog
from detour.audit.models import SeenEntry, SourceType

__all__ = [
    "AuditLog",
    "SeenEntry",
    "SourceType",
]
