"""Service layer for business logic."""

from controller.services.integrity_auditor import AuditReport, IntegrityAuditor
from controller.services.week_linker import WeekAssetLinker

__all__ = [
    "AuditReport",
    "IntegrityAuditor",
    "WeekAssetLinker",
]
