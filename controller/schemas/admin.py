"""Pydantic schemas for the audit and repair endpoints."""

from typing import Dict, List

from pydantic import BaseModel

from controller.schemas.common import IntegrityWarningResponse


class RepairRequest(BaseModel):
    """Request model for repair. Nothing is changed unless a flag is set."""
    strip_dangling: bool = False
    delete_orphans: bool = False


class AuditStats(BaseModel):
    total_files: int
    valid_files: int
    incomplete_files: int
    stray_chunk_sets: int
    orphaned_files: int
    dangling_references: int
    total_weeks: int
    valid_weeks: int
    invalid_weeks: int


class AuditResponse(BaseModel):
    """Response model for audit and repair runs."""
    generated_at: str
    health_score: int
    stats: AuditStats
    incomplete_files: List[str]
    stray_chunk_sets: List[str]
    orphaned_files: List[str]
    dangling_references: Dict[str, List[str]]
    invalid_weeks: List[int]
    warnings: List[IntegrityWarningResponse]
    actions: List[str]
