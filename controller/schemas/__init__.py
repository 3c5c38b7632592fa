"""Pydantic schemas for API requests and responses."""

from controller.schemas.admin import AuditResponse, AuditStats, RepairRequest
from controller.schemas.common import ErrorResponse, FileCleanupResponse, IntegrityWarningResponse
from controller.schemas.files import FileMetadataResponse
from controller.schemas.weeks import (
    AttachFileRequest,
    DeletionReportResponse,
    ListWeeksResponse,
    ReplaceReportResponse,
    UpdateSummaryRequest,
    WeekResponse,
)

__all__ = [
    "AuditResponse",
    "AuditStats",
    "RepairRequest",
    "ErrorResponse",
    "FileCleanupResponse",
    "IntegrityWarningResponse",
    "FileMetadataResponse",
    "AttachFileRequest",
    "DeletionReportResponse",
    "ListWeeksResponse",
    "ReplaceReportResponse",
    "UpdateSummaryRequest",
    "WeekResponse",
]
