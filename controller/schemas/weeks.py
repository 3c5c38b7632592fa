"""Pydantic schemas for week endpoints."""

from typing import List, Optional

from pydantic import BaseModel

from common.types import DeletionReport, WeekAsset
from controller.schemas.common import FileCleanupResponse, IntegrityWarningResponse


class WeekResponse(BaseModel):
    """Response model for a single week."""
    week_id: str
    week_number: int
    summary: str
    photos: List[str]
    report_file_id: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_week(cls, week: WeekAsset) -> "WeekResponse":
        return cls(**week.to_dict())


class ListWeeksResponse(BaseModel):
    """Response model for week listing."""
    count: int
    weeks: List[WeekResponse]


class UpdateSummaryRequest(BaseModel):
    """Request model for changing a week's summary."""
    summary: str


class AttachFileRequest(BaseModel):
    """Request model for linking an already stored file to a week."""
    file_id: str
    role: str


class DeletionReportResponse(BaseModel):
    """Response model for week or file deletion."""
    message: str
    week_id: str
    week_number: int
    summary: str
    removed: List[FileCleanupResponse]
    failed: List[FileCleanupResponse]
    warnings: List[IntegrityWarningResponse]

    @classmethod
    def from_report(cls, report: DeletionReport, message: str) -> "DeletionReportResponse":
        return cls(message=message, **report.to_dict())


class ReplaceReportResponse(BaseModel):
    """Response model for report replacement."""
    week: WeekResponse
    replaced: Optional[FileCleanupResponse] = None
