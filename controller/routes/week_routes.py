"""Week API routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status

from common.constants import DEFAULT_CONTENT_TYPE
from common.types import AssetUpload
from controller.auth import get_caller
from controller.dependencies import get_linker, get_streamer
from controller.routes.file_routes import stream_file
from controller.schemas.common import ErrorResponse, FileCleanupResponse
from controller.schemas.weeks import (
    AttachFileRequest,
    DeletionReportResponse,
    ListWeeksResponse,
    ReplaceReportResponse,
    UpdateSummaryRequest,
    WeekResponse,
)
from controller.services.week_linker import WeekAssetLinker
from controller.utils import validate_identifier
from storage.exceptions import InvalidRequestError
from storage.range_streamer import RangeStreamer

router = APIRouter(prefix="/weeks", tags=["Weeks"])


def to_upload(file: UploadFile) -> AssetUpload:
    return AssetUpload(
        filename=file.filename or "",
        content_type=file.content_type or DEFAULT_CONTENT_TYPE,
        source=file,
        size_hint=getattr(file, "size", None),
    )


@router.get("", response_model=ListWeeksResponse)
async def list_weeks(
    order: str = Query("asc", description="asc or desc by week number"),
    linker: WeekAssetLinker = Depends(get_linker),
):
    """
    List all weeks ordered by week number.

    Raises:
        - 400: Unknown order
    """
    if order not in ("asc", "desc"):
        raise InvalidRequestError(f"order must be 'asc' or 'desc', got {order!r}")

    weeks = linker.list_weeks(descending=order == "desc")
    return ListWeeksResponse(count=len(weeks), weeks=[WeekResponse.from_week(week) for week in weeks])


@router.post(
    "",
    response_model=WeekResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
    },
)
async def create_week(
    week_number: int = Form(..., alias="weekNumber"),
    summary: str = Form(...),
    photos: Optional[List[UploadFile]] = File(None),
    report_pdf: Optional[UploadFile] = File(None, alias="reportPdf"),
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Create a week with its photos and optional report.

    Parameters:
        - weekNumber: Unique non-negative week number (multipart/form-data)
        - summary: Week summary
        - photos: Zero or more image files
        - reportPdf: Optional PDF or presentation

    Returns:
        - The created week with the file ids of its assets

    Raises:
        - 400: Invalid week data or upload type
        - 409: Week already exists
        - 413: Upload too large
    """
    week = await linker.create_week(
        week_number=week_number,
        summary=summary,
        photos=[to_upload(photo) for photo in photos or []],
        report=to_upload(report_pdf) if report_pdf is not None else None,
        caller=caller,
    )
    return WeekResponse.from_week(week)


@router.get("/number/{week_number}", response_model=WeekResponse)
async def get_week(week_number: int, linker: WeekAssetLinker = Depends(get_linker)):
    """
    Get a week by its number.

    Raises:
        - 404: Week not found
    """
    return WeekResponse.from_week(linker.get_week(week_number))


@router.patch("/number/{week_number}", response_model=WeekResponse)
async def update_week_summary(
    week_number: int,
    request: UpdateSummaryRequest,
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Replace a week's summary.

    Raises:
        - 400: Empty summary
        - 404: Week not found
    """
    return WeekResponse.from_week(linker.update_summary(week_number, request.summary, caller=caller))


@router.post("/number/{week_number}/photos", response_model=WeekResponse)
async def add_week_photos(
    week_number: int,
    photos: List[UploadFile] = File(...),
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Upload photos and append them to a week.

    Raises:
        - 400: Not an image, or the photo limit would be exceeded
        - 404: Week not found
        - 413: Upload too large
    """
    week = await linker.add_photos(week_number, [to_upload(photo) for photo in photos], caller=caller)
    return WeekResponse.from_week(week)


@router.put("/number/{week_number}/report", response_model=ReplaceReportResponse)
async def replace_week_report(
    week_number: int,
    report_pdf: UploadFile = File(..., alias="reportPdf"),
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Upload a new report for a week and delete the previous one.

    Returns:
        - week: The updated week
        - replaced: Cleanup outcome of the previous report, if there was one

    Raises:
        - 400: Not a PDF or presentation
        - 404: Week not found
        - 413: Upload too large
    """
    week, cleanup = await linker.replace_report(week_number, to_upload(report_pdf), caller=caller)
    return ReplaceReportResponse(
        week=WeekResponse.from_week(week),
        replaced=FileCleanupResponse(**cleanup.to_dict()) if cleanup is not None else None,
    )


@router.post("/number/{week_number}/attach", response_model=WeekResponse)
async def attach_file(
    week_number: int,
    request: AttachFileRequest,
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Link an already stored file to a week as a photo or the report.

    Raises:
        - 400: Malformed file id, bad role or content type
        - 404: Week or file not found
        - 409: File already belongs to a week
    """
    file_id = validate_identifier(request.file_id, "file id")
    return WeekResponse.from_week(linker.attach_file(week_number, file_id, request.role, caller=caller))


@router.get("/number/{week_number}/files/{file_id}")
async def download_week_file(
    week_number: int,
    file_id: str,
    request: Request,
    linker: WeekAssetLinker = Depends(get_linker),
    streamer: RangeStreamer = Depends(get_streamer),
):
    """
    Stream one of a week's files. Files of other weeks are reported as not found.

    Raises:
        - 400: Malformed file id
        - 404: Week or file not found, or file not part of this week
        - 416: Range not satisfiable
    """
    file_id = validate_identifier(file_id, "file id")
    record = linker.resolve_file_for_week(week_number, file_id)
    return await stream_file(streamer, record, request)


@router.delete("/number/{week_number}/files/{file_id}", response_model=DeletionReportResponse)
async def remove_week_file(
    week_number: int,
    file_id: str,
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Detach a file from a week and delete it.

    Raises:
        - 400: Malformed file id
        - 404: Week not found or file not part of this week
    """
    file_id = validate_identifier(file_id, "file id")
    report = linker.remove_file(week_number, file_id, caller=caller)
    return DeletionReportResponse.from_report(report, _deletion_message(report, f"File {file_id} removed"))


@router.delete("/number/{week_number}", response_model=DeletionReportResponse)
async def delete_week_by_number(
    week_number: int,
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Delete a week and all of its files.

    Returns:
        - removed/failed: Per-file cleanup outcomes
        - warnings: Inconsistencies found while cleaning up

    Raises:
        - 404: Week not found
    """
    report = linker.delete_week(week_number, caller=caller)
    return DeletionReportResponse.from_report(report, _deletion_message(report, f"Week {week_number} deleted"))


@router.get("/{week_id}", response_model=WeekResponse)
async def get_week_by_id(week_id: str, linker: WeekAssetLinker = Depends(get_linker)):
    """
    Get a week by its internal id.

    Raises:
        - 400: Malformed week id
        - 404: Week not found
    """
    week_id = validate_identifier(week_id, "week id")
    return WeekResponse.from_week(linker.get_week_by_id(week_id))


@router.delete("/{week_id}", response_model=DeletionReportResponse)
async def delete_week_by_id(
    week_id: str,
    linker: WeekAssetLinker = Depends(get_linker),
    caller: Optional[str] = Depends(get_caller),
):
    """
    Delete a week by its internal id, together with all of its files.

    Raises:
        - 400: Malformed week id
        - 404: Week not found
    """
    week_id = validate_identifier(week_id, "week id")
    report = linker.delete_week_by_id(week_id, caller=caller)
    return DeletionReportResponse.from_report(
        report, _deletion_message(report, f"Week {report.week_number} deleted")
    )


def _deletion_message(report, base: str) -> str:
    if report.complete:
        return f"{base} successfully"
    return f"{base} with {len(report.failed)} file cleanup failures"
