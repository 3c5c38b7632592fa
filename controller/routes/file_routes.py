"""File streaming API routes."""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse

from common.logging_config import get_logger
from common.types import FileRecord
from controller.dependencies import get_catalog, get_streamer
from controller.schemas.common import ErrorResponse
from controller.schemas.files import FileMetadataResponse
from controller.utils import validate_identifier
from storage.file_catalog import FileCatalog
from storage.range_streamer import RangeStreamer

logger = get_logger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])


async def stream_file(streamer: RangeStreamer, record: FileRecord, request: Request) -> Response:
    """
    Build the HTTP response for a stored file, honoring Range and If-None-Match.

    Raises:
        RangeError: If the Range header is not satisfiable (mapped to 416)
    """
    plan = await streamer.serve(
        record,
        range_header=request.headers.get("range"),
        if_none_match=request.headers.get("if-none-match"),
    )

    if plan.status_code == status.HTTP_304_NOT_MODIFIED:
        headers = {k: v for k, v in plan.headers.items() if k not in ("Content-Type", "Content-Disposition")}
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    logger.debug(
        f"Streaming file {record.file_id} status={plan.status_code} range={plan.start}-{plan.end}"
    )
    return StreamingResponse(plan.body, status_code=plan.status_code, headers=plan.headers)


@router.get(
    "/{file_id}",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        416: {"model": ErrorResponse},
    },
)
async def download_file(
    file_id: str,
    request: Request,
    streamer: RangeStreamer = Depends(get_streamer),
):
    """
    Stream a file by file_id.

    Parameters:
        - file_id: UUID of the file
        - Range header: optional, "bytes=start-end" or "bytes=start-"
        - If-None-Match header: optional, the file's ETag

    Returns:
        - 200 with the full content, 206 with the requested range,
          or 304 when the ETag matches

    Raises:
        - 400: Malformed file id
        - 404: File not found
        - 416: Range not satisfiable
    """
    file_id = validate_identifier(file_id, "file id")
    record = streamer.catalog.lookup(file_id)
    return await stream_file(streamer, record, request)


@router.get("/{file_id}/metadata", response_model=FileMetadataResponse)
async def get_file_metadata(
    file_id: str,
    catalog: FileCatalog = Depends(get_catalog),
):
    """
    Return the metadata record of a file without its content.

    Raises:
        - 400: Malformed file id
        - 404: File not found
    """
    file_id = validate_identifier(file_id, "file id")
    return FileMetadataResponse.from_record(catalog.lookup(file_id))
