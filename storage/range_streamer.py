"""HTTP range handling for stored files: parse, validate and stream byte ranges."""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import timezone
from email.utils import format_datetime
from typing import AsyncIterator, Dict, Optional, Union
from urllib.parse import quote

from common.constants import DEFAULT_CACHE_MAX_AGE_SECONDS, DEFAULT_CONTENT_TYPE
from common.logging_config import get_logger
from common.types import FileRecord
from storage.chunk_store import ChunkStore
from storage.exceptions import RangeError, StorageIOError
from storage.file_catalog import FileCatalog

logger = get_logger(__name__)

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ByteRange:
    """
    A single requested range. end is None for an open-ended "bytes=N-".
    """
    start: int
    end: Optional[int] = None

    def resolve(self, length: int) -> "ByteRange":
        """
        Validate against the file length and fill in an open end.

        Raises:
            RangeError: If start or end is outside [0, length) or start > end
        """
        end = length - 1 if self.end is None else self.end
        if self.start >= length or end >= length or self.start > end:
            raise RangeError(
                f"Requested range {self.start}-{'' if self.end is None else self.end} "
                f"not satisfiable for length {length}",
                length=length
            )
        return ByteRange(self.start, end)


def parse_range_header(value: Optional[str]) -> Optional[ByteRange]:
    """
    Parse a Range header.

    Only "bytes=start-end" and "bytes=start-" are understood. Anything else,
    including suffix ranges and multiple ranges, returns None and the caller
    serves the full content.
    """
    if not value:
        return None

    match = _RANGE_RE.match(value)
    if match is None:
        return None

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else None
    return ByteRange(start, end)


def etag_for(file_id: str) -> str:
    return f'"{file_id}"'


def if_none_match_matches(header: Optional[str], file_id: str) -> bool:
    """
    True if an If-None-Match header names this file's entity tag (or "*").
    """
    if not header:
        return False

    expected = etag_for(file_id)
    for candidate in header.split(","):
        candidate = candidate.strip()
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == "*" or candidate == expected:
            return True
    return False


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fallback = fallback.replace("\\", "_").replace('"', "'")
    value = f'inline; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename)}"
    return value


@dataclass
class StreamPlan:
    """
    Outcome of serving a file: status, headers, resolved range and body.

    body is None for 304 responses.
    """
    record: FileRecord
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    start: Optional[int] = None
    end: Optional[int] = None
    body: Optional[AsyncIterator[bytes]] = None

    @property
    def content_length(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return self.end - self.start + 1


async def _empty_body() -> AsyncIterator[bytes]:
    return
    yield


class RangeStreamer:
    """
    Serves stored files with full, partial and conditional responses.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        catalog: FileCatalog,
        cache_max_age: int = DEFAULT_CACHE_MAX_AGE_SECONDS,
    ):
        self.chunk_store = chunk_store
        self.catalog = catalog
        self.cache_max_age = cache_max_age

    def base_headers(self, record: FileRecord) -> Dict[str, str]:
        upload_date = record.upload_date
        if upload_date.tzinfo is None:
            upload_date = upload_date.replace(tzinfo=timezone.utc)

        return {
            "Content-Type": record.content_type or DEFAULT_CONTENT_TYPE,
            "Accept-Ranges": "bytes",
            "ETag": etag_for(record.file_id),
            "Cache-Control": f"public, max-age={self.cache_max_age}",
            "Last-Modified": format_datetime(upload_date.astimezone(timezone.utc), usegmt=True),
            "Content-Disposition": content_disposition(record.filename),
        }

    def plan(
        self,
        record: FileRecord,
        range_header: Optional[str] = None,
        if_none_match: Optional[str] = None,
    ) -> StreamPlan:
        """
        Decide status, headers and byte range without touching chunk data.

        Raises:
            RangeError: If the requested range is not satisfiable
        """
        headers = self.base_headers(record)

        if if_none_match_matches(if_none_match, record.file_id):
            return StreamPlan(record=record, status_code=304, headers=headers)

        requested = parse_range_header(range_header)
        if requested is None:
            headers["Content-Length"] = str(record.length)
            if record.length == 0:
                return StreamPlan(record=record, status_code=200, headers=headers)
            return StreamPlan(
                record=record,
                status_code=200,
                headers=headers,
                start=0,
                end=record.length - 1,
            )

        resolved = requested.resolve(record.length)
        headers["Content-Range"] = f"bytes {resolved.start}-{resolved.end}/{record.length}"
        headers["Content-Length"] = str(resolved.end - resolved.start + 1)
        return StreamPlan(
            record=record,
            status_code=206,
            headers=headers,
            start=resolved.start,
            end=resolved.end,
        )

    async def serve(
        self,
        file: Union[str, FileRecord],
        range_header: Optional[str] = None,
        if_none_match: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> StreamPlan:
        """
        Build a complete response plan for a file.

        Args:
            file: A file-id (looked up in the catalog) or a FileRecord
            range_header: Raw Range header value, if any
            if_none_match: Raw If-None-Match header value, if any
            deadline: Absolute time.monotonic() deadline for the body stream

        Returns:
            StreamPlan whose body is an async iterator of bytes (None for 304)

        Raises:
            NotFoundError: If the file has no record or no chunks
            RangeError: If the requested range is not satisfiable
            StorageIOError: If fewer bytes are stored than the record declares
        """
        record = file if isinstance(file, FileRecord) else self.catalog.lookup(file)
        plan = self.plan(record, range_header, if_none_match)

        if plan.status_code == 304:
            return plan

        if plan.start is None:
            plan.body = _empty_body()
            return plan

        try:
            body = await self.chunk_store.read_range(record.file_id, plan.start, plan.end, deadline=deadline)
        except RangeError as e:
            # plan() validated against record.length, so the stored chunks are short
            logger.error(f"File {record.file_id} declares {record.length} bytes but only {e.length} are stored")
            raise StorageIOError(
                f"File {record.file_id} is incomplete: {e.length} of {record.length} bytes stored"
            ) from e
        plan.body = self._stream(body, plan)
        return plan

    async def _stream(self, body: AsyncIterator[bytes], plan: StreamPlan) -> AsyncIterator[bytes]:
        sent = 0
        try:
            async for piece in body:
                sent += len(piece)
                yield piece
        except (asyncio.CancelledError, GeneratorExit):
            logger.info(
                f"Client disconnected from file {plan.record.file_id} after {sent} of "
                f"{plan.content_length} bytes (range {plan.start}-{plan.end})"
            )
            raise
        finally:
            await body.aclose()
