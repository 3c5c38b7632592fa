"""Shared data type definitions (FileRecord, WeekAsset, ChunkLayout, AssetUpload, etc.)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterable, Dict, Iterable, List, Optional, Tuple, Union

from common.constants import CAREER_GUIDANCE_WEEK


ByteSource = Union[bytes, bytearray, memoryview, Iterable[bytes], AsyncIterable[bytes], Any]


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata for one stored binary asset.
    """
    file_id: str
    filename: str
    content_type: str
    length: int
    chunk_size: int
    upload_date: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "filename": self.filename,
            "content_type": self.content_type,
            "length": self.length,
            "chunk_size": self.chunk_size,
            "upload_date": self.upload_date.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ChunkLayout:
    """
    Index numbers and sizes of the chunks stored for a file, without their data.
    """
    file_id: str
    sizes: Tuple[Tuple[int, int], ...]

    @property
    def chunk_count(self) -> int:
        return len(self.sizes)

    @property
    def total_length(self) -> int:
        return sum(size for _, size in self.sizes)

    @property
    def is_contiguous(self) -> bool:
        return all(n == expected for expected, (n, _) in enumerate(self.sizes))

    def missing_indexes(self) -> List[int]:
        present = {n for n, _ in self.sizes}
        if not present:
            return []
        return [n for n in range(max(present) + 1) if n not in present]


@dataclass(frozen=True)
class WeekAsset:
    """
    A program week and the file-ids of its photos and report.
    """
    week_id: str
    week_number: int
    summary: str
    photo_file_ids: Tuple[str, ...]
    report_file_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    @property
    def file_ids(self) -> List[str]:
        """All referenced file-ids, photos first, in declared order."""
        ids = list(self.photo_file_ids)
        if self.report_file_id:
            ids.append(self.report_file_id)
        return ids

    @property
    def is_career_guidance(self) -> bool:
        return self.week_number == CAREER_GUIDANCE_WEEK

    def references(self, file_id: str) -> bool:
        return file_id in self.photo_file_ids or file_id == self.report_file_id

    def role_of(self, file_id: str) -> Optional[str]:
        if file_id in self.photo_file_ids:
            return "photo"
        if file_id == self.report_file_id:
            return "report"
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_id": self.week_id,
            "week_number": self.week_number,
            "summary": self.summary,
            "photos": list(self.photo_file_ids),
            "report_file_id": self.report_file_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class AssetUpload:
    """
    One incoming file: display name, MIME type and a byte source.

    The source may be bytes, a (sync or async) iterable of bytes, or an object
    with a sync or async ``read(n)`` method such as an UploadFile.
    """
    filename: str
    content_type: str
    source: ByteSource
    size_hint: Optional[int] = None


@dataclass(frozen=True)
class IntegrityWarning:
    """
    A recorded, non-fatal inconsistency between week records and stored files.
    """
    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": dict(self.details)}


@dataclass(frozen=True)
class FileCleanup:
    """
    Outcome of removing one file referenced by a week.
    """
    file_id: str
    role: str
    removed: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"file_id": self.file_id, "role": self.role, "removed": self.removed, "error": self.error}


@dataclass
class DeletionReport:
    """
    Result of deleting a week or a single week asset.
    """
    week_id: str
    week_number: int
    summary: str
    removed: List[FileCleanup] = field(default_factory=list)
    failed: List[FileCleanup] = field(default_factory=list)
    warnings: List[IntegrityWarning] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_id": self.week_id,
            "week_number": self.week_number,
            "summary": self.summary,
            "removed": [item.to_dict() for item in self.removed],
            "failed": [item.to_dict() for item in self.failed],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }
