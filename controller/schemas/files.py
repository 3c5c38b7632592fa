"""Pydantic schemas for file metadata endpoints."""

from typing import Any, Dict

from pydantic import BaseModel

from common.types import FileRecord


class FileMetadataResponse(BaseModel):
    """Response model for file metadata."""
    file_id: str
    filename: str
    content_type: str
    length: int
    chunk_size: int
    upload_date: str
    metadata: Dict[str, Any]

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileMetadataResponse":
        return cls(**record.to_dict())
