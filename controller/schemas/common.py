"""Common schemas used across multiple endpoints."""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Response model for errors."""
    detail: str
    code: str


class IntegrityWarningResponse(BaseModel):
    """A non-fatal inconsistency found while deleting or auditing."""
    kind: str
    message: str
    details: Dict[str, Any] = {}


class FileCleanupResponse(BaseModel):
    """Outcome of deleting one file of a week."""
    file_id: str
    role: str
    removed: bool
    error: Optional[str] = None
