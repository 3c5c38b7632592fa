"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class ListWeeksCommand:
    """List all weeks."""

    order: Literal["asc", "desc"] = "asc"
    command: Literal["weeks"] = "weeks"


@dataclass(frozen=True)
class ShowWeekCommand:
    """Show one week and its files."""

    week_number: int
    command: Literal["week"] = "week"


@dataclass(frozen=True)
class UploadWeekCommand:
    """Create a week from local photos and an optional report."""

    week_number: int
    summary: str
    photos: tuple[str, ...] = ()
    report: str | None = None
    command: Literal["upload-week"] = "upload-week"


@dataclass(frozen=True)
class DeleteWeekCommand:
    """Delete a week and all of its files."""

    week_number: int
    command: Literal["delete-week"] = "delete-week"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a stored file by file id, optionally a byte range of it."""

    file_id: str
    output_path: str | None = None
    byte_range: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class AuditCommand:
    """Run a read-only integrity audit."""

    command: Literal["audit"] = "audit"


@dataclass(frozen=True)
class RepairCommand:
    """Run an audit and the requested repairs."""

    strip_dangling: bool = False
    delete_orphans: bool = False
    command: Literal["repair"] = "repair"


@dataclass(frozen=True)
class HealthCommand:
    """Check service readiness."""

    command: Literal["health"] = "health"


CommandRequest = (
    ListWeeksCommand
    | ShowWeekCommand
    | UploadWeekCommand
    | DeleteWeekCommand
    | DownloadCommand
    | AuditCommand
    | RepairCommand
    | HealthCommand
)
