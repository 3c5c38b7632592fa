"""Command parser for CLI input."""

import re
import shlex

from cli.models import (
    AuditCommand,
    CommandRequest,
    DeleteWeekCommand,
    DownloadCommand,
    HealthCommand,
    ListWeeksCommand,
    RepairCommand,
    ShowWeekCommand,
    UploadWeekCommand,
)

_RANGE_RE = re.compile(r"^\d+-\d*$")


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "weeks":
        return _parse_weeks(tokens[1:])
    elif command_name == "week":
        return _parse_week(tokens[1:])
    elif command_name == "upload-week":
        return _parse_upload_week(tokens[1:])
    elif command_name == "delete-week":
        return _parse_delete_week(tokens[1:])
    elif command_name == "download":
        return _parse_download(tokens[1:])
    elif command_name == "audit":
        return _parse_no_args("audit", tokens[1:], AuditCommand)
    elif command_name == "repair":
        return _parse_repair(tokens[1:])
    elif command_name == "health":
        return _parse_no_args("health", tokens[1:], HealthCommand)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_week_number(value: str) -> int:
    """Parse a non-negative week number."""
    try:
        week_number = int(value)
    except ValueError:
        raise ParseError(f"Week number must be an integer, got '{value}'")
    if week_number < 0:
        raise ParseError(f"Week number must not be negative, got {week_number}")
    return week_number


def _parse_weeks(args: list[str]) -> ListWeeksCommand:
    """Parse 'weeks [asc|desc]' command."""
    if not args:
        return ListWeeksCommand()
    if len(args) > 1 or args[0] not in ("asc", "desc"):
        raise ParseError("weeks accepts an optional order: asc or desc")
    return ListWeeksCommand(order=args[0])


def _parse_week(args: list[str]) -> ShowWeekCommand:
    """Parse 'week <n>' command."""
    if len(args) != 1:
        raise ParseError("week requires exactly 1 argument: <n>")
    return ShowWeekCommand(week_number=_parse_week_number(args[0]))


def _parse_upload_week(args: list[str]) -> UploadWeekCommand:
    """Parse 'upload-week <n> <summary> [photo ...] [--report <path>]' command."""
    if len(args) < 2:
        raise ParseError("upload-week requires at least 2 arguments: <n> <summary>")

    week_number = _parse_week_number(args[0])
    summary = args[1]
    if not summary.strip():
        raise ParseError("upload-week requires a non-empty summary")

    photos = []
    report = None
    rest = args[2:]
    i = 0
    while i < len(rest):
        if rest[i] == "--report":
            if i + 1 >= len(rest):
                raise ParseError("--report requires a file path")
            if report is not None:
                raise ParseError("--report may only be given once")
            report = rest[i + 1]
            i += 2
            continue
        if rest[i].startswith("--"):
            raise ParseError(f"Unknown option: {rest[i]}")
        photos.append(rest[i])
        i += 1

    return UploadWeekCommand(
        week_number=week_number,
        summary=summary,
        photos=tuple(photos),
        report=report,
    )


def _parse_delete_week(args: list[str]) -> DeleteWeekCommand:
    """Parse 'delete-week <n>' command."""
    if len(args) != 1:
        raise ParseError("delete-week requires exactly 1 argument: <n>")
    return DeleteWeekCommand(week_number=_parse_week_number(args[0]))


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <file-id> [output_path] [--range a-b]' command."""
    byte_range = None
    positional = []
    i = 0
    while i < len(args):
        if args[i] == "--range":
            if i + 1 >= len(args):
                raise ParseError("--range requires a value like 0-99")
            byte_range = args[i + 1]
            if not _RANGE_RE.match(byte_range):
                raise ParseError(f"Invalid range '{byte_range}', expected start-end or start-")
            i += 2
            continue
        positional.append(args[i])
        i += 1

    if not 1 <= len(positional) <= 2:
        raise ParseError("download requires 1 or 2 arguments: <file-id> [output_path]")

    file_id = positional[0]
    output_path = positional[1] if len(positional) > 1 else None

    return DownloadCommand(file_id=file_id, output_path=output_path, byte_range=byte_range)


def _parse_repair(args: list[str]) -> RepairCommand:
    """Parse 'repair [--strip-dangling] [--delete-orphans]' command."""
    unknown = [arg for arg in args if arg not in ("--strip-dangling", "--delete-orphans")]
    if unknown:
        raise ParseError(f"Unknown option for repair: {unknown[0]}")
    return RepairCommand(
        strip_dangling="--strip-dangling" in args,
        delete_orphans="--delete-orphans" in args,
    )


def _parse_no_args(name: str, args: list[str], command_type):
    """Parse a command that takes no arguments."""
    if args:
        raise ParseError(f"{name} takes no arguments")
    return command_type()
