"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    AuditCommand,
    DeleteWeekCommand,
    DownloadCommand,
    HealthCommand,
    ListWeeksCommand,
    RepairCommand,
    ShowWeekCommand,
    UploadWeekCommand,
)
from cli.config import Config
from cli.controller_client import ControllerClient

logger = get_logger(__name__)


_client: Optional[ControllerClient] = None


def get_client() -> ControllerClient:
    """
    Get or create global ControllerClient instance.

    Returns:
        ControllerClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new ControllerClient instance")
        config = Config(Path.home() / '.weekvault' / 'config.json')
        _client = ControllerClient(config)
    return _client


def handle_list_weeks(cmd: ListWeeksCommand, client: Optional[ControllerClient] = None) -> str:
    """
    Handle 'weeks' command.

    Args:
        cmd: ListWeeksCommand with sort order
        client: Optional ControllerClient for dependency injection (testing)

    Returns:
        Formatted list of weeks
    """
    if client is None:
        client = get_client()
    return client.list_weeks(cmd.order)


def handle_show_week(cmd: ShowWeekCommand, client: Optional[ControllerClient] = None) -> str:
    """Handle 'week' command."""
    if client is None:
        client = get_client()
    return client.get_week(cmd.week_number)


def handle_upload_week(cmd: UploadWeekCommand, client: Optional[ControllerClient] = None) -> str:
    """
    Handle 'upload-week' command.

    Args:
        cmd: UploadWeekCommand with week number, summary, photos and report
        client: Optional ControllerClient for dependency injection (testing)

    Returns:
        Success or error message with the created week
    """
    logger.info(
        f"Executing upload-week command: week={cmd.week_number} photos={len(cmd.photos)} "
        f"report={'yes' if cmd.report else 'no'}"
    )
    if client is None:
        client = get_client()
    result = client.upload_week(cmd.week_number, cmd.summary, list(cmd.photos), cmd.report)
    logger.debug("Upload-week command completed")
    return result


def handle_delete_week(cmd: DeleteWeekCommand, client: Optional[ControllerClient] = None) -> str:
    """Handle 'delete-week' command."""
    logger.info(f"Executing delete-week command: week={cmd.week_number}")
    if client is None:
        client = get_client()
    return client.delete_week(cmd.week_number)


def handle_download(cmd: DownloadCommand, client: Optional[ControllerClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with file id, optional output path and range
        client: Optional ControllerClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(
        f"Executing download command: file_id={cmd.file_id} output_path={cmd.output_path} range={cmd.byte_range}"
    )
    if client is None:
        client = get_client()
    result = client.download(cmd.file_id, cmd.output_path, cmd.byte_range)
    logger.debug("Download command completed")
    return result


def handle_audit(cmd: AuditCommand, client: Optional[ControllerClient] = None) -> str:
    """Handle 'audit' command."""
    if client is None:
        client = get_client()
    return client.audit()


def handle_repair(cmd: RepairCommand, client: Optional[ControllerClient] = None) -> str:
    """
    Handle 'repair' command.

    Nothing is changed unless at least one repair flag is given.
    """
    if not (cmd.strip_dangling or cmd.delete_orphans):
        return "Nothing to repair: pass --strip-dangling and/or --delete-orphans."
    logger.info(
        f"Executing repair command: strip_dangling={cmd.strip_dangling} delete_orphans={cmd.delete_orphans}"
    )
    if client is None:
        client = get_client()
    return client.repair(cmd.strip_dangling, cmd.delete_orphans)


def handle_health(cmd: HealthCommand, client: Optional[ControllerClient] = None) -> str:
    """Handle 'health' command."""
    if client is None:
        client = get_client()
    return client.health()
