"""Tests for CLI command handlers."""

from unittest.mock import Mock, patch

from cli.commands import (
    handle_audit,
    handle_delete_week,
    handle_download,
    handle_health,
    handle_list_weeks,
    handle_repair,
    handle_show_week,
    handle_upload_week,
)
from cli.controller_client import ControllerClient
from cli.main import run_once
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
from cli.repl import dispatch_command


def test_handle_list_weeks():
    """Test weeks command handler with mocked client."""
    mock_client = Mock(spec=ControllerClient)
    mock_client.list_weeks.return_value = "Found 2 week(s)"

    result = handle_list_weeks(ListWeeksCommand(order="desc"), client=mock_client)

    assert 'Found 2' in result
    mock_client.list_weeks.assert_called_once_with("desc")


def test_handle_show_week():
    mock_client = Mock(spec=ControllerClient)
    mock_client.get_week.return_value = "Week 3: Beach"

    result = handle_show_week(ShowWeekCommand(week_number=3), client=mock_client)

    assert result == "Week 3: Beach"
    mock_client.get_week.assert_called_once_with(3)


def test_handle_upload_week():
    """Test upload-week handler passes photos as a list and the report path."""
    mock_client = Mock(spec=ControllerClient)
    mock_client.upload_week.return_value = "Created Week 3"

    cmd = UploadWeekCommand(
        week_number=3,
        summary="Beach",
        photos=("uploads/a.jpg", "uploads/b.jpg"),
        report="uploads/r.pdf",
    )
    result = handle_upload_week(cmd, client=mock_client)

    assert 'Created' in result
    mock_client.upload_week.assert_called_once_with(
        3, "Beach", ["uploads/a.jpg", "uploads/b.jpg"], "uploads/r.pdf"
    )


def test_handle_delete_week():
    mock_client = Mock(spec=ControllerClient)
    mock_client.delete_week.return_value = "Week 3 deleted successfully"

    result = handle_delete_week(DeleteWeekCommand(week_number=3), client=mock_client)

    assert 'deleted' in result
    mock_client.delete_week.assert_called_once_with(3)


def test_handle_download():
    mock_client = Mock(spec=ControllerClient)
    mock_client.download.return_value = "Downloaded: report.pdf"

    cmd = DownloadCommand(file_id="abc", output_path="downloads/x.pdf", byte_range="0-99")
    result = handle_download(cmd, client=mock_client)

    assert 'Downloaded' in result
    mock_client.download.assert_called_once_with("abc", "downloads/x.pdf", "0-99")


def test_handle_audit():
    mock_client = Mock(spec=ControllerClient)
    mock_client.audit.return_value = "Health score: 100%"

    assert handle_audit(AuditCommand(), client=mock_client) == "Health score: 100%"


def test_handle_repair_without_flags_skips_request():
    mock_client = Mock(spec=ControllerClient)

    result = handle_repair(RepairCommand(), client=mock_client)

    assert result.startswith("Nothing to repair")
    mock_client.repair.assert_not_called()


def test_handle_repair_with_flags():
    mock_client = Mock(spec=ControllerClient)
    mock_client.repair.return_value = "Actions (1)"

    handle_repair(RepairCommand(delete_orphans=True), client=mock_client)

    mock_client.repair.assert_called_once_with(False, True)


def test_handle_health():
    mock_client = Mock(spec=ControllerClient)
    mock_client.health.return_value = "Service ready"

    assert handle_health(HealthCommand(), client=mock_client) == "Service ready"


def test_dispatch_routes_to_handler():
    with patch("cli.repl.handle_show_week", return_value="Week 5") as handler:
        result = dispatch_command(ShowWeekCommand(week_number=5))

    assert result == "Week 5"
    handler.assert_called_once_with(ShowWeekCommand(week_number=5))


def test_dispatch_unknown_object():
    assert dispatch_command(object()).startswith("Unknown command type")


def test_run_once_success(capsys):
    with patch("cli.main.dispatch_command", return_value="Service ready") as dispatch:
        code = run_once(["health"])

    assert code == 0
    assert "Service ready" in capsys.readouterr().out
    dispatch.assert_called_once_with(HealthCommand())


def test_run_once_keeps_quoted_summary():
    with patch("cli.main.dispatch_command", return_value="Created") as dispatch:
        run_once(["upload-week", "3", "Beach clean-up"])

    assert dispatch.call_args.args[0].summary == "Beach clean-up"


def test_run_once_error_exit_codes(capsys):
    assert run_once(["frobnicate"]) == 2
    assert "Unknown command" in capsys.readouterr().err

    with patch("cli.main.dispatch_command", return_value="Error: Not found"):
        assert run_once(["week", "9"]) == 1
