"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

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
from cli.completer import WeekvaultCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
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
from cli.parser import ParseError, parse_command


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_logo() -> None:
    """Display weekvault logo with ANSI colors."""
    print(LOGO)


def dispatch_command(cmd_obj) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, ListWeeksCommand):
        return handle_list_weeks(cmd_obj)
    elif isinstance(cmd_obj, ShowWeekCommand):
        return handle_show_week(cmd_obj)
    elif isinstance(cmd_obj, UploadWeekCommand):
        return handle_upload_week(cmd_obj)
    elif isinstance(cmd_obj, DeleteWeekCommand):
        return handle_delete_week(cmd_obj)
    elif isinstance(cmd_obj, DownloadCommand):
        return handle_download(cmd_obj)
    elif isinstance(cmd_obj, AuditCommand):
        return handle_audit(cmd_obj)
    elif isinstance(cmd_obj, RepairCommand):
        return handle_repair(cmd_obj)
    elif isinstance(cmd_obj, HealthCommand):
        return handle_health(cmd_obj)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=WeekvaultCompleter(), history=history, style=STYLE
    )

    clear_screen()
    show_logo()
    print(WELCOME_TITLE)
    print(WELCOME_HELP)

    while True:
        try:
            user_input = session.prompt([("class:prompt", PROMPT_TEXT)])

            if not user_input.strip():
                continue

            if user_input.strip() == "exit":
                print("Goodbye!")
                break

            if user_input.strip() == "help":
                print(HELP_TEXT)
                continue

            if user_input.strip() == "clear":
                clear_screen()
                show_logo()
                print(WELCOME_TITLE)
                print(WELCOME_HELP)
                continue

            cmd_obj = parse_command(user_input)
            result = dispatch_command(cmd_obj)
            print(result)

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
