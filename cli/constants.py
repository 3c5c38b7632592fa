"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "weeks", "week", "upload-week", "delete-week", "download",
    "audit", "repair", "health", "clear", "exit", "help",
]

STYLE = Style.from_dict(
    {
        "prompt": "#2E8B57 bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[38;2;46;139;87m"
RESET = "\033[0m"

LOGO = f"""{GREEN}
 __      __           _    __   __          _ _
 \\ \\    / /__ ___ _ _| |__ \\ \\ / /_ _ _  _| | |_
  \\ \\/\\/ / -_) -_) '_| / /  \\ V / _` | || | |  _|
   \\_/\\_/\\___\\___|_| |_\\_\\   \\_/\\__,_|\\_,_|_|\\__|
{RESET}"""

WELCOME_TITLE = "weekvault admin CLI - program weeks and their files"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "weekvault> "

UPLOADS_DIR = "uploads"
DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  weeks [asc|desc]                                   List weeks ordered by number
  week <n>                                           Show a week and its file ids
  upload-week <n> <summary> [photo ...] [--report <path>]
                                                     Create a week (files must use uploads/ prefix)
  delete-week <n>                                    Delete a week and all of its files
  download <file-id> [output_path] [--range a-b]     Download a file (output uses downloads/ prefix)
  audit                                              Run a read-only integrity audit
  repair [--strip-dangling] [--delete-orphans]       Audit and apply the requested repairs
  health                                             Check service readiness
  clear                                              Clear screen and redisplay welcome message
  help                                               Show this help
  exit                                               Exit REPL

Week 0 holds the career guidance material.
Examples:
  weeks desc
  upload-week 3 "Beach clean-up" uploads/beach1.jpg uploads/beach2.jpg --report uploads/week3.pdf
  week 3
  download 7c9e6679-7425-40de-944b-e07fc1f90ae7 downloads/report.pdf
  download 7c9e6679-7425-40de-944b-e07fc1f90ae7 --range 0-99
  repair --strip-dangling"""

PHOTO_FILE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
REPORT_FILE_EXTENSIONS = (".pdf", ".ppt", ".pptx")
SUPPORTED_FILE_EXTENSIONS = PHOTO_FILE_EXTENSIONS + REPORT_FILE_EXTENSIONS
