"""CLI entry point."""

import os
import shlex
import sys

from common.logging_config import setup_logging
from cli.parser import ParseError, parse_command
from cli.repl import dispatch_command, repl_loop


def run_once(argv: list[str]) -> int:
    """
    Run a single command given on the command line and exit.

    Args:
        argv: Command tokens, e.g. ["upload-week", "3", "Beach day", "uploads/a.jpg"]

    Returns:
        Process exit code
    """
    try:
        cmd_obj = parse_command(shlex.join(argv))
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    result = dispatch_command(cmd_obj)
    print(result)
    return 1 if result.startswith("Error") else 0


def main() -> None:
    """Entry point for the weekvault admin CLI."""
    args = sys.argv[1:]
    debug = '--debug' in args
    if debug:
        args.remove('--debug')

    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')
    logger = setup_logging('cli', log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")

    if args:
        sys.exit(run_once(args))

    logger.info("CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
