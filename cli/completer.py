"""Custom completer for the weekvault CLI with upload file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import (
    COMMANDS,
    PHOTO_FILE_EXTENSIONS,
    REPORT_FILE_EXTENSIONS,
    SUPPORTED_FILE_EXTENSIONS,
    UPLOADS_DIR,
)


class WeekvaultCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Photo and report path completion for 'upload-week' from uploads/
    - Flag completion for 'repair'
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_words(COMMANDS, tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        current_word = "" if is_typing_new_token else tokens[-1]

        if command == "repair":
            yield from self._complete_words(["--strip-dangling", "--delete-orphans"], current_word)
            return

        if command != "upload-week":
            return

        # week number and summary come first
        position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if position < 3:
            return

        previous = tokens[-1] if is_typing_new_token else (tokens[-2] if len(tokens) > 1 else "")
        if previous == "--report":
            extensions = REPORT_FILE_EXTENSIONS
        else:
            extensions = PHOTO_FILE_EXTENSIONS
            if current_word.startswith("-"):
                yield from self._complete_words(["--report"], current_word)
                return

        already_typed = set(t for t in tokens[3:] if t.startswith(f"{UPLOADS_DIR}/"))
        if not is_typing_new_token:
            already_typed.discard(current_word)

        yield from self._complete_uploads_files(current_word, already_typed, extensions)

    def _complete_words(self, words: Iterable[str], partial: str) -> Iterable[Completion]:
        """Complete words matching the partial input."""
        partial_lower = partial.lower()
        for word in words:
            if word.startswith(partial_lower):
                yield Completion(word, start_position=-len(partial))

    def _complete_uploads_files(
        self, partial: str, exclude_files: set, extensions: tuple = SUPPORTED_FILE_EXTENSIONS
    ) -> Iterable[Completion]:
        """
        Complete file paths from the uploads/ directory.

        Only includes files with the given extensions in the root of uploads/.
        Shows a message if no files are available.
        """
        uploads_path = Path.cwd() / UPLOADS_DIR

        if not uploads_path.exists() or not uploads_path.is_dir():
            if not partial or UPLOADS_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no files found - uploads/ directory missing)",
                )
            return

        available_files = []
        for item in uploads_path.iterdir():
            if not item.is_file():
                continue
            if not item.name.lower().endswith(extensions):
                continue
            rel_path = f"{UPLOADS_DIR}/{item.name}"
            if rel_path in exclude_files:
                continue
            available_files.append(rel_path)

        if not available_files:
            if not partial or partial.startswith(UPLOADS_DIR) or UPLOADS_DIR.startswith(partial):
                yield Completion(
                    "",
                    start_position=0,
                    display="(no matching files in uploads/)",
                )
            return

        partial_lower = partial.lower()
        for file_path in sorted(available_files):
            if file_path.lower().startswith(partial_lower):
                yield Completion(file_path, start_position=-len(partial))
