"""Formatting helpers for transfer sizes and byte ranges."""

import re
from typing import Optional, Tuple

_CONTENT_RANGE_RE = re.compile(r'^bytes (\d+)-(\d+)/(\d+)$')
_UNSATISFIED_RE = re.compile(r'^bytes \*/(\d+)$')

_UNITS = ('KiB', 'MiB', 'GiB', 'TiB')


def format_size(size_bytes: int) -> str:
    """
    Human-readable binary size, e.g. "512 B" or "1.50 MiB".
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = float(size_bytes)
    for unit in _UNITS:
        size /= 1024.0
        if size < 1024.0 or unit == _UNITS[-1]:
            return f"{size:.2f} {unit}"


def parse_content_range(value: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """
    Parse a 206 Content-Range header.

    Args:
        value: Header value such as "bytes 0-99/1048576"

    Returns:
        (start, end, total) with an inclusive end, or None if the header is
        absent or not a satisfied byte range
    """
    if not value:
        return None
    match = _CONTENT_RANGE_RE.match(value.strip())
    if not match:
        return None
    start, end, total = (int(group) for group in match.groups())
    return start, end, total


def describe_content_range(value: Optional[str]) -> Optional[str]:
    """
    One-line summary of a partial download, e.g.
    "Range: bytes 0-99/1048576 (100 B of 1.00 MiB)".
    """
    parsed = parse_content_range(value)
    if parsed is None:
        return None
    start, end, total = parsed
    return f"Range: {value.strip()} ({format_size(end - start + 1)} of {format_size(total)})"


def unsatisfied_length(value: Optional[str]) -> Optional[int]:
    # "bytes */N" on a 416 carries the full file length
    if not value:
        return None
    match = _UNSATISFIED_RE.match(value.strip())
    return int(match.group(1)) if match else None
