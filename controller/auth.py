"""Caller identification for audit logging."""

import re
from typing import Optional

from fastapi import Header, Request

_CALLER_RE = re.compile(r"^[A-Za-z0-9_.@-]{1,64}$")


def normalize_caller(value: Optional[str]) -> Optional[str]:
    """
    Clean up a caller identity taken from a request header.

    Args:
        value: Raw header value

    Returns:
        The identity if it is a short token of safe characters, otherwise None
    """
    if value is None:
        return None
    value = value.strip()
    if not _CALLER_RE.match(value):
        return None
    return value


async def get_caller(
    request: Request,
    x_caller_id: Optional[str] = Header(None),
) -> Optional[str]:
    """
    FastAPI dependency returning the caller identity from X-Caller-Id.

    The identity is recorded in logs only. It is not an access control decision.
    """
    caller = normalize_caller(x_caller_id)
    request.state.caller = caller
    return caller
