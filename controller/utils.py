"""Utility helper functions for the Controller."""

import uuid
from datetime import datetime, timezone

from storage.exceptions import InvalidIdentifierError


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_identifier(value: str, kind: str = "file id") -> str:
    """
    Check that a file-id or week-id is a well-formed UUID.

    Args:
        value: Identifier as received from the caller
        kind: Used in the error message (e.g., "file id", "week id")

    Returns:
        Canonical lower-case UUID string

    Raises:
        InvalidIdentifierError: If value is not a UUID
    """
    try:
        return str(uuid.UUID(str(value).strip()))
    except (ValueError, AttributeError, TypeError) as e:
        raise InvalidIdentifierError(f"Invalid {kind}: {value!r}") from e
