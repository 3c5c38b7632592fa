"""Exception taxonomy for the file storage subsystem and the week domain layer."""

from typing import Optional


class StorageException(Exception):
    """
    Base exception class for all storage and week-asset errors.
    """
    pass


class NotFoundError(StorageException):
    """
    Raised when a file-id, week number or week id does not exist.
    """
    pass


class DuplicateError(StorageException):
    """
    Raised when a week number already exists or a file-id collides.
    """
    pass


class RangeError(StorageException):
    """
    Raised when a byte range falls outside [0, length) or start > end.
    """

    def __init__(self, message: str, length: Optional[int] = None):
        super().__init__(message)
        self.length = length


class InvalidIdentifierError(StorageException):
    """
    Raised when a file-id or week id is not a well-formed identifier.
    """
    pass


class InvalidRequestError(StorageException):
    """
    Raised when week data or an upload fails validation.
    """
    pass


class UploadTooLargeError(InvalidRequestError):
    """
    Raised when a single upload exceeds the configured size limit.
    """
    pass


class StorageIOError(StorageException):
    """
    Raised when a read or write against the backing database fails.
    """
    pass


class StorageUnavailableError(StorageIOError):
    """
    Raised when the backing database cannot be opened at all.
    """
    pass


class DeadlineExceededError(StorageException):
    """
    Raised when an upload or download runs past its caller-supplied deadline.
    """
    pass
