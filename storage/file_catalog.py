"""File catalog: metadata records for stored binary assets."""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Union

from common.constants import DEFAULT_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from common.types import FileRecord
from storage.backend import StorageBackend
from storage.exceptions import DuplicateError, NotFoundError

logger = get_logger(__name__)

MetadataPredicate = Union[Mapping[str, Any], Callable[[FileRecord], bool]]

_COLUMNS = "file_id, filename, content_type, length, chunk_size, upload_date, metadata"


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        filename=row["filename"],
        content_type=row["content_type"],
        length=row["length"],
        chunk_size=row["chunk_size"],
        upload_date=datetime.fromisoformat(row["upload_date"]),
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
    )


def _as_callable(predicate: MetadataPredicate) -> Callable[[FileRecord], bool]:
    if callable(predicate):
        return predicate

    expected = dict(predicate)

    def matches(record: FileRecord) -> bool:
        return all(
            key in record.metadata and record.metadata[key] == value
            for key, value in expected.items()
        )

    return matches


class FileCatalog:
    """
    Metadata records in the bucket's files table. Never touches chunk data.
    """

    def __init__(self, backend: StorageBackend, page_size: int = 200):
        self.backend = backend
        self.page_size = page_size

    def register(
        self,
        file_id: str,
        filename: str,
        content_type: str,
        length: int,
        metadata: Optional[Dict[str, Any]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
        upload_date: Optional[datetime] = None,
    ) -> FileRecord:
        """
        Create the metadata record for a file whose chunks are already stored.

        Args:
            file_id: Identifier shared with the chunk set
            filename: Display name of the file
            content_type: MIME type served back on download
            length: Total byte length of the chunk set
            metadata: Arbitrary JSON-serializable key/value pairs
            chunk_size: Chunk size the file was stored with
            upload_date: Defaults to now (UTC)

        Returns:
            The stored FileRecord

        Raises:
            DuplicateError: If a record already exists for file_id
        """
        if length < 0:
            raise ValueError("length must not be negative")

        record = FileRecord(
            file_id=file_id,
            filename=filename,
            content_type=content_type,
            length=length,
            chunk_size=chunk_size,
            upload_date=upload_date or datetime.now(timezone.utc),
            metadata=dict(metadata or {}),
        )

        try:
            with self.backend.connection() as conn:
                conn.execute(
                    f"INSERT INTO {self.backend.files_table} ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.file_id,
                        record.filename,
                        record.content_type,
                        record.length,
                        record.chunk_size,
                        record.upload_date.isoformat(),
                        json.dumps(record.metadata),
                    )
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateError(f"File record already exists: {file_id}") from e

        logger.debug(f"Registered file {file_id} ({filename}, {length} bytes)")
        return record

    def find(self, file_id: str) -> Optional[FileRecord]:
        with self.backend.connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM {self.backend.files_table} WHERE file_id = ?",
                (file_id,)
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def lookup(self, file_id: str) -> FileRecord:
        """
        Fetch a file record.

        Raises:
            NotFoundError: If no record exists for file_id
        """
        record = self.find(file_id)
        if record is None:
            raise NotFoundError(f"File not found: {file_id}")
        return record

    def query_by_metadata(self, predicate: MetadataPredicate) -> Iterator[FileRecord]:
        """
        Lazily yield records whose metadata matches the predicate.

        Each call runs a fresh query, so the result can be iterated again by
        calling this method again.

        Args:
            predicate: Mapping of metadata key to expected value, or a
                callable taking a FileRecord and returning bool
        """
        matches = _as_callable(predicate)
        for record in self.iter_all():
            if matches(record):
                yield record

    def iter_all(self) -> Iterator[FileRecord]:
        """
        Yield every record ordered by upload date.

        Rows are fetched a page at a time and the connection is closed before
        any record is yielded, so callers may write to the catalog while
        iterating.
        """
        last: Optional[tuple] = None
        while True:
            with self.backend.connection() as conn:
                if last is None:
                    rows = conn.execute(
                        f"SELECT {_COLUMNS} FROM {self.backend.files_table} "
                        f"ORDER BY upload_date, file_id LIMIT ?",
                        (self.page_size,)
                    ).fetchall()
                else:
                    rows = conn.execute(
                        f"SELECT {_COLUMNS} FROM {self.backend.files_table} "
                        f"WHERE (upload_date, file_id) > (?, ?) "
                        f"ORDER BY upload_date, file_id LIMIT ?",
                        (*last, self.page_size)
                    ).fetchall()

            for row in rows:
                yield _row_to_record(row)

            if len(rows) < self.page_size:
                return
            last = (rows[-1]["upload_date"], rows[-1]["file_id"])

    def remove(self, file_id: str) -> bool:
        """
        Delete a file's metadata record. Chunks are left to the caller.

        Returns:
            True if a record was removed, False if none existed
        """
        with self.backend.connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {self.backend.files_table} WHERE file_id = ?",
                (file_id,)
            )
            conn.commit()
            removed = cursor.rowcount > 0

        if removed:
            logger.debug(f"Removed file record [file_id={file_id}]")
        return removed

    def count(self) -> int:
        with self.backend.connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {self.backend.files_table}").fetchone()[0]
