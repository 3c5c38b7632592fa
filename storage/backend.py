"""SQLite storage backend: schema creation and connection management."""

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator

from common.constants import DEFAULT_BUCKET_NAME
from common.logging_config import get_logger
from storage.exceptions import StorageIOError, StorageUnavailableError

logger = get_logger(__name__)

_BUCKET_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StorageBackend:
    """
    Explicit handle to the database holding the binary bucket and the weeks table.

    Every component receives one of these at construction time. A connection
    is opened per operation and closed afterwards.
    """

    def __init__(self, database_path: str, bucket_name: str = DEFAULT_BUCKET_NAME, timeout: float = 30.0):
        if not _BUCKET_NAME_RE.match(bucket_name):
            raise ValueError(f"Invalid bucket name: {bucket_name!r}")
        self.database_path = str(database_path)
        self.bucket_name = bucket_name
        self.timeout = timeout

    @property
    def files_table(self) -> str:
        return f"{self.bucket_name}_files"

    @property
    def chunks_table(self) -> str:
        return f"{self.bucket_name}_chunks"

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.database_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Cannot open database at {self.database_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        sqlite3 errors raised inside the block are re-raised as StorageIOError,
        except IntegrityError which callers translate themselves.
        """
        conn = self._connect()
        try:
            yield conn
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageIOError(str(e)) from e
        finally:
            conn.close()

    def init_schema(self) -> None:
        """
        Create tables and indexes if they don't exist.
        """
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

        with self.connection() as conn:
            cursor = conn.cursor()

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.files_table} (
                    file_id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    length INTEGER NOT NULL,
                    chunk_size INTEGER NOT NULL,
                    upload_date TEXT NOT NULL,
                    metadata TEXT NOT NULL DEFAULT '{{}}'
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.chunks_table} (
                    file_id TEXT NOT NULL,
                    n INTEGER NOT NULL,
                    data BLOB NOT NULL,
                    PRIMARY KEY(file_id, n)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS weeks (
                    week_id TEXT PRIMARY KEY,
                    week_number INTEGER NOT NULL UNIQUE CHECK(week_number >= 0),
                    summary TEXT NOT NULL,
                    photos TEXT NOT NULL DEFAULT '[]',
                    report_file_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.files_table}_upload_date
                ON {self.files_table}(upload_date)
            """)

            conn.commit()

        logger.info(f"Storage schema ready [database={self.database_path}, bucket={self.bucket_name}]")

    def ping(self) -> None:
        """
        Verify the database answers a trivial query.

        Raises:
            StorageUnavailableError: If the database cannot be reached
        """
        try:
            with self.connection() as conn:
                conn.execute("SELECT 1").fetchone()
        except StorageIOError as e:
            raise StorageUnavailableError(str(e)) from e

    def counts(self) -> Dict[str, int]:
        """
        Row counts used by the readiness endpoint.
        """
        with self.connection() as conn:
            weeks = conn.execute("SELECT COUNT(*) FROM weeks").fetchone()[0]
            files = conn.execute(f"SELECT COUNT(*) FROM {self.files_table}").fetchone()[0]
            chunks = conn.execute(f"SELECT COUNT(*) FROM {self.chunks_table}").fetchone()[0]
        return {"weeks": weeks, "files": files, "chunks": chunks}
