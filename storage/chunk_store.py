"""Chunked binary storage: split streams into fixed-size chunks and read byte ranges back."""

import asyncio
import inspect
import sqlite3
import time
from typing import AsyncIterator, List, Optional

from common.constants import DEFAULT_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from common.types import ByteSource, ChunkLayout
from storage.backend import StorageBackend
from storage.exceptions import (
    DeadlineExceededError,
    DuplicateError,
    NotFoundError,
    RangeError,
    StorageIOError,
)

logger = get_logger(__name__)


def make_deadline(timeout_seconds: Optional[float]) -> Optional[float]:
    """
    Convert a relative timeout into an absolute monotonic deadline.

    Args:
        timeout_seconds: Seconds from now, or None for no deadline

    Returns:
        Deadline comparable with time.monotonic(), or None
    """
    if timeout_seconds is None:
        return None
    return time.monotonic() + timeout_seconds


def check_deadline(deadline: Optional[float], operation: str) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise DeadlineExceededError(f"Deadline exceeded during {operation}")


async def iter_source(source: ByteSource, piece_size: int) -> AsyncIterator[bytes]:
    """
    Adapt any supported byte source to an async iterator of byte pieces.

    Supported: bytes-like objects, objects with a sync or async read(n),
    async iterables and plain iterables of bytes.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for offset in range(0, len(data), piece_size):
            yield data[offset:offset + piece_size]
        return

    read = getattr(source, "read", None)
    if callable(read):
        while True:
            piece = read(piece_size)
            if inspect.isawaitable(piece):
                piece = await piece
            if not piece:
                break
            yield bytes(piece)
        return

    if hasattr(source, "__aiter__"):
        async for piece in source:
            if piece:
                yield bytes(piece)
        return

    if hasattr(source, "__iter__"):
        for piece in source:
            if piece:
                yield bytes(piece)
        return

    raise TypeError(f"Unsupported byte source: {type(source).__name__}")


class ChunkStore:
    """
    Persists file bytes as (file_id, n) -> chunk rows in the bucket's chunks table.
    """

    def __init__(self, backend: StorageBackend, chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.backend = backend
        self.chunk_size = chunk_size

    async def store(
        self,
        file_id: str,
        source: ByteSource,
        chunk_size: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> int:
        """
        Consume a byte source and write it as sequential chunks.

        Args:
            file_id: Identifier the chunks are stored under
            source: Bytes, iterable/async iterable of bytes, or readable object
            chunk_size: Per-file override of the configured chunk size
            deadline: Absolute time.monotonic() deadline, or None

        Returns:
            Total number of bytes written

        Raises:
            DuplicateError: If chunks already exist for file_id
            StorageIOError: If a chunk write fails
            DeadlineExceededError: If the deadline passes mid-stream
        """
        size = chunk_size or self.chunk_size
        if size <= 0:
            raise ValueError("chunk_size must be positive")

        if self.count_chunks(file_id) > 0:
            raise DuplicateError(f"Chunks already exist for file {file_id}")

        buffer = bytearray()
        written = 0
        total = 0
        loop = asyncio.get_running_loop()
        in_flight: Optional[asyncio.Future] = None

        try:
            async for piece in iter_source(source, size):
                check_deadline(deadline, f"store of file {file_id}")
                buffer.extend(piece)
                while len(buffer) >= size:
                    data = bytes(buffer[:size])
                    del buffer[:size]
                    in_flight = loop.run_in_executor(None, self._write_chunk, file_id, written, data)
                    await asyncio.shield(in_flight)
                    in_flight = None
                    written += 1
                    total += len(data)

            if buffer:
                check_deadline(deadline, f"store of file {file_id}")
                in_flight = loop.run_in_executor(None, self._write_chunk, file_id, written, bytes(buffer))
                await asyncio.shield(in_flight)
                in_flight = None
                written += 1
                total += len(buffer)
        except (Exception, asyncio.CancelledError) as e:
            if in_flight is not None:
                # a cancelled await leaves the insert running in its thread
                await asyncio.wait([in_flight])
                if in_flight.exception() is None:
                    written += 1
            logger.warning(
                f"Store aborted for file {file_id} after {written} chunks ({total} bytes): "
                f"{type(e).__name__}: {e}"
            )
            self._discard_partial(file_id, written)
            raise

        logger.debug(f"Stored file {file_id}: {written} chunks, {total} bytes, chunk_size={size}")
        return total

    def _write_chunk(self, file_id: str, n: int, data: bytes) -> None:
        try:
            with self.backend.connection() as conn:
                conn.execute(
                    f"INSERT INTO {self.backend.chunks_table} (file_id, n, data) VALUES (?, ?, ?)",
                    (file_id, n, sqlite3.Binary(data))
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateError(f"Chunk {n} of file {file_id} already exists") from e

    def _discard_partial(self, file_id: str, written: int) -> None:
        """
        Remove chunks 0..written-1, the ones this store() call inserted.

        Rows at higher indexes belong to a concurrent writer of the same file_id.
        """
        if written == 0:
            return
        try:
            with self.backend.connection() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {self.backend.chunks_table} WHERE file_id = ? AND n < ?",
                    (file_id, written)
                )
                conn.commit()
            logger.info(f"Removed {cursor.rowcount} partial chunks for file {file_id}")
        except StorageIOError as cleanup_error:
            logger.error(
                f"Failed to remove partial chunks for file {file_id}: {cleanup_error}",
                exc_info=True
            )

    def layout(self, file_id: str) -> ChunkLayout:
        """
        Chunk indexes and sizes for a file, ordered by index, without the data.
        """
        with self.backend.connection() as conn:
            rows = conn.execute(
                f"SELECT n, LENGTH(data) AS size FROM {self.backend.chunks_table} WHERE file_id = ? ORDER BY n",
                (file_id,)
            ).fetchall()
        return ChunkLayout(file_id=file_id, sizes=tuple((row["n"], row["size"]) for row in rows))

    async def read_range(
        self,
        file_id: str,
        start: int,
        end: int,
        deadline: Optional[float] = None,
    ) -> AsyncIterator[bytes]:
        """
        Validate an inclusive byte range and return an iterator over its bytes.

        Validation happens before the iterator is returned so callers can
        choose a response status before the first byte is produced.

        Raises:
            NotFoundError: If no chunks exist for file_id
            RangeError: If start/end fall outside [0, length) or start > end
            StorageIOError: If the stored chunk set is not contiguous
        """
        loop = asyncio.get_running_loop()
        layout = await loop.run_in_executor(None, self.layout, file_id)

        if layout.chunk_count == 0:
            raise NotFoundError(f"No chunks stored for file {file_id}")

        if not layout.is_contiguous:
            raise StorageIOError(
                f"Chunk set for file {file_id} is not contiguous (missing {layout.missing_indexes()})"
            )

        length = layout.total_length
        if start < 0 or end < 0 or start >= length or end >= length or start > end:
            raise RangeError(f"Range {start}-{end} not satisfiable for length {length}", length=length)

        return self._iter_range(layout, start, end, deadline)

    async def _iter_range(
        self,
        layout: ChunkLayout,
        start: int,
        end: int,
        deadline: Optional[float],
    ) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        offset = 0

        for n, size in layout.sizes:
            chunk_start = offset
            chunk_end = offset + size - 1
            offset += size

            if chunk_end < start:
                continue
            if chunk_start > end:
                break

            check_deadline(deadline, f"read of file {layout.file_id}")
            data = await loop.run_in_executor(None, self._read_chunk, layout.file_id, n)

            slice_start = max(0, start - chunk_start)
            slice_end = min(size, end - chunk_start + 1)
            yield data[slice_start:slice_end]

    def _read_chunk(self, file_id: str, n: int) -> bytes:
        with self.backend.connection() as conn:
            row = conn.execute(
                f"SELECT data FROM {self.backend.chunks_table} WHERE file_id = ? AND n = ?",
                (file_id, n)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Chunk {n} of file {file_id} disappeared during read")
        return bytes(row["data"])

    async def read_all(self, file_id: str) -> bytes:
        """
        Read a whole file into memory. Intended for small files and tests.
        """
        layout = self.layout(file_id)
        if layout.chunk_count == 0:
            raise NotFoundError(f"No chunks stored for file {file_id}")
        pieces = [piece async for piece in await self.read_range(file_id, 0, layout.total_length - 1)]
        return b"".join(pieces)

    def delete_all(self, file_id: str) -> int:
        """
        Remove every chunk of a file. Deleting an absent file is not an error.

        Returns:
            Number of chunks removed
        """
        with self.backend.connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {self.backend.chunks_table} WHERE file_id = ?",
                (file_id,)
            )
            conn.commit()
            removed = cursor.rowcount

        if removed:
            logger.debug(f"Deleted {removed} chunks [file_id={file_id}]")
        return removed

    def count_chunks(self, file_id: Optional[str] = None) -> int:
        with self.backend.connection() as conn:
            if file_id is None:
                row = conn.execute(f"SELECT COUNT(*) FROM {self.backend.chunks_table}").fetchone()
            else:
                row = conn.execute(
                    f"SELECT COUNT(*) FROM {self.backend.chunks_table} WHERE file_id = ?",
                    (file_id,)
                ).fetchone()
        return row[0]

    def list_file_ids(self) -> List[str]:
        """
        Every file-id that owns at least one chunk.
        """
        with self.backend.connection() as conn:
            rows = conn.execute(
                f"SELECT DISTINCT file_id FROM {self.backend.chunks_table} ORDER BY file_id"
            ).fetchall()
        return [row["file_id"] for row in rows]
