"""Tests for chunked storage: writes, ranged reads, rollback and deletion."""

import asyncio
import io
import time
from unittest.mock import patch

import pytest

from storage.chunk_store import ChunkStore, check_deadline, make_deadline
from storage.exceptions import (
    DeadlineExceededError,
    DuplicateError,
    NotFoundError,
    RangeError,
    StorageIOError,
)
from tests.helpers import make_bytes


async def collect(iterator) -> bytes:
    return b"".join([piece async for piece in iterator])


class FailingSource:
    """Yields a few pieces then raises, like a client that drops mid-upload."""

    def __init__(self, pieces: int, piece_size: int = 16):
        self.pieces = pieces
        self.piece_size = piece_size

    def __iter__(self):
        for i in range(self.pieces):
            yield make_bytes(self.piece_size, seed=i)
        raise ConnectionResetError("client went away")


class AsyncReader:
    """Object with an async read(n), like an UploadFile."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, n: int) -> bytes:
        await asyncio.sleep(0)
        return self._buffer.read(n)


async def async_pieces(data: bytes, size: int):
    for offset in range(0, len(data), size):
        await asyncio.sleep(0)
        yield data[offset:offset + size]


class TestStore:
    @pytest.mark.asyncio
    async def test_store_and_read_back(self, small_chunk_store):
        data = make_bytes(100)

        written = await small_chunk_store.store("file-a", data)

        assert written == 100
        assert await small_chunk_store.read_all("file-a") == data

    @pytest.mark.asyncio
    async def test_layout_splits_into_fixed_size_chunks(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(40))

        layout = small_chunk_store.layout("file-a")

        assert layout.sizes == ((0, 16), (1, 16), (2, 8))
        assert layout.total_length == 40
        assert layout.is_contiguous

    @pytest.mark.asyncio
    async def test_exact_multiple_has_no_trailing_empty_chunk(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(32))

        assert small_chunk_store.layout("file-a").sizes == ((0, 16), (1, 16))

    @pytest.mark.asyncio
    async def test_chunk_size_override(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(40), chunk_size=10)

        assert small_chunk_store.count_chunks("file-a") == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("make_source", [
        lambda data: data,
        lambda data: bytearray(data),
        lambda data: io.BytesIO(data),
        lambda data: AsyncReader(data),
        lambda data: [data[:7], data[7:50], b"", data[50:]],
        lambda data: async_pieces(data, 5),
    ])
    async def test_accepts_all_source_kinds(self, small_chunk_store, make_source):
        data = make_bytes(77)

        await small_chunk_store.store("file-a", make_source(data))

        assert await small_chunk_store.read_all("file-a") == data

    @pytest.mark.asyncio
    async def test_unsupported_source_rejected_without_chunks(self, small_chunk_store):
        with pytest.raises(TypeError):
            await small_chunk_store.store("file-a", 12345)

        assert small_chunk_store.count_chunks("file-a") == 0

    @pytest.mark.asyncio
    async def test_empty_source_stores_nothing(self, small_chunk_store):
        written = await small_chunk_store.store("file-a", b"")

        assert written == 0
        assert small_chunk_store.count_chunks("file-a") == 0

    @pytest.mark.asyncio
    async def test_duplicate_file_id_rejected(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(20))

        with pytest.raises(DuplicateError):
            await small_chunk_store.store("file-a", make_bytes(20, seed=3))

        # original content untouched
        assert await small_chunk_store.read_all("file-a") == make_bytes(20)

    @pytest.mark.asyncio
    async def test_concurrent_stores_keep_winner_intact(self, small_chunk_store):
        first = make_bytes(64, seed=1)
        second = make_bytes(64, seed=2)

        async def slow_source(data):
            for offset in range(0, len(data), 16):
                await asyncio.sleep(0.01)
                yield data[offset:offset + 16]

        results = await asyncio.gather(
            small_chunk_store.store("file-a", slow_source(first)),
            small_chunk_store.store("file-a", slow_source(second)),
            return_exceptions=True,
        )

        winners = [i for i, result in enumerate(results) if result == 64]
        losers = [result for result in results if isinstance(result, DuplicateError)]
        assert len(winners) == 1
        assert len(losers) == 1

        layout = small_chunk_store.layout("file-a")
        assert layout.sizes == ((0, 16), (1, 16), (2, 16), (3, 16))
        assert layout.is_contiguous
        assert await small_chunk_store.read_all("file-a") == (first, second)[winners[0]]

    @pytest.mark.asyncio
    async def test_chunk_writes_run_in_executor(self, small_chunk_store):
        loop = asyncio.get_running_loop()

        with patch.object(loop, "run_in_executor", wraps=loop.run_in_executor) as run_in_executor:
            await small_chunk_store.store("file-a", make_bytes(40))

        writes = [c for c in run_in_executor.call_args_list if c.args[1] == small_chunk_store._write_chunk]
        assert [c.args[3] for c in writes] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_source_error_removes_partial_chunks(self, small_chunk_store):
        with pytest.raises(ConnectionResetError):
            await small_chunk_store.store("file-a", FailingSource(pieces=3))

        assert small_chunk_store.count_chunks("file-a") == 0

    @pytest.mark.asyncio
    async def test_cancellation_removes_partial_chunks(self, small_chunk_store):
        started = asyncio.Event()

        async def slow_source():
            for i in range(1000):
                yield make_bytes(16, seed=i)
                started.set()
                await asyncio.sleep(0.01)

        task = asyncio.create_task(small_chunk_store.store("file-a", slow_source()))
        await started.wait()
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert small_chunk_store.count_chunks("file-a") == 0

    @pytest.mark.asyncio
    async def test_deadline_exceeded_removes_partial_chunks(self, small_chunk_store):
        deadline = time.monotonic() - 1

        with pytest.raises(DeadlineExceededError):
            await small_chunk_store.store("file-a", make_bytes(64), deadline=deadline)

        assert small_chunk_store.count_chunks("file-a") == 0

    def test_rejects_non_positive_chunk_size(self, backend):
        with pytest.raises(ValueError):
            ChunkStore(backend, chunk_size=0)


class TestReadRange:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [
        (0, 0),
        (0, 15),
        (15, 16),
        (5, 37),
        (16, 31),
        (90, 99),
        (0, 99),
        (99, 99),
    ])
    async def test_range_matches_slice(self, small_chunk_store, start, end):
        data = make_bytes(100)
        await small_chunk_store.store("file-a", data)

        result = await collect(await small_chunk_store.read_range("file-a", start, end))

        assert result == data[start:end + 1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [(-1, 5), (0, 100), (100, 100), (50, 10)])
    async def test_out_of_bounds_range_rejected(self, small_chunk_store, start, end):
        await small_chunk_store.store("file-a", make_bytes(100))

        with pytest.raises(RangeError) as exc_info:
            await small_chunk_store.read_range("file-a", start, end)

        assert exc_info.value.length == 100

    @pytest.mark.asyncio
    async def test_missing_file_not_found(self, small_chunk_store):
        with pytest.raises(NotFoundError):
            await small_chunk_store.read_range("missing", 0, 0)

    @pytest.mark.asyncio
    async def test_non_contiguous_chunks_reported(self, small_chunk_store, backend):
        await small_chunk_store.store("file-a", make_bytes(48))
        with backend.connection() as conn:
            conn.execute(f"DELETE FROM {backend.chunks_table} WHERE file_id = ? AND n = 1", ("file-a",))
            conn.commit()

        with pytest.raises(StorageIOError):
            await small_chunk_store.read_range("file-a", 0, 10)

    @pytest.mark.asyncio
    async def test_read_deadline(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(48))

        iterator = await small_chunk_store.read_range("file-a", 0, 47, deadline=time.monotonic() - 1)

        with pytest.raises(DeadlineExceededError):
            await collect(iterator)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_all_is_idempotent(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(40))

        assert small_chunk_store.delete_all("file-a") == 3
        assert small_chunk_store.delete_all("file-a") == 0
        assert small_chunk_store.count_chunks("file-a") == 0

    @pytest.mark.asyncio
    async def test_delete_leaves_other_files(self, small_chunk_store):
        await small_chunk_store.store("file-a", make_bytes(40))
        await small_chunk_store.store("file-b", make_bytes(20))

        small_chunk_store.delete_all("file-a")

        assert small_chunk_store.list_file_ids() == ["file-b"]
        assert small_chunk_store.count_chunks() == 2


class TestDeadlines:
    def test_no_deadline(self):
        assert make_deadline(None) is None
        check_deadline(None, "anything")

    def test_future_deadline_passes(self):
        check_deadline(make_deadline(60), "upload")

    def test_past_deadline_raises(self):
        with pytest.raises(DeadlineExceededError, match="upload"):
            check_deadline(time.monotonic() - 0.1, "upload")
