"""Tests for Range header parsing and partial/conditional file serving."""

import logging

import pytest

from storage.exceptions import NotFoundError, RangeError, StorageIOError
from storage.range_streamer import (
    ByteRange,
    content_disposition,
    etag_for,
    if_none_match_matches,
    parse_range_header,
)
from tests.helpers import make_bytes


async def stored_file(store, catalog, file_id="file-1", size=100, filename="report.pdf"):
    data = make_bytes(size)
    await store.store(file_id, data)
    record = catalog.register(file_id, filename, "application/pdf", size, chunk_size=store.chunk_size)
    return record, data


async def read_body(plan) -> bytes:
    return b"".join([piece async for piece in plan.body])


class TestParseRangeHeader:
    @pytest.mark.parametrize("header,expected", [
        ("bytes=0-99", ByteRange(0, 99)),
        ("bytes=100-", ByteRange(100, None)),
        ("BYTES = 5 - 10", ByteRange(5, 10)),
        ("  bytes=7-7  ", ByteRange(7, 7)),
    ])
    def test_understood_forms(self, header, expected):
        assert parse_range_header(header) == expected

    @pytest.mark.parametrize("header", [
        None,
        "",
        "bytes=-500",
        "bytes=0-10,20-30",
        "items=0-10",
        "bytes=a-b",
        "garbage",
    ])
    def test_other_forms_mean_full_content(self, header):
        assert parse_range_header(header) is None


class TestByteRange:
    def test_open_end_resolves_to_last_byte(self):
        assert ByteRange(10).resolve(100) == ByteRange(10, 99)

    @pytest.mark.parametrize("byte_range", [ByteRange(100), ByteRange(0, 100), ByteRange(50, 10)])
    def test_unsatisfiable(self, byte_range):
        with pytest.raises(RangeError) as exc_info:
            byte_range.resolve(100)
        assert exc_info.value.length == 100


class TestHeaders:
    def test_etag_is_quoted_file_id(self):
        assert etag_for("abc") == '"abc"'

    @pytest.mark.parametrize("header,expected", [
        ('"abc"', True),
        ('W/"abc"', True),
        ('"other", "abc"', True),
        ("*", True),
        ('"other"', False),
        (None, False),
    ])
    def test_if_none_match(self, header, expected):
        assert if_none_match_matches(header, "abc") is expected

    def test_content_disposition_ascii(self):
        assert content_disposition("report.pdf") == 'inline; filename="report.pdf"'

    def test_content_disposition_non_ascii(self):
        value = content_disposition("résumé.pdf")

        assert 'filename="r_sum_.pdf"' in value
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in value


class TestServe:
    @pytest.mark.asyncio
    async def test_full_content(self, streamer, small_chunk_store, catalog):
        record, data = await stored_file(small_chunk_store, catalog)

        plan = await streamer.serve(record.file_id)

        assert plan.status_code == 200
        assert plan.headers["Content-Length"] == "100"
        assert plan.headers["Accept-Ranges"] == "bytes"
        assert plan.headers["ETag"] == '"file-1"'
        assert plan.headers["Cache-Control"].startswith("public, max-age=")
        assert "Content-Range" not in plan.headers
        assert await read_body(plan) == data

    @pytest.mark.asyncio
    async def test_partial_content(self, streamer, small_chunk_store, catalog):
        record, data = await stored_file(small_chunk_store, catalog)

        plan = await streamer.serve(record, range_header="bytes=10-49")

        assert plan.status_code == 206
        assert plan.headers["Content-Range"] == "bytes 10-49/100"
        assert plan.headers["Content-Length"] == "40"
        assert await read_body(plan) == data[10:50]

    @pytest.mark.asyncio
    async def test_open_ended_range(self, streamer, small_chunk_store, catalog):
        record, data = await stored_file(small_chunk_store, catalog)

        plan = await streamer.serve(record, range_header="bytes=90-")

        assert plan.headers["Content-Range"] == "bytes 90-99/100"
        assert await read_body(plan) == data[90:]

    @pytest.mark.asyncio
    async def test_unparseable_range_serves_full_content(self, streamer, small_chunk_store, catalog):
        record, data = await stored_file(small_chunk_store, catalog)

        plan = await streamer.serve(record, range_header="bytes=-10")

        assert plan.status_code == 200
        assert await read_body(plan) == data

    @pytest.mark.asyncio
    async def test_unsatisfiable_range(self, streamer, small_chunk_store, catalog):
        record, _ = await stored_file(small_chunk_store, catalog)

        with pytest.raises(RangeError) as exc_info:
            await streamer.serve(record, range_header="bytes=500-600")

        assert exc_info.value.length == 100

    @pytest.mark.asyncio
    async def test_not_modified(self, streamer, small_chunk_store, catalog):
        record, _ = await stored_file(small_chunk_store, catalog)

        plan = await streamer.serve(record, range_header="bytes=0-10", if_none_match='"file-1"')

        assert plan.status_code == 304
        assert plan.body is None
        assert plan.headers["ETag"] == '"file-1"'

    @pytest.mark.asyncio
    async def test_zero_length_file(self, streamer, catalog):
        record = catalog.register("empty", "empty.txt", "text/plain", 0)

        plan = await streamer.serve(record)

        assert plan.status_code == 200
        assert plan.headers["Content-Length"] == "0"
        assert await read_body(plan) == b""

    @pytest.mark.asyncio
    async def test_zero_length_file_rejects_ranges(self, streamer, catalog):
        record = catalog.register("empty", "empty.txt", "text/plain", 0)

        with pytest.raises(RangeError):
            await streamer.serve(record, range_header="bytes=0-0")

    @pytest.mark.asyncio
    async def test_unknown_file(self, streamer):
        with pytest.raises(NotFoundError):
            await streamer.serve("missing")

    @pytest.mark.asyncio
    async def test_record_without_chunks(self, streamer, catalog):
        record = catalog.register("ghost", "ghost.jpg", "image/jpeg", 10)

        with pytest.raises(NotFoundError):
            await streamer.serve(record)

    @pytest.mark.asyncio
    async def test_client_disconnect_logged_once(self, streamer, small_chunk_store, catalog, caplog):
        record, data = await stored_file(small_chunk_store, catalog)
        plan = await streamer.serve(record)

        with caplog.at_level(logging.INFO, logger="storage.range_streamer"):
            first = await plan.body.__anext__()
            await plan.body.aclose()

        assert first == data[:16]
        disconnects = [r for r in caplog.records if "Client disconnected" in r.getMessage()]
        assert len(disconnects) == 1
        assert "after 16 of 100 bytes" in disconnects[0].getMessage()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("range_header", [None, "bytes=50-60", "bytes=0-"])
    async def test_record_longer_than_chunks_is_storage_error(self, streamer, small_chunk_store, catalog, range_header):
        await small_chunk_store.store("short", make_bytes(40))
        record = catalog.register("short", "short.jpg", "image/jpeg", 100, chunk_size=16)

        with pytest.raises(StorageIOError, match="40 of 100 bytes"):
            await streamer.serve(record, range_header=range_header)
