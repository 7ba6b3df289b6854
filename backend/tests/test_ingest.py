"""Tests for downloading and recording uploads."""
import asyncio
import threading
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from conftest import FIXED_MS, FIXED_NOW, mock_http_client
from filebot.catalog.schemas import FileCategory
from filebot.errors import (
    CatalogWriteError,
    NotRegisteredError,
    StorageError,
    TransportError,
    TransportTimeout,
)


def _stored_files(downloads_dir: Path):
    return sorted(p for p in downloads_dir.rglob("*") if p.is_file())


class BrokenStream(httpx.AsyncByteStream):
    """Yields one chunk and then drops the connection."""

    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")


@pytest.mark.asyncio
async def test_ingest_stores_document_and_records_it(store, downloads_dir, registered_ada, make_ingestor):
    requests = []
    ingestor = make_ingestor(mock_http_client(b"%PDF-1.4 body", "application/pdf", requests))

    record = await ingestor.ingest("file-1", "report.pdf", registered_ada.id)

    expected_name = f"42_{FIXED_MS}_report.pdf"
    assert record.category == FileCategory.DOCUMENT
    assert record.stored_name == expected_name
    assert Path(record.stored_path) == downloads_dir / "documents" / expected_name
    assert Path(record.stored_path).read_bytes() == b"%PDF-1.4 body"
    assert record.size_bytes == len(b"%PDF-1.4 body")
    assert record.declared_content_type == "application/pdf"
    assert record.owner_id == 42
    assert store.get_file("file-1") == record
    assert str(requests[0].url) == "https://files.example.test/file/file-1"


@pytest.mark.asyncio
async def test_repeated_ingest_is_idempotent(store, downloads_dir, registered_ada, make_ingestor):
    requests = []
    ingestor = make_ingestor(mock_http_client(requests=requests))

    first = await ingestor.ingest("file-1", "report.pdf", registered_ada.id)
    second = await ingestor.ingest("file-1", "report.pdf", registered_ada.id)

    assert second == first
    assert len(requests) == 1
    assert len(store.load().files) == 1
    assert len(_stored_files(downloads_dir)) == 1


@pytest.mark.asyncio
async def test_unregistered_owner_is_rejected_before_download(store, downloads_dir, make_ingestor):
    requests = []
    ingestor = make_ingestor(mock_http_client(requests=requests))

    with pytest.raises(NotRegisteredError):
        await ingestor.ingest("file-1", "report.pdf", 99)

    assert requests == []
    assert store.load().files == []
    assert _stored_files(downloads_dir) == []


@pytest.mark.asyncio
async def test_missing_content_type_defaults_to_octet_stream(store, registered_ada, make_ingestor):
    ingestor = make_ingestor(mock_http_client(b"\x00\x01", content_type=None))

    record = await ingestor.ingest("file-2", "blob.bin", registered_ada.id)

    assert record.declared_content_type == "application/octet-stream"
    assert record.category == FileCategory.OTHER
    assert "/other/" in Path(record.stored_path).as_posix()


@pytest.mark.asyncio
async def test_unsafe_original_name_is_sanitized(registered_ada, make_ingestor):
    ingestor = make_ingestor(mock_http_client(content_type="image/jpeg"))

    record = await ingestor.ingest("photo-1", "my holiday/pic.jpg", registered_ada.id)

    assert record.original_name == "my holiday/pic.jpg"
    assert record.stored_name == f"42_{FIXED_MS}_my_holiday_pic.jpg"
    assert record.category == FileCategory.PHOTO


@pytest.mark.asyncio
async def test_timeout_raises_transport_timeout(store, downloads_dir, registered_ada, make_ingestor):
    def handler(request):
        raise httpx.ReadTimeout("stalled", request=request)

    ingestor = make_ingestor(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportTimeout):
        await ingestor.ingest("file-1", "report.pdf", registered_ada.id)

    assert store.load().files == []
    assert _stored_files(downloads_dir) == []


@pytest.mark.asyncio
async def test_broken_stream_leaves_no_partial_file(store, downloads_dir, registered_ada, make_ingestor):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "application/pdf"}, stream=BrokenStream())

    ingestor = make_ingestor(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError):
        await ingestor.ingest("file-1", "report.pdf", registered_ada.id)

    assert store.load().files == []
    assert _stored_files(downloads_dir) == []


@pytest.mark.asyncio
async def test_http_error_status_raises_transport_error(store, downloads_dir, registered_ada, make_ingestor):
    def handler(request):
        return httpx.Response(500, content=b"oops")

    ingestor = make_ingestor(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError):
        await ingestor.ingest("file-1", "report.pdf", registered_ada.id)

    assert store.load().files == []
    assert _stored_files(downloads_dir) == []


@pytest.mark.asyncio
async def test_resolver_failure_propagates(store, registered_ada, make_ingestor):
    async def failing_resolver(file_id):
        raise TransportError("file reference expired")

    ingestor = make_ingestor(mock_http_client(), resolver=failing_resolver)

    with pytest.raises(TransportError):
        await ingestor.ingest("file-1", "report.pdf", registered_ada.id)
    assert store.load().files == []


@pytest.mark.asyncio
async def test_catalog_failure_keeps_stored_file(store, downloads_dir, registered_ada, make_ingestor):
    ingestor = make_ingestor(mock_http_client())

    with patch.object(store, "add_file_record", side_effect=StorageError("disk full")):
        with pytest.raises(CatalogWriteError) as excinfo:
            await ingestor.ingest("file-1", "report.pdf", registered_ada.id)

    orphan = Path(excinfo.value.stored_path)
    assert orphan.exists()
    assert excinfo.value.remote_file_id == "file-1"
    assert store.get_file("file-1") is None


@pytest.mark.asyncio
async def test_name_collision_never_overwrites(store, downloads_dir, registered_ada, make_ingestor):
    existing = downloads_dir / "documents" / f"42_{FIXED_MS}_report.pdf"
    existing.write_bytes(b"original content")
    ingestor = make_ingestor(mock_http_client(b"new content"))

    with pytest.raises(StorageError):
        await ingestor.ingest("file-9", "report.pdf", registered_ada.id)

    assert existing.read_bytes() == b"original content"
    assert store.get_file("file-9") is None


@pytest.mark.asyncio
async def test_concurrent_duplicate_keeps_single_copy(store, downloads_dir, registered_ada, make_ingestor):
    ticks = iter(range(1, 100))

    def clock():
        return FIXED_NOW + timedelta(milliseconds=next(ticks))

    ingestor = make_ingestor(mock_http_client(), clock=clock)

    first, second = await asyncio.gather(
        ingestor.ingest("file-1", "report.pdf", registered_ada.id),
        ingestor.ingest("file-1", "report.pdf", registered_ada.id),
    )

    assert first.stored_path == second.stored_path
    assert len(store.load().files) == 1
    assert _stored_files(downloads_dir) == [Path(first.stored_path)]


@pytest.mark.asyncio
async def test_distinct_uploads_are_all_recorded(store, registered_ada, make_ingestor):
    ingestor = make_ingestor(mock_http_client(content_type="text/plain"))

    records = [
        await ingestor.ingest(f"file-{i}", f"notes-{i}.txt", registered_ada.id) for i in range(3)
    ]

    assert [f.remote_file_id for f in store.user_files(42)] == ["file-0", "file-1", "file-2"]
    assert all(r.category == FileCategory.DOCUMENT for r in records)


@pytest.mark.asyncio
async def test_disk_work_runs_off_the_event_loop(store, registered_ada, make_ingestor):
    loop_thread = threading.get_ident()
    commit_threads = []
    real_add = store.add_file_record

    def recording_add(record):
        commit_threads.append(threading.get_ident())
        return real_add(record)

    ingestor = make_ingestor(mock_http_client(b"x" * 10, "text/plain"), chunk_size=4)

    with patch.object(store, "add_file_record", side_effect=recording_add):
        record = await ingestor.ingest("file-1", "notes.txt", registered_ada.id)

    assert commit_threads and commit_threads[0] != loop_thread
    assert Path(record.stored_path).read_bytes() == b"x" * 10
    assert store.get_file("file-1") == record
