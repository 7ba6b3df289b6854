"""File ingestion: download, classify, store on disk, commit to the catalog.

Files are stored in: <downloads_dir>/<bucket>/<owner>_<ms>_<sanitized name>

The commit protocol is write-then-commit: the catalog is only touched after
the bytes are fully on disk, and a failed write leaves neither a record nor
a partial file behind.
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Union

import httpx

from ..catalog.schemas import FileRecord, utcnow
from ..catalog.store import CatalogStore
from ..errors import CatalogWriteError, StorageError, TransportError, TransportTimeout
from ..users.gate import RegistrationGate
from .classifier import classify
from .naming import stored_name

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CHUNK_SIZE = 64 * 1024

# remote file id -> download URL
DownloadResolver = Callable[[str], Awaitable[str]]
Clock = Callable[[], datetime]


class Ingestor:
    """Fetches remote files into the bucket directories and records them."""

    def __init__(
        self,
        store: CatalogStore,
        gate: RegistrationGate,
        downloads_dir: Union[str, Path],
        resolve_download_url: DownloadResolver,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._gate = gate
        self._downloads_dir = Path(downloads_dir)
        self._resolve = resolve_download_url
        self._client = http_client
        self._timeout = httpx.Timeout(timeout_seconds)
        self._chunk_size = chunk_size
        self._clock = clock

    async def ingest(self, remote_file_id: str, original_filename: str, owner_id: int) -> FileRecord:
        """Download a remote file and record it in the catalog.

        A file id that is already in the catalog is not fetched again; the
        existing record is returned.

        Args:
            remote_file_id: Transport identifier of the file
            original_filename: Name the user uploaded the file under
            owner_id: Id of the uploading user

        Returns:
            The FileRecord describing the stored file

        Raises:
            NotRegisteredError: If owner_id has no UserRecord
            TransportError: If the download reference or the bytes cannot be fetched
            TransportTimeout: If the transfer stalls beyond the timeout
            StorageError: If the bytes cannot be written
            CatalogWriteError: If the bytes were written but the commit failed
        """
        self._gate.require_registered(owner_id)

        existing = self._store.get_file(remote_file_id)
        if existing is not None:
            logger.info(f"File {remote_file_id} already stored as {existing.stored_name}")
            return existing

        logger.info(f"Downloading {original_filename} for user {owner_id}")
        url = await self._resolve(remote_file_id)

        received_at = self._clock()
        try:
            async with self._client.stream("GET", url, timeout=self._timeout) as response:
                response.raise_for_status()
                content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
                category, bucket = classify(content_type, original_filename)
                name = stored_name(owner_id, int(received_at.timestamp() * 1000), original_filename)
                file_path = self._downloads_dir / bucket / name
                logger.debug("Detected %s (%s), writing to %s", category.value, content_type, file_path)
                await self._write_stream(response, file_path)
        except httpx.TimeoutException as exc:
            raise TransportTimeout(f"Download of {remote_file_id} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Download of {remote_file_id} failed: {exc}") from exc

        size_bytes = file_path.stat().st_size
        logger.info(f"Saved file: {file_path} ({size_bytes} bytes)")

        record = FileRecord(
            remote_file_id=remote_file_id,
            original_name=original_filename,
            stored_name=name,
            stored_path=str(file_path),
            category=category,
            declared_content_type=content_type,
            owner_id=owner_id,
            uploaded_at=received_at,
            size_bytes=size_bytes,
        )

        loop = asyncio.get_running_loop()
        try:
            # fsync and rename happen on a worker thread; the store lock serializes commits.
            added = await loop.run_in_executor(None, self._store.add_file_record, record)
        except StorageError as exc:
            logger.error(f"Catalog commit failed for {remote_file_id}, orphaned {file_path}: {exc}")
            raise CatalogWriteError(remote_file_id, str(file_path), str(exc)) from exc

        if not added:
            # Another ingest of the same id committed first.
            self._discard(file_path)
            return self._store.get_file(remote_file_id) or record

        logger.info(
            "Recorded %s for user %s: %s, %.2f KB",
            original_filename,
            owner_id,
            category.value,
            size_bytes / 1024,
        )
        return record

    async def _write_stream(self, response: httpx.Response, file_path: Path) -> None:
        """Write the response body to a new file, removing it on failure."""
        loop = asyncio.get_running_loop()
        try:
            with file_path.open("xb") as handle:
                async for chunk in response.aiter_bytes(self._chunk_size):
                    await loop.run_in_executor(None, handle.write, chunk)
        except FileExistsError as exc:
            raise StorageError(f"Refusing to overwrite existing file {file_path}") from exc
        except OSError as exc:
            self._discard(file_path)
            raise StorageError(f"Failed to write {file_path}: {exc}") from exc
        except BaseException:
            self._discard(file_path)
            raise

    @staticmethod
    def _discard(file_path: Path) -> None:
        try:
            file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove %s: %s", file_path, exc)
