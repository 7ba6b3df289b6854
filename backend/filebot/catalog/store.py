"""JSON snapshot storage for the user and file catalog.

The whole catalog lives in one pretty-printed UTF-8 JSON file:

    {
      "users": [UserRecord, ...],
      "files": [FileRecord, ...]
    }

Every operation is a full load(-mutate-save) cycle; nothing is cached
between calls, so edits made to the snapshot by an operator between two
operations are picked up.

Writes go to a temporary file in the snapshot's directory which is fsynced
and then renamed over the snapshot, so a failed save leaves the previous
snapshot intact.

Thread Safety:
    All operations hold one re-entrant lock, so at most one catalog
    operation is in flight at a time. Callers on the event loop call the
    store synchronously, which keeps mutations in arrival order.

Usage:
    store = CatalogStore.get_instance("catalog.json")
    if not store.is_user_registered(42):
        store.register_user(UserRecord(id=42, display_name="Ada"))
    store.add_file_record(record)
    files = store.user_files(42)
"""
import logging
import os
import shutil
import tempfile
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..errors import CorruptCatalogError, StorageError
from .schemas import Catalog, CatalogStats, FileRecord, UserRecord

logger = logging.getLogger(__name__)


class CatalogStore:
    """Singleton store owning the catalog snapshot on disk.

    Attributes:
        _instance: Singleton instance of the store.
        _default_path: Snapshot path used when none is given.
    """

    _instance: Optional["CatalogStore"] = None
    _default_path: str = "catalog.json"

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        """Initialize the store.

        The snapshot itself is created lazily by the first load().

        Args:
            path: Path of the JSON snapshot. Defaults to "catalog.json".
        """
        self._path = Path(path or self._default_path)
        self._lock = threading.RLock()

    @classmethod
    def get_instance(cls, path: Optional[Union[str, Path]] = None) -> "CatalogStore":
        """Get or create the singleton instance.

        Args:
            path: Optional snapshot path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Snapshot I/O
    # ------------------------------------------------------------------

    def load(self) -> Catalog:
        """Read the snapshot, creating an empty one when it is absent.

        Returns:
            The parsed catalog.

        Raises:
            CorruptCatalogError: If the snapshot exists but cannot be parsed.
            StorageError: If the snapshot cannot be read or created.
        """
        with self._lock:
            if not self._path.exists():
                catalog = Catalog()
                self._write(catalog)
                logger.info("Initial catalog created at %s", self._path)
                return catalog

            try:
                text = self._path.read_text(encoding="utf-8")
            except UnicodeDecodeError as exc:
                logger.error("Catalog snapshot %s is not valid UTF-8: %s", self._path, exc)
                raise CorruptCatalogError(str(self._path), str(exc)) from exc
            except OSError as exc:
                raise StorageError(f"Failed to read catalog {self._path}: {exc}") from exc

            try:
                return Catalog.model_validate_json(text)
            except ValidationError as exc:
                logger.error("Catalog snapshot %s is corrupt: %s", self._path, exc)
                raise CorruptCatalogError(str(self._path), str(exc)) from exc

    def save(self, catalog: Union[Catalog, Mapping[str, Any]]) -> None:
        """Serialize the full catalog and replace the snapshot.

        Missing or null users/files are normalized to empty lists before
        anything is written.

        Args:
            catalog: A Catalog, or a mapping with the same shape.

        Raises:
            StorageError: If the snapshot cannot be written. The previous
                snapshot is left untouched.
        """
        if not isinstance(catalog, Catalog):
            catalog = Catalog.model_validate(dict(catalog))
        with self._lock:
            self._write(catalog)

    def _write(self, catalog: Catalog) -> None:
        payload = catalog.model_dump_json(indent=2)
        tmp_path: Optional[Path] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp"
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
            tmp_path = None
        except OSError as exc:
            raise StorageError(f"Failed to save catalog {self._path}: {exc}") from exc
        finally:
            if tmp_path is not None and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    logger.warning("Could not remove temporary catalog file %s", tmp_path)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def is_user_registered(self, user_id: int) -> bool:
        return user_id in self.load().user_ids()

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self.load().find_user(user_id)

    def register_user(self, record: UserRecord) -> bool:
        """Add a user record.

        Returns:
            True if the user was added, False if the id was already present.
        """
        with self._lock:
            catalog = self.load()
            if record.id in catalog.user_ids():
                return False
            catalog.users.append(record)
            self._write(catalog)
        logger.info("Registered user %s (%s)", record.id, record.display_name)
        return True

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def user_files(self, owner_id: int) -> List[FileRecord]:
        """Get all files owned by a user, in upload order."""
        return [record for record in self.load().files if record.owner_id == owner_id]

    def get_file(self, remote_file_id: str) -> Optional[FileRecord]:
        return self.load().files_by_remote_id().get(remote_file_id)

    def add_file_record(self, record: FileRecord) -> bool:
        """Append a file record unless its remote_file_id is already known.

        Returns:
            True if the record was added, False (no-op) for a duplicate id.
        """
        with self._lock:
            catalog = self.load()
            if record.remote_file_id in catalog.files_by_remote_id():
                logger.info("Duplicate file id %s ignored", record.remote_file_id)
                return False
            catalog.files.append(record)
            self._write(catalog)
        return True

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def repair(self) -> Catalog:
        """Back up the current snapshot and replace it with an empty catalog.

        The backup is written next to the snapshot as
        "<name>.backup.<epoch-ms>". A failed backup is logged and does not
        stop the repair.

        Returns:
            The new, empty catalog.
        """
        with self._lock:
            logger.warning("Repairing catalog %s", self._path)
            if self._path.exists():
                backup_path = self._path.with_name(
                    f"{self._path.name}.backup.{int(time.time() * 1000)}"
                )
                try:
                    shutil.copyfile(self._path, backup_path)
                    logger.info("Catalog backup created: %s", backup_path)
                except OSError as exc:
                    logger.warning("Catalog backup failed, repairing anyway: %s", exc)

            catalog = Catalog()
            self._write(catalog)
        logger.info("Catalog repaired")
        return catalog

    def stats(self) -> CatalogStats:
        """Count users, files and files per category."""
        catalog = self.load()
        by_category = Counter(record.category.value for record in catalog.files)
        return CatalogStats(
            registered_users=len(catalog.users),
            stored_files=len(catalog.files),
            by_category=dict(by_category),
        )
