"""File catalog for FileBot.

The catalog tracks registered users and the files they uploaded. It is
persisted as a single JSON snapshot owned by CatalogStore; no other module
reads or writes that file.
"""
from .schemas import Catalog, CatalogStats, FileCategory, FileRecord, UserRecord
from .store import CatalogStore

__all__ = [
    "Catalog",
    "CatalogStats",
    "CatalogStore",
    "FileCategory",
    "FileRecord",
    "UserRecord",
]
