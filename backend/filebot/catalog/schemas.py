"""Pydantic schemas for the file catalog.

This module defines the records persisted in the catalog snapshot:
- UserRecord: a registered chat user
- FileRecord: one ingested file and where its bytes live on disk
- Catalog: the whole snapshot ({users: [...], files: [...]})
- FileCategory: Enum for categorizing files (photo, video, audio, document, other)

The catalog is loaded fully into memory, mutated and rewritten wholesale by
CatalogStore. Field names are the on-disk JSON keys.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator

UNSPECIFIED_FIRST_NAME = "No first name"
UNSPECIFIED_LAST_NAME = "No last name"
UNSPECIFIED_USERNAME = "No username"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileCategory(str, Enum):
    """Semantic file categories.

    Each category maps to one bucket directory under the downloads root:
    - PHOTO: photos/
    - VIDEO: videos/
    - AUDIO: audio/
    - DOCUMENT: documents/
    - OTHER: other/
    """
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    OTHER = "other"


class UserRecord(BaseModel):
    """A registered user.

    Created once on first successful registration and never mutated.
    Profile fields missing upstream hold explicit placeholders, never null.
    """
    id: int = Field(..., description="Remote numeric user id")
    display_name: str = Field(..., description="Name shown in replies")
    first_name: str = Field(UNSPECIFIED_FIRST_NAME, description="First name")
    last_name: str = Field(UNSPECIFIED_LAST_NAME, description="Last name")
    username: str = Field(UNSPECIFIED_USERNAME, description="Remote username")
    registered_at: datetime = Field(default_factory=utcnow, description="Registration time (UTC)")


class FileRecord(BaseModel):
    """Metadata for one ingested file.

    The remote_file_id is the idempotency key: the catalog never holds two
    records with the same value.
    """
    remote_file_id: str = Field(..., min_length=1, description="Remote file identifier")
    original_name: str = Field(..., description="Filename as uploaded")
    stored_name: str = Field(..., description="Filename inside the bucket directory")
    stored_path: str = Field(..., description="Full path of the stored bytes")
    category: FileCategory = Field(..., description="File category")
    declared_content_type: str = Field(..., description="Content-Type reported by the transfer")
    owner_id: int = Field(..., description="Id of the owning UserRecord")
    uploaded_at: datetime = Field(default_factory=utcnow, description="Ingestion time (UTC)")
    size_bytes: int = Field(..., ge=0, description="Size on disk in bytes")


class Catalog(BaseModel):
    """The complete catalog snapshot."""
    users: List[UserRecord] = Field(default_factory=list)
    files: List[FileRecord] = Field(default_factory=list)

    @field_validator("users", "files", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    def user_ids(self) -> Set[int]:
        return {user.id for user in self.users}

    def users_by_id(self) -> Dict[int, UserRecord]:
        return {user.id: user for user in self.users}

    def files_by_remote_id(self) -> Dict[str, FileRecord]:
        return {record.remote_file_id: record for record in self.files}

    def find_user(self, user_id: int) -> Optional[UserRecord]:
        return self.users_by_id().get(user_id)


class CatalogStats(BaseModel):
    """Counts derived from one catalog load."""
    registered_users: int = 0
    stored_files: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
