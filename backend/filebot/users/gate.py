"""Registration gate.

Every upload and listing operation goes through the gate first, so every
FileRecord in the catalog points at a registered user.
"""
import logging
from typing import Optional

from pydantic import BaseModel, Field

from ..catalog.schemas import (
    UNSPECIFIED_FIRST_NAME,
    UNSPECIFIED_LAST_NAME,
    UNSPECIFIED_USERNAME,
    UserRecord,
    utcnow,
)
from ..catalog.store import CatalogStore
from ..errors import NotRegisteredError, RegistrationError, StorageError

logger = logging.getLogger(__name__)


class UserProfile(BaseModel):
    """Profile of a chat user as reported by the transport."""
    id: int = Field(..., description="Remote numeric user id")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class RegistrationResult(BaseModel):
    already_registered: bool
    user: UserRecord


def build_user_record(profile: UserProfile) -> UserRecord:
    """Turn an upstream profile into a UserRecord with explicit placeholders."""
    first_name = profile.first_name or UNSPECIFIED_FIRST_NAME
    last_name = profile.last_name or UNSPECIFIED_LAST_NAME
    display_name = " ".join(part for part in (profile.first_name, profile.last_name) if part)
    return UserRecord(
        id=profile.id,
        display_name=display_name or first_name,
        first_name=first_name,
        last_name=last_name,
        username=profile.username or UNSPECIFIED_USERNAME,
        registered_at=utcnow(),
    )


class RegistrationGate:
    """Checks and creates user records in the catalog."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def is_registered(self, user_id: int) -> bool:
        return self._store.is_user_registered(user_id)

    def require_registered(self, user_id: int) -> None:
        """Raise NotRegisteredError unless the user id is known."""
        if not self._store.is_user_registered(user_id):
            logger.warning("Rejected operation for unregistered user %s", user_id)
            raise NotRegisteredError(user_id)

    def ensure_registered(self, profile: UserProfile) -> RegistrationResult:
        """Register the user unless already known.

        A duplicate registration is reported through already_registered and
        never raises.

        Raises:
            RegistrationError: If the user record could not be written.
        """
        existing = self._store.get_user(profile.id)
        if existing is not None:
            return RegistrationResult(already_registered=True, user=existing)

        record = build_user_record(profile)
        try:
            added = self._store.register_user(record)
        except StorageError as exc:
            raise RegistrationError(f"Failed to register user {profile.id}: {exc}") from exc

        if not added:
            # Registered between the lookup and the write.
            return RegistrationResult(
                already_registered=True, user=self._store.get_user(profile.id) or record
            )
        return RegistrationResult(already_registered=False, user=record)
