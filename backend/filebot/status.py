"""Bot status report, shared by the /status command and the HTTP endpoint."""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from .bot.connectivity import ConnectivitySupervisor
from .catalog.schemas import utcnow
from .catalog.store import CatalogStore


class StatusReport(BaseModel):
    """Read-only status derived from a fresh catalog load."""
    connected: bool = Field(..., description="Whether transport polling is up")
    reconnect_attempts: int = Field(..., description="Reconnect attempts since the last success")
    registered_users: int = Field(..., description="Number of registered users")
    stored_files: int = Field(..., description="Number of stored files")
    by_category: Dict[str, int] = Field(default_factory=dict, description="Stored files per category")
    checked_at: datetime = Field(default_factory=utcnow, description="When the report was built")


def build_status_report(
    store: CatalogStore,
    supervisor: Optional[ConnectivitySupervisor] = None,
) -> StatusReport:
    stats = store.stats()
    connected = supervisor.connected if supervisor else False
    attempts = supervisor.reconnect_attempts if supervisor else 0
    return StatusReport(
        connected=connected,
        reconnect_attempts=attempts,
        registered_users=stats.registered_users,
        stored_files=stats.stored_files,
        by_category=stats.by_category,
    )
