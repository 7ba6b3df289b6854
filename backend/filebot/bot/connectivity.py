"""Connectivity state of the Telegram transport and the reconnect loop.

The supervisor is the single owner of the "connected" flag and of the
reconnect-attempt counter; the status report reads them from here.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectivityState:
    connected:          bool
    reconnect_attempts: int


class ConnectivitySupervisor:
    """Restarts transport polling after failures, up to a fixed number of attempts."""

    def __init__(
        self,
        restart: Callable[[], Awaitable[None]],
        max_attempts: int = 5,
        delay_seconds: float = 5.0,
    ) -> None:
        self._restart = restart
        self._max_attempts = max_attempts
        self._delay = delay_seconds
        self._connected = False
        self._attempts = 0
        self._reconnect_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    def snapshot(self) -> ConnectivityState:
        return ConnectivityState(connected=self._connected, reconnect_attempts=self._attempts)

    def mark_connected(self) -> None:
        self._connected = True
        self._attempts = 0
        logger.info("Polling started")

    def mark_disconnected(self) -> None:
        self._connected = False

    def on_polling_error(self, exc: Exception) -> None:
        """Error callback for the polling loop; schedules at most one reconnect."""
        logger.error("Polling error: %s", exc)
        self.mark_disconnected()
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; reconnect not scheduled")
            return
        self._reconnect_task = loop.create_task(self.reconnect())

    async def reconnect(self) -> bool:
        """Restart polling once.

        Returns:
            True if polling was restarted, False if the attempt limit was
            reached or the restart failed.
        """
        if self._attempts >= self._max_attempts:
            logger.error("Maximum reconnect attempts (%d) reached", self._max_attempts)
            return False

        self._attempts += 1
        logger.info("Reconnect attempt %d/%d...", self._attempts, self._max_attempts)
        try:
            await asyncio.sleep(self._delay)
            await self._restart()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Reconnect failed: %s", exc)
            return False

        self._connected = True
        self._attempts = 0
        logger.info("Reconnected")
        return True

    async def stop(self) -> None:
        """Cancel a pending reconnect."""
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
        self._connected = False

