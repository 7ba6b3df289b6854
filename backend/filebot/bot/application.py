"""Wiring of the Telegram application.

BotRunner owns the python-telegram-bot Application, the HTTP client used
for downloads and the connectivity supervisor. The FastAPI lifespan starts
and stops it; updates are polled in the background on the same event loop.
"""
import logging
from typing import Optional

import httpx
from telegram import Update
from telegram.ext import Application, ApplicationBuilder, ContextTypes, TypeHandler

from ..catalog.store import CatalogStore
from ..config import AppConfig
from ..files.ingest import Ingestor
from ..users.gate import RegistrationGate
from .connectivity import ConnectivitySupervisor
from .dispatcher import Dispatcher
from .events import event_from_update
from .transport import TelegramTransport

logger = logging.getLogger(__name__)


class BotRunner:
    """Runs the bot: update polling, dispatch and reconnection."""

    def __init__(
        self,
        config: AppConfig,
        store: CatalogStore,
        application: Optional[Application] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if application is None:
            if not config.bot_token:
                raise ValueError("A Telegram bot token is required to run the bot")
            application = (
                ApplicationBuilder().token(config.bot_token).concurrent_updates(True).build()
            )
        self._config = config
        self._application = application
        self._http_client = http_client or httpx.AsyncClient(follow_redirects=True)
        self._transport = TelegramTransport(application.bot)

        gate = RegistrationGate(store)
        ingestor = Ingestor(
            store,
            gate,
            config.storage.downloads_dir,
            self._transport.resolve_download_url,
            self._http_client,
            timeout_seconds=config.ingest.timeout_seconds,
            chunk_size=config.ingest.chunk_size,
        )
        self.supervisor = ConnectivitySupervisor(
            self._restart_polling,
            max_attempts=config.reconnect.max_attempts,
            delay_seconds=config.reconnect.delay_seconds,
        )
        self.dispatcher = Dispatcher(
            store,
            gate,
            ingestor,
            self._transport,
            admin_ids=config.bot.admin_ids,
            supervisor=self.supervisor,
            files_page_size=config.bot.files_page_size,
        )

        application.add_handler(TypeHandler(Update, self._handle_update))
        application.add_error_handler(self._on_error)

    async def _handle_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        event = event_from_update(update)
        if event is None:
            return
        await self.dispatcher.dispatch(event)

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("Unhandled bot error: %s", context.error, exc_info=context.error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _start_polling(self) -> None:
        await self._application.updater.start_polling(
            poll_interval=self._config.bot.poll_interval,
            timeout=self._config.bot.poll_timeout,
            allowed_updates=Update.ALL_TYPES,
            error_callback=self.supervisor.on_polling_error,
        )
        self.supervisor.mark_connected()

    async def _restart_polling(self) -> None:
        if self._application.updater.running:
            await self._application.updater.stop()
        await self._start_polling()

    async def start(self) -> None:
        await self._application.initialize()
        await self._application.start()
        await self._start_polling()
        logger.info("Bot started, waiting for messages...")

    async def stop(self) -> None:
        await self.supervisor.stop()
        if self._application.updater.running:
            await self._application.updater.stop()
        if self._application.running:
            await self._application.stop()
        await self._application.shutdown()
        await self._http_client.aclose()
        logger.info("Bot stopped")
