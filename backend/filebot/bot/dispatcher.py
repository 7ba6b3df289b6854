"""Single dispatch point for inbound events.

Each event is handled in its own task by the Telegram application. Failures
are contained here: the user gets a generic reply, the error is logged, and
nothing propagates to the polling loop.
"""
import logging
from typing import Callable, Iterable, Optional

from ..catalog.schemas import utcnow
from ..catalog.store import CatalogStore
from ..errors import CorruptCatalogError, IngestError, RegistrationError, StorageError, TransportError
from ..files.ingest import Clock, Ingestor
from ..status import build_status_report
from ..users.gate import RegistrationGate
from . import messages
from .connectivity import ConnectivitySupervisor
from .events import (
    CallbackPressed,
    InboundEvent,
    MenuSelection,
    RepairCommand,
    StartCommand,
    StatusCommand,
    UploadKind,
    UploadReceived,
)
from .transport import Replier

logger = logging.getLogger(__name__)

DEFAULT_NAME_TEMPLATES = {
    UploadKind.DOCUMENT: "file_{ms}",
    UploadKind.PHOTO: "photo_{ms}.jpg",
    UploadKind.VIDEO: "video_{ms}.mp4",
    UploadKind.AUDIO: "audio_{ms}.mp3",
}


class Dispatcher:
    """Routes inbound events to the catalog, the gate and the ingestor."""

    def __init__(
        self,
        store: CatalogStore,
        gate: RegistrationGate,
        ingestor: Ingestor,
        replier: Replier,
        admin_ids: Iterable[int] = (),
        supervisor: Optional[ConnectivitySupervisor] = None,
        files_page_size: int = 10,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._gate = gate
        self._ingestor = ingestor
        self._replier = replier
        self._admin_ids = frozenset(admin_ids)
        self._supervisor = supervisor
        self._files_page_size = files_page_size
        self._clock = clock
        self._menu: dict[str, Callable] = {
            messages.MENU_MY_INFO: self._show_user_info,
            messages.MENU_MY_FILES: self._show_user_files,
            messages.MENU_UPLOAD: self._show_upload_instructions,
            messages.MENU_HELP: self._show_help,
            messages.MENU_SETTINGS: self._show_settings,
            messages.MENU_STATUS: self._send_status,
        }

    async def dispatch(self, event: InboundEvent) -> None:
        """Handle one event; never raises."""
        try:
            await self._route(event)
        except CorruptCatalogError as exc:
            logger.error("Catalog unreadable while handling %s: %s", type(event).__name__, exc)
            await self._safe_send(event.chat_id, messages.CORRUPT_CATALOG_TEXT)
        except Exception:
            logger.exception(
                "Unhandled error while handling %s from user %s", type(event).__name__, event.user.id
            )
            await self._safe_send(event.chat_id, messages.GENERIC_ERROR_TEXT)

    async def _route(self, event: InboundEvent) -> None:
        if isinstance(event, StartCommand):
            await self._on_start(event)
        elif isinstance(event, StatusCommand):
            await self._send_status(event)
        elif isinstance(event, RepairCommand):
            await self._on_repair(event)
        elif isinstance(event, UploadReceived):
            await self._on_upload(event)
        elif isinstance(event, CallbackPressed):
            await self._on_callback(event)
        elif isinstance(event, MenuSelection):
            await self._on_menu(event)
        else:
            logger.debug("Ignoring event %r", event)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _on_start(self, event: StartCommand) -> None:
        logger.info("/start from %s (ID: %s)", event.user.first_name, event.user.id)
        if self._gate.is_registered(event.user.id):
            await self._send_main_menu(event)
        else:
            await self._send_welcome(event)

    async def _send_status(self, event: InboundEvent) -> None:
        report = build_status_report(self._store, self._supervisor)
        await self._replier.send_text(event.chat_id, messages.status_text(report), markdown=True)

    async def _on_repair(self, event: RepairCommand) -> None:
        if event.user.id not in self._admin_ids:
            logger.warning("Unauthorized /repair from user %s", event.user.id)
            await self._replier.send_text(event.chat_id, messages.PERMISSION_DENIED_TEXT)
            return

        try:
            self._store.repair()
        except StorageError as exc:
            logger.error("Catalog repair failed: %s", exc)
            await self._replier.send_text(event.chat_id, messages.REPAIR_FAILED_TEXT)
            return
        logger.warning("Catalog repaired by admin %s", event.user.id)
        await self._replier.send_text(event.chat_id, messages.REPAIR_DONE_TEXT)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def _default_name(self, kind: UploadKind) -> str:
        ms = int(self._clock().timestamp() * 1000)
        return DEFAULT_NAME_TEMPLATES[kind].format(ms=ms)

    async def _on_upload(self, event: UploadReceived) -> None:
        logger.info(
            "%s received from %s (%s): %s, %s bytes, file id %s",
            event.kind.value,
            event.user.first_name,
            event.user.id,
            event.file_name or "unnamed",
            event.file_size,
            event.file_id,
        )
        if not self._gate.is_registered(event.user.id):
            logger.warning("Unregistered user %s tried to upload a %s", event.user.id, event.kind.value)
            await self._send_welcome(event)
            return

        processing_id = await self._replier.send_text(
            event.chat_id, messages.processing_text(event.kind), markdown=True
        )

        file_name = event.file_name
        if event.kind == UploadKind.PHOTO or not file_name:
            file_name = self._default_name(event.kind)

        try:
            record = await self._ingestor.ingest(event.file_id, file_name, event.user.id)
        except (IngestError, RegistrationError) as exc:
            logger.error("Failed to process %s from user %s: %s", file_name, event.user.id, exc)
            await self._safe_send(event.chat_id, messages.upload_failed_text(event.kind), markdown=True)
            return

        await self._replier.edit_text(
            event.chat_id,
            processing_id,
            messages.upload_saved_text(event.kind, record),
            markdown=True,
        )
        logger.info(
            "Processed %s for %s (%s) -> %s", record.original_name, event.user.first_name,
            event.user.id, record.stored_path,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def _on_callback(self, event: CallbackPressed) -> None:
        if event.data != messages.REGISTER_CALLBACK:
            logger.debug("Ignoring callback data %r", event.data)
            return

        try:
            result = self._gate.ensure_registered(event.user)
        except RegistrationError as exc:
            logger.error("Registration failed for %s: %s", event.user.id, exc)
            await self._replier.answer_callback(event.callback_id, messages.REGISTRATION_FAILED_TEXT)
            return

        if result.already_registered:
            await self._replier.answer_callback(event.callback_id, "✅ You are already registered!")
        else:
            await self._replier.answer_callback(event.callback_id, "🎉 Registration successful!")
            await self._replier.send_text(
                event.chat_id, messages.REGISTRATION_COMPLETE_TEXT, markdown=True
            )
        await self._send_main_menu(event)

    # ------------------------------------------------------------------
    # Menu
    # ------------------------------------------------------------------

    async def _on_menu(self, event: MenuSelection) -> None:
        if not self._gate.is_registered(event.user.id):
            await self._send_welcome(event)
            return

        handler = self._menu.get(event.text)
        if handler is None:
            await self._send_main_menu(event)
            return
        await handler(event)

    async def _show_user_info(self, event: InboundEvent) -> None:
        user = self._store.get_user(event.user.id)
        if user is None:
            await self._replier.send_text(event.chat_id, "❌ Your details were not found in the catalog.")
            return
        files = self._store.user_files(event.user.id)
        await self._replier.send_text(
            event.chat_id, messages.user_info_text(user, len(files)), markdown=True
        )

    async def _show_user_files(self, event: InboundEvent) -> None:
        files = self._store.user_files(event.user.id)
        await self._replier.send_text(
            event.chat_id, messages.files_list_text(files, self._files_page_size), markdown=True
        )

    async def _show_upload_instructions(self, event: InboundEvent) -> None:
        await self._replier.send_text(event.chat_id, messages.UPLOAD_INSTRUCTIONS_TEXT, markdown=True)

    async def _show_help(self, event: InboundEvent) -> None:
        await self._replier.send_text(event.chat_id, messages.HELP_TEXT, markdown=True)

    async def _show_settings(self, event: InboundEvent) -> None:
        await self._replier.send_text(event.chat_id, messages.SETTINGS_TEXT, markdown=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _send_welcome(self, event: InboundEvent) -> None:
        await self._replier.send_text(
            event.chat_id,
            messages.welcome_text(event.user.first_name),
            markdown=True,
            keyboard=messages.register_keyboard(),
        )

    async def _send_main_menu(self, event: InboundEvent) -> None:
        await self._replier.send_text(
            event.chat_id,
            messages.main_menu_text(event.user.first_name),
            markdown=True,
            keyboard=messages.main_menu_keyboard(),
        )

    async def _safe_send(self, chat_id: int, text: str, markdown: bool = False) -> None:
        try:
            await self._replier.send_text(chat_id, text, markdown=markdown)
        except TransportError as exc:
            logger.warning("Could not deliver reply to %s: %s", chat_id, exc)
