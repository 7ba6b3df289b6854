"""Telegram transport adapter.

Wraps a python-telegram-bot ``Bot`` behind the small surface the rest of
the bot needs: resolve a download URL for a file id, send and edit
messages, answer callback queries. Telegram errors are translated into
TransportError / TransportTimeout.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Union

from telegram import Bot, InlineKeyboardMarkup, ReplyKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import TelegramError, TimedOut

from ..errors import TransportError, TransportTimeout

logger = logging.getLogger(__name__)

Keyboard = Union[InlineKeyboardMarkup, ReplyKeyboardMarkup]


class Replier(Protocol):
    """Outgoing side of the transport, as used by the dispatcher."""

    async def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        markdown: bool = False,
        keyboard: Optional[Keyboard] = None,
    ) -> int: ...

    async def edit_text(
        self, chat_id: int, message_id: int, text: str, *, markdown: bool = False
    ) -> None: ...

    async def answer_callback(self, callback_id: str, text: str) -> None: ...


class TelegramTransport:
    """Replier and download resolver backed by a Telegram Bot."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def resolve_download_url(self, file_id: str) -> str:
        """Return the direct download URL of a Telegram file.

        Raises:
            TransportTimeout: If Telegram did not answer in time.
            TransportError: For any other Telegram failure.
        """
        try:
            tg_file = await self._bot.get_file(file_id)
        except TimedOut as exc:
            raise TransportTimeout(f"Timed out resolving file {file_id}") from exc
        except TelegramError as exc:
            raise TransportError(f"Could not resolve file {file_id}: {exc}") from exc
        if not tg_file.file_path:
            raise TransportError(f"Telegram returned no download path for {file_id}")
        return tg_file.file_path

    async def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        markdown: bool = False,
        keyboard: Optional[Keyboard] = None,
    ) -> int:
        try:
            message = await self._bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN if markdown else None,
                reply_markup=keyboard,
            )
        except TimedOut as exc:
            raise TransportTimeout(f"Timed out sending message to {chat_id}") from exc
        except TelegramError as exc:
            raise TransportError(f"Could not send message to {chat_id}: {exc}") from exc
        return message.message_id

    async def edit_text(
        self, chat_id: int, message_id: int, text: str, *, markdown: bool = False
    ) -> None:
        try:
            await self._bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                parse_mode=ParseMode.MARKDOWN if markdown else None,
            )
        except TelegramError as exc:
            raise TransportError(f"Could not edit message {message_id}: {exc}") from exc

    async def answer_callback(self, callback_id: str, text: str) -> None:
        try:
            await self._bot.answer_callback_query(callback_query_id=callback_id, text=text)
        except TelegramError as exc:
            # An expired callback only loses the toast; the reply still goes out.
            logger.warning("Could not answer callback %s: %s", callback_id, exc)
