"""Typed inbound events.

Every Telegram update the bot cares about is turned into exactly one of the
event types below and handed to the dispatcher. Updates that map to no event
(edits, stickers, unknown commands...) are ignored.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type

from telegram import Update

from ..users.gate import UserProfile


class UploadKind(str, Enum):
    DOCUMENT = "document"
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"


@dataclass(frozen=True)
class InboundEvent:
    chat_id: int
    user: UserProfile


@dataclass(frozen=True)
class StartCommand(InboundEvent):
    pass


@dataclass(frozen=True)
class StatusCommand(InboundEvent):
    pass


@dataclass(frozen=True)
class RepairCommand(InboundEvent):
    pass


@dataclass(frozen=True)
class UploadReceived(InboundEvent):
    kind: UploadKind
    file_id: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None


@dataclass(frozen=True)
class MenuSelection(InboundEvent):
    text: str


@dataclass(frozen=True)
class CallbackPressed(InboundEvent):
    callback_id: str
    data: str


COMMANDS: dict[str, Type[InboundEvent]] = {
    "start": StartCommand,
    "status": StatusCommand,
    "repair": RepairCommand,
}


def _command_name(text: str) -> str:
    # "/start@MyBot arg" -> "start"
    return text.split()[0][1:].split("@")[0].lower()


def event_from_update(update: Update) -> Optional[InboundEvent]:
    """Translate a Telegram update into an inbound event, or None."""
    user = update.effective_user
    if user is None:
        return None
    profile = UserProfile(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
    )

    query = update.callback_query
    if query is not None:
        chat_id = query.message.chat.id if query.message else user.id
        return CallbackPressed(chat_id, profile, callback_id=query.id, data=query.data or "")

    message = update.effective_message
    if message is None:
        return None
    chat_id = message.chat_id

    if message.document:
        doc = message.document
        return UploadReceived(
            chat_id, profile, UploadKind.DOCUMENT, doc.file_id, doc.file_name, doc.file_size
        )
    if message.photo:
        largest = message.photo[-1]
        return UploadReceived(
            chat_id, profile, UploadKind.PHOTO, largest.file_id, None, largest.file_size
        )
    if message.video:
        video = message.video
        return UploadReceived(
            chat_id, profile, UploadKind.VIDEO, video.file_id, video.file_name, video.file_size
        )
    if message.audio:
        audio = message.audio
        return UploadReceived(
            chat_id, profile, UploadKind.AUDIO, audio.file_id, audio.file_name, audio.file_size
        )

    text = message.text
    if not text:
        return None
    if text.startswith("/"):
        event_type = COMMANDS.get(_command_name(text))
        return event_type(chat_id, profile) if event_type else None
    return MenuSelection(chat_id, profile, text=text)
