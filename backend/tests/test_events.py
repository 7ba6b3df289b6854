"""Tests for translating Telegram updates into inbound events."""
from datetime import datetime, timezone

from telegram import (
    Audio,
    CallbackQuery,
    Chat,
    Document,
    Message,
    PhotoSize,
    Update,
    User,
    Video,
)

from filebot.bot.events import (
    CallbackPressed,
    MenuSelection,
    RepairCommand,
    StartCommand,
    StatusCommand,
    UploadKind,
    UploadReceived,
    event_from_update,
)

NOW = datetime(2026, 1, 15, tzinfo=timezone.utc)
USER = User(id=42, first_name="Ada", is_bot=False, last_name="Lovelace", username="ada")
CHAT = Chat(id=4242, type=Chat.PRIVATE)


def _message_update(**kwargs) -> Update:
    message = Message(message_id=1, date=NOW, chat=CHAT, from_user=USER, **kwargs)
    return Update(update_id=1, message=message)


def test_start_command():
    event = event_from_update(_message_update(text="/start"))
    assert isinstance(event, StartCommand)
    assert event.chat_id == 4242
    assert event.user.id == 42
    assert event.user.last_name == "Lovelace"


def test_command_with_bot_suffix_and_args():
    assert isinstance(event_from_update(_message_update(text="/status@FileBot now")), StatusCommand)
    assert isinstance(event_from_update(_message_update(text="/REPAIR")), RepairCommand)


def test_unknown_command_is_ignored():
    assert event_from_update(_message_update(text="/unknown")) is None


def test_plain_text_is_menu_selection():
    event = event_from_update(_message_update(text="📁 My files"))
    assert isinstance(event, MenuSelection)
    assert event.text == "📁 My files"


def test_document_upload():
    document = Document(file_id="doc-1", file_unique_id="u1", file_name="report.pdf", file_size=2048)
    event = event_from_update(_message_update(document=document))

    assert isinstance(event, UploadReceived)
    assert event.kind == UploadKind.DOCUMENT
    assert event.file_id == "doc-1"
    assert event.file_name == "report.pdf"
    assert event.file_size == 2048


def test_photo_upload_uses_largest_size():
    sizes = [
        PhotoSize(file_id="small", file_unique_id="s", width=90, height=90, file_size=100),
        PhotoSize(file_id="large", file_unique_id="l", width=1280, height=1280, file_size=9000),
    ]
    event = event_from_update(_message_update(photo=sizes))

    assert event.kind == UploadKind.PHOTO
    assert event.file_id == "large"
    assert event.file_name is None


def test_video_and_audio_uploads():
    video = Video(file_id="vid", file_unique_id="v", width=640, height=480, duration=3)
    audio = Audio(file_id="aud", file_unique_id="a", duration=60, file_name="song.mp3")

    assert event_from_update(_message_update(video=video)).kind == UploadKind.VIDEO
    audio_event = event_from_update(_message_update(audio=audio))
    assert audio_event.kind == UploadKind.AUDIO
    assert audio_event.file_name == "song.mp3"


def test_callback_query():
    message = Message(message_id=7, date=NOW, chat=CHAT, from_user=USER, text="welcome")
    query = CallbackQuery(
        id="cb-1", from_user=USER, chat_instance="ci", data="register", message=message
    )
    event = event_from_update(Update(update_id=2, callback_query=query))

    assert isinstance(event, CallbackPressed)
    assert event.callback_id == "cb-1"
    assert event.data == "register"
    assert event.chat_id == 4242


def test_update_without_user_is_ignored():
    message = Message(message_id=1, date=NOW, chat=CHAT, text="hello")
    assert event_from_update(Update(update_id=3, message=message)) is None
