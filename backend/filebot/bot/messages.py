"""Reply texts and keyboards.

All texts use Telegram's legacy Markdown. Anything that comes from a user
(names, filenames) is escaped before it is interpolated.
"""
from datetime import datetime
from typing import List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup
from telegram.helpers import escape_markdown

from ..catalog.schemas import FileRecord, UserRecord
from ..status import StatusReport
from .events import UploadKind

MENU_MY_INFO = "📊 My info"
MENU_MY_FILES = "📁 My files"
MENU_UPLOAD = "📤 Upload file"
MENU_HELP = "🆘 Help"
MENU_SETTINGS = "⚙️ Settings"
MENU_STATUS = "🔁 Bot status"

REGISTER_CALLBACK = "register"

KIND_LABELS = {
    UploadKind.DOCUMENT: ("📄", "File"),
    UploadKind.PHOTO: ("🖼️", "Photo"),
    UploadKind.VIDEO: ("🎥", "Video"),
    UploadKind.AUDIO: ("🎵", "Audio"),
}

GENERIC_ERROR_TEXT = "❌ Something went wrong processing your request. Please try again."
PERMISSION_DENIED_TEXT = "❌ You are not allowed to use this command."
REPAIR_DONE_TEXT = "✅ Catalog repaired successfully."
REPAIR_FAILED_TEXT = "❌ Could not repair the catalog."
CORRUPT_CATALOG_TEXT = (
    "💥 The file catalog is unreadable. An administrator must run /repair."
)
SETTINGS_TEXT = "⚙️ *Settings*\n\nMore options coming soon..."
REGISTRATION_COMPLETE_TEXT = (
    "✅ *Registration complete!*\n\nYou now have access to every bot feature."
)
REGISTRATION_FAILED_TEXT = "❌ Registration failed"

UPLOAD_INSTRUCTIONS_TEXT = (
    "📤 *Upload a file*\n\n"
    "You can send:\n"
    "• 📄 Documents (PDF, Word, Excel, ...)\n"
    "• 🖼️ Photos\n"
    "• 🎥 Videos\n"
    "• 🎵 Audio\n"
    "• 📦 Other files\n\n"
    "*Just send the file you want to keep.*"
)

HELP_TEXT = (
    "🆘 *Help*\n\n"
    "*Commands:*\n"
    "• /start - Start the bot\n"
    "• /status - Show bot status\n"
    "• /repair - Repair the catalog (admin)\n\n"
    "*Menu options:*\n"
    f"• {MENU_MY_INFO} - Your details\n"
    f"• {MENU_MY_FILES} - Your stored files\n"
    f"• {MENU_UPLOAD} - How to upload\n"
    f"• {MENU_STATUS} - System information"
)


def _esc(text: Optional[str]) -> str:
    return escape_markdown(text or "", version=1)


def format_size_kb(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.2f} KB"


def format_time(when: datetime) -> str:
    return when.strftime("%Y-%m-%d %H:%M:%S UTC")


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [
            [MENU_MY_INFO, MENU_MY_FILES],
            [MENU_UPLOAD, MENU_HELP],
            [MENU_SETTINGS, MENU_STATUS],
        ],
        resize_keyboard=True,
        one_time_keyboard=False,
    )


def register_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("✅ Register", callback_data=REGISTER_CALLBACK)]]
    )


def welcome_text(first_name: Optional[str]) -> str:
    return (
        f"👋 Hi {_esc(first_name or 'there')}!\n\n"
        "⚠️ *You are not registered yet.*\n\n"
        "Register to use every feature of the bot, including file uploads."
    )


def main_menu_text(first_name: Optional[str]) -> str:
    return f"🎉 Welcome back {_esc(first_name or 'there')}!\n\nWhat would you like to do today?"


def processing_text(kind: UploadKind) -> str:
    return f"📥 *Processing {KIND_LABELS[kind][1].lower()}...*"


def upload_saved_text(kind: UploadKind, record: FileRecord) -> str:
    emoji, label = KIND_LABELS[kind]
    lines = [f"✅ *{label} saved successfully!*", ""]
    if kind == UploadKind.DOCUMENT:
        lines.append(f"📄 *Name:* {_esc(record.original_name)}")
    lines.extend(
        [
            f"{emoji} *Type:* {record.category.value}",
            f"💾 *Size:* {format_size_kb(record.size_bytes)}",
            f"📅 *Saved:* {format_time(record.uploaded_at)}",
        ]
    )
    return "\n".join(lines)


def upload_failed_text(kind: UploadKind) -> str:
    return f"❌ *Could not process the {KIND_LABELS[kind][1].lower()}.* Please try again."


def status_text(report: StatusReport) -> str:
    return (
        "🤖 *Bot status*\n\n"
        f"✅ Connected: {'Yes' if report.connected else 'No'}\n"
        f"🔄 Reconnect attempts: {report.reconnect_attempts}\n"
        f"📊 Registered users: {report.registered_users}\n"
        f"📁 Stored files: {report.stored_files}\n"
        f"⏰ Checked at: {format_time(report.checked_at)}"
    )


def user_info_text(user: UserRecord, file_count: int) -> str:
    return (
        "👤 *Your details:*\n\n"
        f"🆔 ID: {user.id}\n"
        f"👤 First name: {_esc(user.first_name)}\n"
        f"📛 Last name: {_esc(user.last_name)}\n"
        f"🌐 Username: @{_esc(user.username)}\n"
        f"📅 Registered: {user.registered_at.strftime('%Y-%m-%d')}\n"
        f"📁 Files uploaded: {file_count}"
    )


def files_list_text(files: List[FileRecord], page_size: int = 10) -> str:
    """Render the first page of a user's files, noting how many are left out."""
    if not files:
        return "📭 *You have no stored files.*\n\nSend any file to keep it."

    lines = [f"📂 *Your stored files ({len(files)}):*", ""]
    for index, record in enumerate(files[:page_size], start=1):
        lines.extend(
            [
                f"{index}. 📄 {_esc(record.original_name)}",
                f"   📦 Type: {record.category.value}",
                f"   💾 {format_size_kb(record.size_bytes)}",
                f"   📅 {record.uploaded_at.strftime('%Y-%m-%d')}",
                "",
            ]
        )
    remaining = len(files) - page_size
    if remaining > 0:
        lines.append(f"... and {remaining} more files.")
    return "\n".join(lines).rstrip()
