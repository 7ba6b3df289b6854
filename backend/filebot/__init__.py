"""FileBot: Telegram bot that stores uploaded files and catalogs them."""

__version__ = "0.1.0"
