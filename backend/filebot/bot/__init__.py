"""Telegram front-end: inbound events, dispatch, replies and connectivity."""
