"""FileBot application configuration.

Loads settings from two YAML files:
  * filebot.settings.yaml  — non-secret configuration
  * filebot.secrets.yaml   — secrets (never committed)

The bot token may also come from the TELEGRAM_BOT_TOKEN environment
variable (a .env file next to the process is honoured), which wins over the
secrets file.

Relative storage paths are resolved against the directory holding the
settings file.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("filebot.settings.yaml")
SECRETS_FILE  = Path("filebot.secrets.yaml")
TOKEN_ENV_VAR = "TELEGRAM_BOT_TOKEN"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class TelegramSecrets(BaseModel):
    bot_token: Optional[str] = None


class Secrets(BaseModel):
    telegram: TelegramSecrets = Field(default_factory=TelegramSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


class LoggingSettings(BaseModel):
    level: str = "info"


class StorageSettings(BaseModel):
    """Where uploaded bytes and the catalog snapshot live."""
    downloads_dir: str = "downloads"
    catalog_path:  str = "catalog.json"


class IngestSettings(BaseModel):
    timeout_seconds: float = 30.0
    chunk_size:      int   = 64 * 1024

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be positive")
        return value


class BotSettings(BaseModel):
    """Telegram bot behaviour."""
    enabled:         bool      = True
    admin_ids:       List[int] = Field(default_factory=list)
    poll_interval:   float     = 0.3
    poll_timeout:    int       = 10
    files_page_size: int       = 10


class ReconnectSettings(BaseModel):
    max_attempts:  int   = 5
    delay_seconds: float = 5.0


class AppConfig(BaseModel):
    server:    ServerSettings    = Field(default_factory=ServerSettings)
    logging:   LoggingSettings   = Field(default_factory=LoggingSettings)
    storage:   StorageSettings   = Field(default_factory=StorageSettings)
    ingest:    IngestSettings    = Field(default_factory=IngestSettings)
    bot:       BotSettings       = Field(default_factory=BotSettings)
    reconnect: ReconnectSettings = Field(default_factory=ReconnectSettings)
    secrets:   Secrets           = Field(default_factory=Secrets)

    @property
    def bot_token(self) -> Optional[str]:
        return self.secrets.telegram.bot_token


def _resolve_path(value: str, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if path.is_absolute():
        return str(path)
    return str(base_dir / path)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(settings_path or SETTINGS_FILE)
    secrets_path = Path(secrets_path or settings_path.with_name(SECRETS_FILE.name))

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)

    base_dir = settings_path.resolve().parent
    config.storage.downloads_dir = _resolve_path(config.storage.downloads_dir, base_dir)
    config.storage.catalog_path = _resolve_path(config.storage.catalog_path, base_dir)

    load_dotenv()
    env_token = os.environ.get(TOKEN_ENV_VAR)
    if env_token:
        config.secrets.telegram.bot_token = env_token

    logger.info(
        "Settings loaded (downloads=%s, catalog=%s, bot.enabled=%s, admins=%d)",
        config.storage.downloads_dir,
        config.storage.catalog_path,
        config.bot.enabled,
        len(config.bot.admin_ids),
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    global _config
    _config = config
