from __future__ import annotations

# config/runtime.py
import os
from typing import Optional

DEFAULT_EVENT_CONFIG_PATH = "config/event.json"


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "contest-bot") -> str:
    return os.getenv("BOT_NAME", default)


def get_log_level(default: str = "INFO") -> str:
    return (os.getenv("LOG_LEVEL") or default).strip().upper()


def get_log_format(default: str = "json") -> str:
    """
    LOG_FORMAT selects the stream formatter:
      - "json" → one JSON object per line (default)
      - "text" → classic ``asctime level logger: message``
    Anything else falls back to the default.
    """
    value = (os.getenv("LOG_FORMAT") or "").strip().lower()
    if value in {"json", "text"}:
        return value
    return default


def get_event_config_path(default: str = DEFAULT_EVENT_CONFIG_PATH) -> str:
    return os.getenv("EVENT_CONFIG_PATH") or default


def get_discord_token() -> str:
    token = os.getenv("DISCORD_TOKEN")
    if token is None or not token.strip():
        raise RuntimeError("Missing required environment variable: DISCORD_TOKEN")
    return token.strip()


def _coerce_int(value: Optional[str], fallback: Optional[int]) -> Optional[int]:
    try:
        if value is None:
            raise TypeError
        return int(value)
    except (TypeError, ValueError):
        return fallback


def get_guild_id_override() -> Optional[int]:
    """DISCORD_GUILD_ID wins over the event file's ``guild_id`` when set."""

    return _coerce_int((os.getenv("DISCORD_GUILD_ID") or "").strip() or None, None)


def get_staff_password_override() -> Optional[str]:
    value = os.getenv("STAFF_PASSWORD")
    if value is None or not value.strip():
        return None
    return value.strip()
