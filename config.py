"""
config.py
─────────
Settings for the backup tool.

Read, in increasing priority, from:
  • config.json next to this file   {"discord": {"token", "guild_id"}, "backup_dir", ...}
  • a .env file in the working directory
  • environment variables           DISCORD_TOKEN, DISCORD_GUILD_ID, BACKUP_DIR,
                                    LOG_LEVEL, STRICT_RESTORE
"""

from __future__ import annotations
import json
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from errors import ConfigMissingError

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.json")


@dataclass(frozen=True)
class Settings:
    token: str
    guild_id: str
    backup_dir: str = "backups"
    log_level: str = "INFO"
    # Abort a restore at the first failing role/channel instead of skipping it
    strict_restore: bool = False


def _get_bool(raw, default: bool) -> bool:
    if raw is None or str(raw).strip() == "":
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def load_config_file(path: str = DEFAULT_CONFIG_PATH) -> dict:
    if os.path.exists(path):
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    return {}


def load_settings(path: str | None = None, dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    config = load_config_file(path or DEFAULT_CONFIG_PATH)
    discord_cfg = config.get("discord", {})

    token = (os.getenv("DISCORD_TOKEN") or discord_cfg.get("token") or "").strip()
    guild_id = str(os.getenv("DISCORD_GUILD_ID") or discord_cfg.get("guild_id") or "").strip()
    if not token:
        raise ConfigMissingError("DISCORD_TOKEN")
    if not guild_id:
        raise ConfigMissingError("DISCORD_GUILD_ID")

    return Settings(
        token=token,
        guild_id=guild_id,
        backup_dir=(os.getenv("BACKUP_DIR") or config.get("backup_dir") or "backups").strip(),
        log_level=(os.getenv("LOG_LEVEL") or config.get("log_level") or "INFO").strip().upper(),
        strict_restore=_get_bool(os.getenv("STRICT_RESTORE", config.get("strict_restore")), False),
    )
