"""
adapters/base.py
────────────────
Abstract interface to the chat platform holding the server.

The collector, restorer and nuker only talk to a PlatformAPI, never to HTTP
directly.  An instance is bound to one server (guild) for its lifetime.

Conventions every implementation follows:
  • reads return the platform's raw JSON objects (dicts)
  • permission masks in payloads are Python ints; encoding is the adapter's job
  • create_* return the new entity's id as a string
  • failures raise errors.PlatformError, and errors.TooManyRequests on HTTP 429
"""

from __future__ import annotations
from abc import ABC, abstractmethod


class PlatformAPI(ABC):
    # Human-readable name shown in logs
    platform_name: str = "Unknown Platform"

    def __init__(self, guild_id: str):
        self.guild_id = str(guild_id)

    @property
    def default_role_id(self) -> str:
        """The implicit role every member has (Discord: @everyone, id == guild id)."""
        return self.guild_id

    # ── reads ─────────────────────────────────────────────────────────────

    @abstractmethod
    def get_guild(self) -> dict:
        """Server object: at least 'id', 'name' and 'icon' (hash or None)."""

    @abstractmethod
    def list_roles(self) -> list[dict]:
        """Every role on the server, managed ones included."""

    @abstractmethod
    def list_channels(self) -> list[dict]:
        """Every channel on the server, with its permission_overwrites."""

    @abstractmethod
    def get_own_permissions(self) -> int:
        """Server-level permission mask of the account this adapter acts as."""

    # ── writes ────────────────────────────────────────────────────────────

    @abstractmethod
    def create_role(self, payload: dict) -> str:
        """payload: name, color, hoist, mentionable, permissions (int)."""

    @abstractmethod
    def delete_role(self, role_id: str) -> None:
        ...

    @abstractmethod
    def create_channel(self, payload: dict) -> str:
        """payload: name, type (wire code), position, and kind-specific fields."""

    @abstractmethod
    def delete_channel(self, channel_id: str) -> None:
        ...

    @abstractmethod
    def set_channel_overwrites(self, channel_id: str, overwrites: list[dict]) -> None:
        """
        Replace a channel's overwrites in one call.
        Each item: {'id': role id, 'allow': int, 'deny': int}.
        """

    @abstractmethod
    def rename_server(self, name: str) -> None:
        ...

    @abstractmethod
    def set_server_icon(self, icon_url: str) -> None:
        """Fetch the image behind icon_url and make it the server icon."""

    @abstractmethod
    def send_message(self, channel_id: str, text: str) -> None:
        ...
