"""
collector.py
────────────
Reads a live server through a PlatformAPI and converts it into a Snapshot.

Always fetches fresh listings; nothing is cached between calls.  Managed
roles (bot and integration roles) are left out because they cannot be
recreated, and only role overwrites are kept on each channel.
"""

from __future__ import annotations
import logging

from adapters.base import PlatformAPI
from errors import BackupError, FetchError
from gateway import Gateway
from models import Channel, ChannelType, Overwrite, Role, ServerMetadata, Snapshot, utc_now

CDN = "https://cdn.discordapp.com"

_OVERWRITE_ROLE = 0

log = logging.getLogger("guild_backup.collector")


def icon_url(guild_id: str, icon_hash: str | None) -> str | None:
    if not icon_hash:
        return None
    ext = "gif" if icon_hash.startswith("a_") else "png"
    return f"{CDN}/icons/{guild_id}/{icon_hash}.{ext}?size=512"


def role_from_payload(r: dict) -> Role:
    return Role(
        id=str(r["id"]),
        name=r["name"],
        color=r.get("color") or 0,
        hoist=bool(r.get("hoist", False)),
        position=r.get("position", 0),
        mentionable=bool(r.get("mentionable", False)),
        permissions=str(int(r.get("permissions", 0))),
    )


def channel_from_payload(ch: dict) -> Channel | None:
    ctype = ChannelType.from_wire(ch.get("type"))
    if ctype is None:
        return None  # thread, DM, directory … – skip

    overwrites = tuple(
        Overwrite(
            principal_id=str(ow["id"]),
            allow=str(int(ow.get("allow", 0))),
            deny=str(int(ow.get("deny", 0))),
        )
        for ow in ch.get("permission_overwrites") or []
        if ow.get("type") == _OVERWRITE_ROLE
    )
    parent = ch.get("parent_id")
    return Channel(
        id=str(ch["id"]),
        name=ch["name"],
        type=ctype,
        position=ch.get("position", 0),
        parent_id=str(parent) if parent else None,
        rate_limit_per_user=ch.get("rate_limit_per_user") or 0,
        nsfw=bool(ch.get("nsfw", False)),
        topic=ch.get("topic") or None,
        bitrate=ch.get("bitrate") or None,
        user_limit=ch.get("user_limit") or None,
        overwrites=overwrites,
    )


class SnapshotCollector:
    def __init__(self, api: PlatformAPI, gateway: Gateway | None = None):
        self.api = api
        self.gateway = gateway or Gateway()

    def _fetch(self, label: str, fn):
        try:
            return self.gateway.call(label, fn)
        except BackupError as exc:
            raise FetchError(f"could not read {label} of guild {self.api.guild_id}: {exc}") from exc

    def collect(self) -> Snapshot:
        guild = self._fetch("server", self.api.get_guild)
        raw_roles = self._fetch("roles", self.api.list_roles)
        raw_channels = self._fetch("channels", self.api.list_channels)

        roles = sorted(
            (role_from_payload(r) for r in raw_roles if not r.get("managed")),
            key=lambda r: r.position,
        )
        channels = sorted(
            (ch for ch in map(channel_from_payload, raw_channels) if ch is not None),
            key=lambda ch: ch.position,
        )

        meta = ServerMetadata(
            id=str(guild.get("id", self.api.guild_id)),
            name=guild["name"],
            icon_url=icon_url(self.api.guild_id, guild.get("icon")),
            saved_at=utc_now(),
        )
        snapshot = Snapshot(meta=meta, roles=tuple(roles), channels=tuple(channels))
        log.info("collected %s", snapshot.summary())
        return snapshot
