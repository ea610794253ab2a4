"""
nuke.py
───────
Rebuild one channel in place: same settings and role overwrites, fresh
history.  A full server snapshot is saved first so the rest of the server
can still be restored if something goes badly wrong.
"""

from __future__ import annotations
import logging

from adapters.base import PlatformAPI
from adapters.permissions import discord as permissions
from collector import SnapshotCollector
from errors import BackupError, FetchError, PerItemCreateError, RateLimitError
from gateway import Gateway
from restorer import channel_payload
from store import SnapshotStore

NUKE_NOTICE = "💥 Channel rebuilt."

log = logging.getLogger("guild_backup.nuke")


class Nuker:
    def __init__(self, api: PlatformAPI, store: SnapshotStore, gateway: Gateway | None = None):
        self.api = api
        self.store = store
        self.gateway = gateway or Gateway()

    def nuke(self, channel_id: str) -> str:
        """Recreate channel_id and delete the original.  Returns the new channel id."""
        try:
            granted = self.gateway.call("bot permissions", self.api.get_own_permissions)
        except BackupError as exc:
            raise FetchError(f"could not read bot permissions on {self.api.guild_id}: {exc}") from exc
        permissions.require(granted, permissions.NUKE_REQUIRED)

        snapshot = SnapshotCollector(self.api, self.gateway).collect()
        self.store.save(self.api.guild_id, snapshot)

        channel = snapshot.channel(str(channel_id))
        if channel is None:
            raise PerItemCreateError(f"channel {channel_id}", "not found on the server")
        label = f"#{channel.name}"

        # No teardown happened, so every id in the snapshot is still live.
        new_id = self.gateway.mutate(
            f"create {label}", self.api.create_channel, channel_payload(channel, channel.parent_id)
        )
        log.info("created replacement for %s (%s → %s)", label, channel.id, new_id)

        if channel.overwrites:
            overwrites = [
                {"id": ow.principal_id, "allow": int(ow.allow), "deny": int(ow.deny)}
                for ow in channel.overwrites
            ]
            try:
                self.gateway.mutate(f"overwrites on {label}", self.api.set_channel_overwrites, new_id, overwrites)
            except (RateLimitError, PerItemCreateError) as exc:
                log.warning("%s recreated with default permissions: %s", label, exc)

        try:
            self.gateway.mutate(f"delete old {label}", self.api.delete_channel, channel.id)
        except (RateLimitError, PerItemCreateError) as exc:
            log.warning("could not delete original %s: %s", label, exc)

        if channel.type.is_text_like:
            try:
                self.gateway.mutate(f"notice in {label}", self.api.send_message, new_id, NUKE_NOTICE)
            except (RateLimitError, PerItemCreateError) as exc:
                log.warning("could not post notice in %s: %s", label, exc)

        return new_id
