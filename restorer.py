"""
restorer.py
───────────
The restore engine.

Takes a Snapshot and a PlatformAPI bound to the live server, checks that the
bot holds Manage Server, Manage Roles and Manage Channels, then:
  1. Tears down every channel and every deletable role
  2. Recreates roles            (old role id → new role id)
  3. Recreates categories       (old category id → new category id)
  4. Recreates all other channels, parented through the category map
  5. Restores server name and icon
  6. Posts a notice in one of the new text channels

There is no rollback.  Once teardown starts, a failing role or channel is
logged and skipped and the run carries on to the end.  Restorer(strict=True)
stops at the first such failure instead.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum

from adapters.base import PlatformAPI
from adapters.permissions import discord as permissions
from errors import BackupError, FetchError, PerItemCreateError, RateLimitError
from gateway import Gateway
from models import Channel, ChannelType, Snapshot

RESTORE_NOTICE = "✅ Server restored from backup."

# ── ANSI colours ──────────────────────────────────────────────────────────────
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
BOLD = "\033[1m"
DIM = "\033[2m"
RESET = "\033[0m"

log = logging.getLogger("guild_backup.restore")


def _head(msg):
    print(f"\n{BOLD}{msg}{RESET}")


class RestoreStage(Enum):
    PENDING = "pending"
    TEARDOWN = "teardown"
    CREATE_ROLES = "create_roles"
    CREATE_CATEGORIES = "create_categories"
    CREATE_OTHER_CHANNELS = "create_other_channels"
    APPLY_METADATA = "apply_metadata"
    NOTIFY = "notify"
    DONE = "done"


def channel_payload(channel: Channel, parent_id: str | None = None) -> dict:
    """Creation payload for one channel; which fields apply depends on its kind."""
    payload: dict = {
        "name": channel.name,
        "type": channel.type.wire_type,
        "position": channel.position,
    }
    if channel.type.is_category:
        return payload
    if parent_id:
        payload["parent_id"] = parent_id
    if channel.type.is_text_like:
        payload["nsfw"] = channel.nsfw
        payload["rate_limit_per_user"] = channel.rate_limit_per_user
        if channel.topic:
            payload["topic"] = channel.topic
    elif channel.type.is_voice_like:
        if channel.bitrate:
            payload["bitrate"] = channel.bitrate
        if channel.user_limit:
            payload["user_limit"] = channel.user_limit
    return payload


# ── Restore report ────────────────────────────────────────────────────────────


@dataclass
class RestoreReport:
    server_id: str = ""

    channels_deleted: int = 0
    roles_deleted: int = 0
    deletions_failed: list[str] = field(default_factory=list)

    roles_ok: list[str] = field(default_factory=list)
    roles_failed: list[str] = field(default_factory=list)

    cats_ok: list[str] = field(default_factory=list)
    cats_failed: list[str] = field(default_factory=list)

    channels_ok: list[str] = field(default_factory=list)
    channels_failed: list[str] = field(default_factory=list)

    warnings: list[str] = field(default_factory=list)
    notified_channel_id: str | None = None

    @property
    def failures(self) -> int:
        return (
            len(self.deletions_failed)
            + len(self.roles_failed)
            + len(self.cats_failed)
            + len(self.channels_failed)
        )

    def summary(self) -> str:
        def part(label, ok, failed):
            total = len(ok) + len(failed)
            return f"{len(ok)}/{total} {label}"

        text = "Restore finished: " + ", ".join([
            part("roles", self.roles_ok, self.roles_failed),
            part("categories", self.cats_ok, self.cats_failed),
            part("channels", self.channels_ok, self.channels_failed),
        ])
        if self.failures:
            text += f" ({self.failures} failures, see logs)"
        return text

    def print(self):
        _head("═══════════════════ Restore Report ═══════════════════")
        print(f"\n  Server ID       : {self.server_id}")
        print(f"  Removed         : {self.channels_deleted} channels, {self.roles_deleted} roles\n")

        sections = [
            ("Teardown", [], self.deletions_failed),
            ("Roles", self.roles_ok, self.roles_failed),
            ("Categories", self.cats_ok, self.cats_failed),
            ("Channels", self.channels_ok, self.channels_failed),
        ]
        for label, ok_list, failed_list in sections:
            if label != "Teardown":
                print(
                    f"  {label:<12}"
                    f"  {GREEN}{len(ok_list)} restored{RESET}"
                    + (f"   {RED}{len(failed_list)} failed{RESET}" if failed_list else "")
                )
            for name in failed_list:
                print(f"             {DIM}↳ failed: {name}{RESET}")

        for warning in self.warnings:
            print(f"  {YELLOW}⚠{RESET}  {warning}")
        print()


# ── Restorer ──────────────────────────────────────────────────────────────────


class Restorer:
    def __init__(self, api: PlatformAPI, gateway: Gateway | None = None, strict: bool = False):
        self.api = api
        self.gateway = gateway or Gateway()
        self.strict = strict
        self.stage = RestoreStage.PENDING

    def _attempt(self, label: str, fn, *args) -> tuple[bool, object]:
        """One paced mutating call; per-item failures are logged unless strict."""
        try:
            return True, self.gateway.mutate(label, fn, *args)
        except (RateLimitError, PerItemCreateError) as exc:
            if self.strict:
                raise
            log.warning("%s failed: %s", label, exc)
            return False, None

    def _overwrites(self, channel: Channel, role_map: dict[str, str]) -> list[dict]:
        """
        Translate overwrites through the role map.  Principals that were never
        recreated fall back to the default role, but only when the snapshot has
        no overwrite of its own for that role.
        """
        resolved: dict[str, dict] = {}
        fallbacks: list[dict] = []
        for ow in channel.overwrites:
            entry = {"allow": int(ow.allow), "deny": int(ow.deny)}
            principal = role_map.get(ow.principal_id)
            if principal is None:
                fallbacks.append(dict(entry, id=self.api.default_role_id))
                log.debug("#%s: overwrite for unknown role %s goes to the default role",
                          channel.name, ow.principal_id)
            else:
                resolved[principal] = dict(entry, id=principal)
        for entry in fallbacks:
            resolved.setdefault(entry["id"], entry)
        return list(resolved.values())

    def _create_channel(
        self,
        channel: Channel,
        parent_id: str | None,
        role_map: dict[str, str],
        ok: list[str],
        failed: list[str],
    ) -> str | None:
        label = f"[{channel.type.value}] #{channel.name}"
        created, new_id = self._attempt(
            f"create channel {label}", self.api.create_channel, channel_payload(channel, parent_id)
        )
        if not created:
            failed.append(channel.name)
            return None
        ok.append(channel.name)
        log.info("created %s", label)

        overwrites = self._overwrites(channel, role_map)
        if overwrites:
            self._attempt(
                f"overwrites on {label}", self.api.set_channel_overwrites, new_id, overwrites
            )
        return new_id

    def run(self, snapshot: Snapshot) -> RestoreReport:
        report = RestoreReport(server_id=self.api.guild_id)
        log.info("restoring %s into guild %s", snapshot.summary(), self.api.guild_id)

        # Nothing has been touched yet, so a failed read aborts cleanly.
        try:
            granted = self.gateway.call("bot permissions", self.api.get_own_permissions)
            guild = self.gateway.call("server", self.api.get_guild)
            live_channels = self.gateway.call("channels", self.api.list_channels)
            live_roles = self.gateway.call("roles", self.api.list_roles)
        except BackupError as exc:
            raise FetchError(f"could not read guild {self.api.guild_id}: {exc}") from exc
        permissions.require(granted, permissions.RESTORE_REQUIRED)

        # 1. Teardown
        self.stage = RestoreStage.TEARDOWN
        for ch in live_channels:
            done, _ = self._attempt(f"delete channel #{ch.get('name')}", self.api.delete_channel, str(ch["id"]))
            if done:
                report.channels_deleted += 1
            else:
                report.deletions_failed.append(f"#{ch.get('name')}")

        default_role = self.api.default_role_id
        for role in sorted(live_roles, key=lambda r: r.get("position", 0), reverse=True):
            if role.get("managed") or str(role["id"]) == default_role:
                continue
            done, _ = self._attempt(f"delete role {role.get('name')}", self.api.delete_role, str(role["id"]))
            if done:
                report.roles_deleted += 1
            else:
                report.deletions_failed.append(f"@{role.get('name')}")

        # 2. Roles
        self.stage = RestoreStage.CREATE_ROLES
        role_map: dict[str, str] = {}
        snapshot_default = snapshot.default_role_id()
        if snapshot_default:
            role_map[snapshot_default] = default_role

        for role in sorted(snapshot.roles, key=lambda r: r.position):
            if role.id == snapshot_default:
                continue
            payload = {
                "name": role.name,
                "color": role.color,
                "hoist": role.hoist,
                "mentionable": role.mentionable,
                "permissions": role.permission_mask,
            }
            created, new_id = self._attempt(f"create role {role.name}", self.api.create_role, payload)
            if created:
                role_map[role.id] = new_id
                report.roles_ok.append(role.name)
            else:
                report.roles_failed.append(role.name)

        # 3. Categories
        self.stage = RestoreStage.CREATE_CATEGORIES
        category_map: dict[str, str] = {}
        for cat in snapshot.categories():
            new_id = self._create_channel(cat, None, role_map, report.cats_ok, report.cats_failed)
            if new_id:
                category_map[cat.id] = new_id

        # 4. Everything else
        self.stage = RestoreStage.CREATE_OTHER_CHANNELS
        notice_target = None
        for ch in snapshot.other_channels():
            parent = category_map.get(ch.parent_id) if ch.parent_id else None
            new_id = self._create_channel(ch, parent, role_map, report.channels_ok, report.channels_failed)
            if new_id and notice_target is None and ch.type in (ChannelType.TEXT, ChannelType.ANNOUNCE):
                notice_target = new_id

        # 5. Server name & icon
        self.stage = RestoreStage.APPLY_METADATA
        if snapshot.meta:
            self._apply_metadata(snapshot, guild, report)

        # 6. Notice
        self.stage = RestoreStage.NOTIFY
        if notice_target:
            try:
                self.gateway.mutate("restore notice", self.api.send_message, notice_target, RESTORE_NOTICE)
                report.notified_channel_id = notice_target
            except (RateLimitError, PerItemCreateError) as exc:
                log.warning("could not post restore notice: %s", exc)
                report.warnings.append("restore notice not posted")

        self.stage = RestoreStage.DONE
        log.info(report.summary())
        return report

    def _apply_metadata(self, snapshot: Snapshot, guild: dict, report: RestoreReport):
        meta = snapshot.meta
        if meta.name and meta.name != guild.get("name"):
            try:
                self.gateway.mutate("rename server", self.api.rename_server, meta.name)
            except (RateLimitError, PerItemCreateError) as exc:
                log.warning("could not rename server to %r: %s", meta.name, exc)
                report.warnings.append(f"server name not restored ({meta.name})")
        if meta.icon_url:
            try:
                self.gateway.mutate("server icon", self.api.set_server_icon, meta.icon_url)
            except (RateLimitError, PerItemCreateError) as exc:
                log.warning("could not restore server icon: %s", exc)
                report.warnings.append("server icon not restored")
