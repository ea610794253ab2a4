"""
commands.py
───────────
Operator entry points.  Each one runs a whole operation and answers with a
single short status line; details of individual failures only go to the log.
"""

from __future__ import annotations
import logging

from adapters.base import PlatformAPI
from collector import SnapshotCollector
from errors import BackupError
from gateway import Gateway
from nuke import Nuker
from restorer import Restorer
from store import SnapshotStore

log = logging.getLogger("guild_backup.commands")


def snapshot(api: PlatformAPI, store: SnapshotStore, gateway: Gateway | None = None) -> str:
    try:
        snap = SnapshotCollector(api, gateway).collect()
        path = store.save(api.guild_id, snap)
    except (BackupError, OSError) as exc:
        log.error("snapshot of %s failed: %s", api.guild_id, exc)
        return f"❌ Backup failed: {exc}"
    return f"✅ Backup saved: {snap.summary()} → {path}"


def restore(
    api: PlatformAPI,
    store: SnapshotStore,
    strict: bool = False,
    gateway: Gateway | None = None,
    verbose: bool = False,
) -> str:
    try:
        snap = store.load(api.guild_id)
    except BackupError as exc:
        log.error("cannot restore %s: %s", api.guild_id, exc)
        return f"❌ Backup file is unreadable: {exc}"
    if snap is None:
        return "❌ No backup found for this server."

    try:
        report = Restorer(api, gateway, strict=strict).run(snap)
    except BackupError as exc:
        log.error("restore of %s stopped: %s", api.guild_id, exc)
        return f"❌ Restore stopped: {exc}"
    if verbose:
        report.print()
    return f"✅ {report.summary()}"


def rebuild_one(
    api: PlatformAPI,
    store: SnapshotStore,
    channel_id: str,
    gateway: Gateway | None = None,
) -> str:
    try:
        new_id = Nuker(api, store, gateway).nuke(channel_id)
    except (BackupError, OSError) as exc:
        log.error("rebuild of channel %s failed: %s", channel_id, exc)
        return f"❌ Channel rebuild failed: {exc}"
    return f"✅ Channel rebuilt (new id {new_id})."
