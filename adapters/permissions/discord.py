"""
adapters/permissions/discord.py
───────────────────────────────
Discord permission bits the bot itself needs, and the server-level check
run before anything is deleted.
"""

from __future__ import annotations

from errors import MissingPermissionsError

# ── Discord permission bits ───────────────────────────────────────────────────
ADMINISTRATOR = 1 << 3
MANAGE_CHANNELS = 1 << 4
MANAGE_GUILD = 1 << 5
MANAGE_ROLES = 1 << 28

_NAMES = [
    (MANAGE_GUILD, "Manage Server"),
    (MANAGE_ROLES, "Manage Roles"),
    (MANAGE_CHANNELS, "Manage Channels"),
]

# What each destructive operation needs before it may start
RESTORE_REQUIRED = MANAGE_GUILD | MANAGE_ROLES | MANAGE_CHANNELS
NUKE_REQUIRED = MANAGE_CHANNELS | MANAGE_ROLES


def server_permissions(roles: list[dict], member_role_ids, default_role_id: str) -> int:
    """OR of @everyone's mask and the masks of every role the member holds."""
    held = {str(rid) for rid in member_role_ids} | {str(default_role_id)}
    granted = 0
    for role in roles:
        if str(role["id"]) in held:
            granted |= int(role.get("permissions", 0))
    return granted


def missing(granted: int, required: int) -> list[str]:
    if granted & ADMINISTRATOR:
        return []
    return [name for bit, name in _NAMES if required & bit and not granted & bit]


def require(granted: int, required: int) -> None:
    lacking = missing(granted, required)
    if lacking:
        raise MissingPermissionsError(lacking)
