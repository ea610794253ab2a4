"""
models.py
─────────
Snapshot data model.

A live Discord server is read into a Snapshot by the collector, written to
disk by the store, and replayed by the restorer.  All ids held here are the
ids of the server at capture time; they stop meaning anything once a restore
has torn the server down, so the restorer maps them to new ids as it goes.

Permission masks are kept as decimal strings: they are 64-bit and JSON
consumers are not guaranteed to keep that precision for numbers.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ChannelType(Enum):
    CATEGORY = "category"
    TEXT = "text"
    ANNOUNCE = "announce"
    FORUM = "forum"
    VOICE = "voice"
    STAGE = "stage"

    @property
    def is_category(self) -> bool:
        return self is ChannelType.CATEGORY

    @property
    def is_text_like(self) -> bool:
        return self in _TEXT_LIKE

    @property
    def is_voice_like(self) -> bool:
        return self in _VOICE_LIKE

    @property
    def wire_type(self) -> int:
        return _WIRE_TYPES[self]

    @classmethod
    def from_wire(cls, code: int) -> ChannelType | None:
        """Discord channel type code → ChannelType, None for threads/DMs/etc."""
        for kind, wire in _WIRE_TYPES.items():
            if wire == code:
                return kind
        return None


_TEXT_LIKE = frozenset({ChannelType.TEXT, ChannelType.ANNOUNCE, ChannelType.FORUM})
_VOICE_LIKE = frozenset({ChannelType.VOICE, ChannelType.STAGE})

_WIRE_TYPES = {
    ChannelType.TEXT: 0,
    ChannelType.VOICE: 2,
    ChannelType.CATEGORY: 4,
    ChannelType.ANNOUNCE: 5,
    ChannelType.STAGE: 13,
    ChannelType.FORUM: 15,
}


def _bits(value) -> str:
    """Normalise a permission mask to its decimal-string form."""
    text = str(value).strip()
    if not text.isdigit():
        raise ValueError(f"permission mask is not a decimal string: {value!r}")
    return str(int(text))


def _object(data, what: str) -> dict:
    if not isinstance(data, dict):
        raise ValueError(f"{what} is not an object: {data!r}")
    return data


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ServerMetadata:
    id: str
    name: str
    icon_url: str | None = None
    saved_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "guildId": self.id,
            "name": self.name,
            "iconURL": self.icon_url,
            "savedAt": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ServerMetadata:
        data = _object(data, "meta")
        return cls(
            id=str(data["guildId"]),
            name=str(data["name"]),
            icon_url=data.get("iconURL") or None,
            saved_at=str(data.get("savedAt") or ""),
        )


@dataclass(frozen=True)
class Role:
    id: str
    name: str
    color: int = 0
    hoist: bool = False
    position: int = 0
    mentionable: bool = False
    permissions: str = "0"  # decimal string of the 64-bit mask

    @property
    def permission_mask(self) -> int:
        return int(self.permissions)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "hoist": self.hoist,
            "position": self.position,
            "mentionable": self.mentionable,
            "permissions": self.permissions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Role:
        data = _object(data, "role")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            color=int(data.get("color") or 0),
            hoist=bool(data.get("hoist", False)),
            position=int(data.get("position") or 0),
            mentionable=bool(data.get("mentionable", False)),
            permissions=_bits(data.get("permissions", "0")),
        )


@dataclass(frozen=True)
class Overwrite:
    """A channel permission overwrite for one role.  Member overwrites are never stored."""

    principal_id: str
    allow: str = "0"
    deny: str = "0"

    def to_dict(self) -> dict:
        return {"principalId": self.principal_id, "allow": self.allow, "deny": self.deny}

    @classmethod
    def from_dict(cls, data: dict) -> Overwrite:
        data = _object(data, "overwrite")
        principal = data.get("principalId", data.get("id"))
        if principal is None:
            raise KeyError("principalId")
        return cls(
            principal_id=str(principal),
            allow=_bits(data.get("allow", "0")),
            deny=_bits(data.get("deny", "0")),
        )


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    type: ChannelType
    position: int = 0
    parent_id: str | None = None  # refers to a CATEGORY channel in the same snapshot
    rate_limit_per_user: int = 0
    nsfw: bool = False
    topic: str | None = None
    bitrate: int | None = None
    user_limit: int | None = None
    overwrites: tuple[Overwrite, ...] = ()

    def __post_init__(self):
        # "" and 0 both mean unset
        for name in ("topic", "bitrate", "user_limit"):
            if not getattr(self, name):
                object.__setattr__(self, name, None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.type.value,
            "parentId": self.parent_id,
            "position": self.position,
            "rateLimitPerUser": self.rate_limit_per_user,
            "nsfw": self.nsfw,
            "topic": self.topic,
            "bitrate": self.bitrate,
            "userLimit": self.user_limit,
            "overwrites": [ow.to_dict() for ow in self.overwrites],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Channel:
        data = _object(data, "channel")
        overwrites = data.get("overwrites") or []
        if not isinstance(overwrites, list):
            raise ValueError(f"overwrites of channel {data.get('id')} is not a list")
        parent = data.get("parentId")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            type=ChannelType(data["kind"]),
            position=int(data.get("position") or 0),
            parent_id=str(parent) if parent else None,
            rate_limit_per_user=int(data.get("rateLimitPerUser") or 0),
            nsfw=bool(data.get("nsfw", False)),
            topic=data.get("topic") or None,
            bitrate=int(data["bitrate"]) if data.get("bitrate") else None,
            user_limit=int(data["userLimit"]) if data.get("userLimit") else None,
            overwrites=tuple(Overwrite.from_dict(ow) for ow in overwrites),
        )


@dataclass(frozen=True)
class Snapshot:
    """
    A complete description of one server's structure at one point in time.
    Produced by SnapshotCollector, persisted by SnapshotStore, consumed by
    Restorer and Nuker.
    """

    meta: ServerMetadata | None = None
    roles: tuple[Role, ...] = ()
    channels: tuple[Channel, ...] = ()

    def default_role_id(self) -> str | None:
        """The @everyone role shares its id with the guild."""
        for role in self.roles:
            if (self.meta and role.id == self.meta.id) or role.name == "@everyone":
                return role.id
        return None

    def categories(self) -> list[Channel]:
        return sorted(
            (ch for ch in self.channels if ch.type.is_category),
            key=lambda ch: ch.position,
        )

    def other_channels(self) -> list[Channel]:
        return sorted(
            (ch for ch in self.channels if not ch.type.is_category),
            key=lambda ch: ch.position,
        )

    def channel(self, channel_id: str) -> Channel | None:
        for ch in self.channels:
            if ch.id == channel_id:
                return ch
        return None

    def summary(self) -> str:
        name = self.meta.name if self.meta else "unknown server"
        return (
            f"'{name}' — "
            f"{len(self.roles)} roles, "
            f"{len(self.categories())} categories, "
            f"{len(self.other_channels())} channels"
        )

    def to_dict(self) -> dict:
        return {
            "meta": self.meta.to_dict() if self.meta else None,
            "roles": [r.to_dict() for r in self.roles],
            "channels": [ch.to_dict() for ch in self.channels],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Snapshot:
        if not isinstance(data, dict):
            raise ValueError("snapshot root is not an object")
        roles = data.get("roles") or []
        channels = data.get("channels") or []
        if not isinstance(roles, list) or not isinstance(channels, list):
            raise ValueError("roles and channels must be lists")
        meta = data.get("meta")
        return cls(
            meta=ServerMetadata.from_dict(meta) if meta else None,
            roles=tuple(Role.from_dict(r) for r in roles),
            channels=tuple(Channel.from_dict(ch) for ch in channels),
        )
