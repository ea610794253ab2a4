"""
errors.py
─────────
Exceptions raised by the backup / restore engine.

FetchError, CorruptSnapshotError, MissingPermissionsError and
ConfigMissingError end the operation they happen in.  RateLimitError and
PerItemCreateError concern a single role or channel and are logged by the
restorer, which then moves on.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base class for everything this tool raises on purpose."""


class FetchError(BackupError):
    """Reading the live server structure failed."""


class CorruptSnapshotError(BackupError):
    """A snapshot file exists but cannot be parsed."""

    def __init__(self, path, reason: str):
        super().__init__(f"corrupt snapshot {path}: {reason}")
        self.path = path
        self.reason = reason


class RateLimitError(BackupError):
    """A single call stayed rate-limited through every retry."""

    def __init__(self, label: str, attempts: int):
        super().__init__(f"{label}: still rate-limited after {attempts} attempts")
        self.label = label
        self.attempts = attempts


class PerItemCreateError(BackupError):
    """Creating, deleting or updating one entity failed."""

    def __init__(self, label: str, reason: str = ""):
        super().__init__(f"{label}: {reason}" if reason else label)
        self.label = label
        self.reason = reason


class ConfigMissingError(BackupError):
    """A required credential or setting is absent."""

    def __init__(self, key: str):
        super().__init__(f"missing required setting: {key}")
        self.key = key


class MissingPermissionsError(BackupError):
    """The bot lacks server permissions an operation needs; nothing was changed."""

    def __init__(self, missing: list[str]):
        super().__init__("bot is missing permissions: " + ", ".join(missing))
        self.missing = list(missing)


# ── platform signals (raised by adapters, interpreted by the gateway) ─────────


class PlatformError(Exception):
    def __init__(self, status: int, method: str, path: str, detail: str = ""):
        super().__init__(f"HTTP {status} on {method.upper()} {path}" + (f": {detail}" if detail else ""))
        self.status = status
        self.method = method
        self.path = path
        self.detail = detail


class TooManyRequests(PlatformError):
    def __init__(self, method: str = "", path: str = "", retry_after: float = 0.0):
        super().__init__(429, method or "?", path or "?", f"retry after {retry_after:.2f}s")
        self.retry_after = retry_after
