"""
store.py
────────
One JSON snapshot file per server: {base_dir}/{server_id}.json

Saving replaces whatever was there.  There is no locking; only one writer
per server id may run at a time.
"""

from __future__ import annotations
import json
import logging
from pathlib import Path

from errors import CorruptSnapshotError
from models import Snapshot

log = logging.getLogger("guild_backup.store")


class SnapshotStore:
    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def path_for(self, server_id: str) -> Path:
        return self.base_dir / f"{server_id}.json"

    def exists(self, server_id: str) -> bool:
        return self.path_for(server_id).is_file()

    def save(self, server_id: str, snapshot: Snapshot) -> Path:
        path = self.path_for(server_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")
        log.info("saved snapshot of %s to %s", server_id, path)
        return path

    def load(self, server_id: str) -> Snapshot | None:
        path = self.path_for(server_id)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Snapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CorruptSnapshotError(path, str(exc)) from exc
