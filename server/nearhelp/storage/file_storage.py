"""File-based storage implementations.

Documents are kept in memory and mirrored to disk as one JSON file per
collection: base_dir/<collection>.json. Each commit rewrites the touched
collection files through a temp file + rename, and only updates memory once
the disk write succeeded.

Location history is appended as JSON Lines: base_dir/YYYY/MM/DD/HH/locations.jsonl
"""

from __future__ import annotations

import copy
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from nearhelp.core.errors import StorageFailure
from nearhelp.storage.memory_storage import MemoryDocumentStore

if TYPE_CHECKING:
    from nearhelp.core.models import LocationHistoryRecord

log = structlog.get_logger()


class FileDocumentStore(MemoryDocumentStore):
    """DocumentStore persisted as JSON snapshots, one file per collection."""

    def __init__(self, base_dir: str | Path) -> None:
        super().__init__()
        self._base_dir = Path(base_dir)
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            self._load()
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageFailure(f"cannot open document store at {self._base_dir}: {exc}") from exc

    def _load(self) -> None:
        for path in sorted(self._base_dir.glob("*.json")):
            with open(path) as f:
                self._collections[path.stem] = json.load(f)
            log.info("collection_loaded", collection=path.stem,
                     documents=len(self._collections[path.stem]))

    def _write_collection(self, collection: str, docs: dict[str, dict]) -> None:
        path = self._base_dir / f"{collection}.json"
        tmp = path.with_suffix(".json.tmp")
        try:
            with open(tmp, "w") as f:
                json.dump(docs, f, separators=(",", ":"))
            os.replace(tmp, path)
        except OSError as exc:
            log.error("collection_write_failed", collection=collection, path=str(path))
            raise StorageFailure(f"cannot write {collection}: {exc}") from exc

    def _commit(self, writes: dict[tuple[str, str], dict]) -> None:
        touched = {collection for collection, _ in writes}
        staged = {c: dict(self._collections.get(c, {})) for c in touched}
        for (collection, key), doc in writes.items():
            staged[collection][key] = copy.deepcopy(doc)

        for collection in touched:
            self._write_collection(collection, staged[collection])
        self._collections.update(staged)


class FileLocationHistory:
    """LocationHistoryLog backed by date/hour partitioned files on disk."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _hour_dir(self, timestamp_ms: int) -> Path:
        """Return the directory for a given timestamp."""
        dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        path = self._base_dir / f"{dt.year:04d}" / f"{dt.month:02d}" / f"{dt.day:02d}" / f"{dt.hour:02d}"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _to_jsonl_entry(self, record: LocationHistoryRecord) -> str:
        dt = datetime.fromtimestamp(record.timestamp_ms / 1000, tz=timezone.utc)
        entry = {
            "user_id": record.user_id,
            "ts": dt.isoformat(),
            "timestamp_ms": record.timestamp_ms,
            "lat": record.location.lat,
            "lon": record.location.lon,
            "accuracy": record.accuracy,
        }
        return json.dumps(entry, separators=(",", ":"))

    async def append(self, record: LocationHistoryRecord) -> None:
        """Append a single location report to the hour's log."""
        try:
            hour_dir = self._hour_dir(record.timestamp_ms)
            jsonl_path = hour_dir / "locations.jsonl"
            with open(jsonl_path, "a") as f:
                f.write(self._to_jsonl_entry(record) + "\n")
        except OSError as exc:
            raise StorageFailure(f"cannot append location history: {exc}") from exc

        log.debug("location_history_written", user=record.user_id[-4:],
                  path=str(hour_dir))
