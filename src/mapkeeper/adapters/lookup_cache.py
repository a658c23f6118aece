"""Durable cache of remote beatmap lookups, shared across runs.

Entries map an online beatmap id to the record the remote returned, or to ``None``
when the remote did not know the id. The first write for an id wins; an id that is
present is never asked for again.
"""

from __future__ import annotations

import os
import tempfile
import threading
from logging import getLogger
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from mapkeeper.domain.model import RemoteBeatmap

log = getLogger(__name__)

_ENTRIES_ADAPTER: TypeAdapter[dict[int, RemoteBeatmap | None]] = TypeAdapter(
    dict[int, RemoteBeatmap | None]
)


class LookupCache:
    """Thread-safe keyed cache with a JSON file behind it."""

    def __init__(self, path: Path | str | None = None, *, autoload: bool = True) -> None:
        self._path = Path(path) if path is not None else None
        self._entries: dict[int, RemoteBeatmap | None] = {}
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        if autoload:
            self.load()

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, beatmap_id: object) -> bool:
        with self._lock:
            return beatmap_id in self._entries

    def contains(self, beatmap_id: int) -> bool:
        return beatmap_id in self

    def try_get(self, beatmap_id: int) -> tuple[RemoteBeatmap | None, bool]:
        """Return ``(record, found)``; a found ``None`` record is the not-found sentinel."""

        with self._lock:
            if beatmap_id not in self._entries:
                return None, False
            return self._entries[beatmap_id], True

    def put(self, beatmap_id: int, record: RemoteBeatmap | None) -> bool:
        """Store ``record`` unless the id is already present. Return whether it was stored."""

        with self._lock:
            if beatmap_id in self._entries:
                return False
            self._entries[beatmap_id] = record
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def load(self) -> None:
        """Merge the durable file into memory; problems leave the cache as it was."""

        if self._path is None:
            return
        if not self._path.exists():
            log.warning("No lookup cache at %s, starting empty", self._path)
            return
        try:
            loaded = _ENTRIES_ADAPTER.validate_json(self._path.read_bytes())
        except (OSError, ValidationError) as exc:
            log.warning("Failed to load lookup cache %s, starting empty: %s", self._path, exc)
            return

        with self._lock:
            for beatmap_id, record in loaded.items():
                self._entries.setdefault(beatmap_id, record)
        log.info("Lookup cache contains %s beatmaps", len(loaded))

    def save(self) -> None:
        """Overwrite the durable file with the current entries."""

        if self._path is None:
            return
        with self._lock:
            entries = dict(self._entries)

        with self._save_lock:
            tmp_path: Path | None = None
            try:
                payload = _ENTRIES_ADAPTER.dump_json(entries)
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self._path.name}.", dir=self._path.parent
                )
                tmp_path = Path(tmp_name)
                with os.fdopen(fd, "wb") as handle:
                    handle.write(payload)
                tmp_path.replace(self._path)
            except OSError as exc:
                if tmp_path is not None:
                    tmp_path.unlink(missing_ok=True)
                log.warning("Failed to save lookup cache %s: %s", self._path, exc)
                return
        log.debug("Saved %s lookup cache entries to %s", len(entries), self._path)
