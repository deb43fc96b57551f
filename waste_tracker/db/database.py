"""JSON-file store for waste entries and their items.

Provides a single-file store at ~/.waste_tracker/waste.json. The whole image
({"entries", "items", "nextEntryId", "nextItemId"}) is held in memory and
rewritten on every mutation:

- Mutations are serialized by one lock. Each builds a new snapshot, writes it
  to a temp file beside the store, fsyncs and renames it into place, and only
  then swaps the in-memory snapshot. A failed write leaves memory and ids
  exactly as they were.
- Reads grab the current snapshot reference once and never lock, so they see
  either the state before or after a mutation, never a mix.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Optional

from waste_tracker.db.models import WasteEntry, WasteItem
from waste_tracker.errors import NotFoundError, PersistenceError

logger = logging.getLogger("waste_tracker.store")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def get_db_path() -> Path:
    """Return the active store path.

    Priority order:
    1. DB_PATH environment variable (used by Docker / tests)
    2. Default ~/.waste_tracker/waste.json
    """
    env_path = os.environ.get("DB_PATH")
    if env_path:
        p = Path(env_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    db_dir = Path.home() / ".waste_tracker"
    db_dir.mkdir(exist_ok=True)
    return db_dir / "waste.json"


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _recency_key(entry: WasteEntry) -> tuple:
    """Sort key: newest timestamp first when reversed, highest id breaks ties."""
    return (parse_timestamp(entry.timestamp) or _EPOCH, entry.id or 0)


@dataclass(frozen=True)
class _Snapshot:
    """One consistent state of the store. Never mutated after construction."""

    entries: dict = field(default_factory=dict)  # id -> WasteEntry
    items: dict = field(default_factory=dict)  # id -> WasteItem
    items_by_entry: dict = field(default_factory=dict)  # entry id -> tuple[item id]
    hash_index: dict = field(default_factory=dict)  # image_hash -> entry id
    next_entry_id: int = 1
    next_item_id: int = 1

    def to_image(self) -> dict:
        return {
            "entries": [e.to_record() for e in self.entries.values()],
            "items": [_item_record(i) for i in self.items.values()],
            "nextEntryId": self.next_entry_id,
            "nextItemId": self.next_item_id,
        }

    def joined(self, entry: WasteEntry) -> WasteEntry:
        """Return a copy of entry with its items attached."""
        item_ids = self.items_by_entry.get(entry.id, ())
        return replace(entry, items=[replace(self.items[i]) for i in item_ids])


def _item_record(item: WasteItem) -> dict:
    return {
        "id": item.id,
        "waste_entry_id": item.waste_entry_id,
        "name": item.name,
        "category": item.category,
        "estimated_amount": item.estimated_amount,
        "condition": item.condition,
        "estimated_value": item.estimated_value,
    }


def _index_hashes(entries: dict) -> dict:
    index = {}
    for entry in entries.values():
        if not entry.image_hash:
            continue
        current = index.get(entry.image_hash)
        if current is None or _recency_key(entry) > _recency_key(entries[current]):
            index[entry.image_hash] = entry.id
    return index


def _snapshot_from_image(data: dict) -> _Snapshot:
    """Build a snapshot from a parsed store file, tolerating missing counters."""
    if not isinstance(data, dict):
        raise ValueError("store root is not an object")
    entries = {}
    for record in data.get("entries") or []:
        entry = WasteEntry.from_record(record)
        if entry.id is not None:
            entries[entry.id] = entry
    items = {}
    items_by_entry: dict = {}
    for record in data.get("items") or []:
        item = WasteItem.from_record(record)
        # Items whose entry is gone are dropped so the cascade invariant holds.
        if item.id is None or item.waste_entry_id not in entries:
            continue
        items[item.id] = item
        items_by_entry.setdefault(item.waste_entry_id, []).append(item.id)

    next_entry_id = data.get("nextEntryId") or max(entries, default=0) + 1
    next_item_id = data.get("nextItemId") or max(items, default=0) + 1
    return _Snapshot(
        entries=entries,
        items=items,
        items_by_entry={k: tuple(v) for k, v in items_by_entry.items()},
        hash_index=_index_hashes(entries),
        next_entry_id=max(int(next_entry_id), max(entries, default=0) + 1),
        next_item_id=max(int(next_item_id), max(items, default=0) + 1),
    )


class WasteStore:
    """Owned aggregate of waste entries and items backed by one JSON file."""

    def __init__(self, path: Path = None):
        self.path = Path(path) if path is not None else get_db_path()
        self.load_warning: Optional[str] = None
        self._lock = threading.Lock()
        self._state = self._load()

    # ── Loading & writing ─────────────────────────────────────────────────────

    def _load(self) -> _Snapshot:
        if not self.path.exists():
            return _Snapshot()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return _snapshot_from_image(json.load(f))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            # json.JSONDecodeError is a ValueError
            self.load_warning = f"Store file {self.path} could not be read ({e}); starting empty."
            logger.error(self.load_warning)
            return _Snapshot()

    def _write(self, state: _Snapshot) -> None:
        """Atomically replace the store file with state's image."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state.to_image(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error("Failed to write store %s: %s", self.path, e)
            raise PersistenceError(
                "Failed to save waste data", details={"path": str(self.path)}
            ) from e

    def _commit(self, state: _Snapshot) -> None:
        self._write(state)
        self._state = state

    # ── Reads ─────────────────────────────────────────────────────────────────

    def snapshot(self) -> tuple[list[WasteEntry], list[WasteItem]]:
        """Return (entries, items) from one consistent state, in insertion order."""
        state = self._state
        return (
            [replace(e, items=[]) for e in state.entries.values()],
            [replace(i) for i in state.items.values()],
        )

    def get(self, entry_id: int) -> Optional[WasteEntry]:
        """Return one entry with its items, or None if not found."""
        state = self._state
        entry = state.entries.get(entry_id)
        return state.joined(entry) if entry else None

    def list_entries(self, limit: int = 50, start=None, end=None) -> list[WasteEntry]:
        """Return entries with items, newest first, optionally bounded in time.

        start and end are datetimes (or ISO strings) and are both inclusive.
        """
        state = self._state
        start_dt = parse_timestamp(start) if start is not None else None
        end_dt = parse_timestamp(end) if end is not None else None

        entries = list(state.entries.values())
        if start_dt or end_dt:
            kept = []
            for entry in entries:
                ts = parse_timestamp(entry.timestamp)
                if ts is None:
                    continue
                if start_dt and ts < start_dt:
                    continue
                if end_dt and ts > end_dt:
                    continue
                kept.append(entry)
            entries = kept
        entries.sort(key=_recency_key, reverse=True)
        if limit is not None:
            entries = entries[:max(0, limit)]
        return [state.joined(e) for e in entries]

    def find_most_recent_by_hash(self, image_hash: str) -> Optional[WasteEntry]:
        """Return the newest entry recorded for image_hash, with its items."""
        if not image_hash:
            return None
        state = self._state
        entry_id = state.hash_index.get(image_hash)
        if entry_id is None:
            return None
        return state.joined(state.entries[entry_id])

    # ── Mutations ─────────────────────────────────────────────────────────────

    def append(self, entry: WasteEntry, items: list[WasteItem]) -> WasteEntry:
        """Persist a new entry and its items; return the entry with assigned ids.

        entry.total_estimated_value is kept when set (a reconciled total),
        otherwise it is the sum of the item values.
        """
        with self._lock:
            state = self._state
            entry_id = state.next_entry_id
            next_item_id = state.next_item_id

            new_items = {}
            for item in items:
                new_items[next_item_id] = replace(
                    item,
                    id=next_item_id,
                    waste_entry_id=entry_id,
                    category=item.category or "unknown",
                    condition=item.condition or "unknown",
                    estimated_value=item.estimated_value or 0.0,
                )
                next_item_id += 1

            total = entry.total_estimated_value
            if total is None:
                total = sum(i.estimated_value for i in new_items.values())
            saved = replace(
                entry,
                id=entry_id,
                total_estimated_value=total,
                created_at=datetime.now(timezone.utc).isoformat(),
                items=[],
            )

            entries = {**state.entries, entry_id: saved}
            hash_index = dict(state.hash_index)
            if saved.image_hash:
                current = hash_index.get(saved.image_hash)
                if current is None or _recency_key(saved) > _recency_key(entries[current]):
                    hash_index[saved.image_hash] = entry_id

            new_state = _Snapshot(
                entries=entries,
                items={**state.items, **new_items},
                items_by_entry={**state.items_by_entry, entry_id: tuple(new_items)},
                hash_index=hash_index,
                next_entry_id=entry_id + 1,
                next_item_id=next_item_id,
            )
            self._commit(new_state)
            return new_state.joined(saved)

    def delete(self, entry_id: int) -> dict:
        """Delete an entry and all its items. Raises NotFoundError if absent."""
        with self._lock:
            state = self._state
            entry = state.entries.get(entry_id)
            if entry is None:
                raise NotFoundError(f"Entry #{entry_id} not found", details={"id": entry_id})

            entries = {k: v for k, v in state.entries.items() if k != entry_id}
            doomed = set(state.items_by_entry.get(entry_id, ()))
            items = {k: v for k, v in state.items.items() if k not in doomed}
            items_by_entry = {k: v for k, v in state.items_by_entry.items() if k != entry_id}

            hash_index = dict(state.hash_index)
            if entry.image_hash and hash_index.get(entry.image_hash) == entry_id:
                same_hash = {k: v for k, v in entries.items() if v.image_hash == entry.image_hash}
                hash_index.pop(entry.image_hash)
                hash_index.update(_index_hashes(same_hash))

            self._commit(replace(
                state,
                entries=entries,
                items=items,
                items_by_entry=items_by_entry,
                hash_index=hash_index,
            ))
        logger.info("Deleted entry #%s with %d item(s)", entry_id, len(doomed))
        return {"success": True, "message": f"Entry #{entry_id} deleted"}

    def clear_all(self) -> dict:
        """Remove every entry and item and reset both id counters."""
        with self._lock:
            self._commit(_Snapshot())
        logger.info("Cleared all waste data")
        return {"success": True, "message": "All waste data cleared"}
