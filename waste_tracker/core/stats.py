"""Waste statistics: totals, most-wasted items, a 30-day trend and categories.

compute_stats is a pure function of the store contents and is recomputed on
every call. The returned dict is the JSON shape served by /api/waste-stats.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from waste_tracker.db.database import parse_timestamp
from waste_tracker.db.models import WasteEntry, WasteItem

TREND_WINDOW_DAYS = 30
TOP_ITEMS_LIMIT = 10


def _overall(entries: list[WasteEntry]) -> dict:
    total_value = sum(e.total_estimated_value or 0 for e in entries)
    return {
        "total_entries": len(entries),
        "total_value": total_value,
        "avg_value": total_value / len(entries) if entries else 0,
    }


def _top_items(items: list[WasteItem]) -> list[dict]:
    """Group items by exact name, most frequent first."""
    groups: dict[str, dict] = {}
    for item in items:
        group = groups.setdefault(item.name, {
            "name": item.name,
            "category": item.category or "unknown",
            "frequency": 0,
            "total_value": 0.0,
        })
        group["frequency"] += 1
        group["total_value"] += item.estimated_value or 0

    ranked = sorted(groups.values(), key=lambda g: g["frequency"], reverse=True)
    return [
        {**g, "avg_value": g["total_value"] / g["frequency"]}
        for g in ranked[:TOP_ITEMS_LIMIT]
    ]


def _daily(entries: list[WasteEntry], now: datetime) -> list[dict]:
    """Bucket entries from the last 30 days by the calendar date of their timestamp."""
    cutoff = now - timedelta(days=TREND_WINDOW_DAYS)
    days: dict[str, dict] = {}
    for entry in entries:
        ts = parse_timestamp(entry.timestamp)
        if ts is None or ts < cutoff:
            continue
        key = ts.date().isoformat()
        bucket = days.setdefault(key, {"date": key, "entries": 0, "total_value": 0.0})
        bucket["entries"] += 1
        bucket["total_value"] += entry.total_estimated_value or 0
    return sorted(days.values(), key=lambda d: d["date"], reverse=True)


def _categories(items: list[WasteItem]) -> list[dict]:
    groups: dict[str, dict] = {}
    for item in items:
        category = item.category or "unknown"
        group = groups.setdefault(category, {"category": category, "frequency": 0, "total_value": 0.0})
        group["frequency"] += 1
        group["total_value"] += item.estimated_value or 0
    return sorted(groups.values(), key=lambda g: g["total_value"], reverse=True)


def compute_stats(
    entries: list[WasteEntry], items: list[WasteItem], now: Optional[datetime] = None
) -> dict:
    """Build the statistics snapshot for the given entries and items."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return {
        "overall": _overall(entries),
        "topItems": _top_items(items),
        "dailyStats": _daily(entries, now),
        "categoryStats": _categories(items),
    }
