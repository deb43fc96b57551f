from fastapi import APIRouter, Depends

from app.dependencies import get_store
from waste_tracker.core.stats import compute_stats
from waste_tracker.core.suggestions import RECENT_ENTRY_COUNT, suggest_from_recent, suggest_from_stats
from waste_tracker.db.database import WasteStore

router = APIRouter(prefix="/api", tags=["insights"])


@router.get("/waste-stats")
def waste_stats(store: WasteStore = Depends(get_store)):
    entries, items = store.snapshot()
    return compute_stats(entries, items)


@router.get("/suggestions")
def suggestions(store: WasteStore = Depends(get_store)):
    entries, items = store.snapshot()
    return [s.to_api() for s in suggest_from_stats(compute_stats(entries, items))]


@router.get("/suggestions/recent")
def recent_suggestions(store: WasteStore = Depends(get_store)):
    entries = store.list_entries(limit=RECENT_ENTRY_COUNT)
    return [s.to_api() for s in suggest_from_recent(entries)]
