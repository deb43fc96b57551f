from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.dependencies import get_store
from waste_tracker.db.database import WasteStore

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health(store: WasteStore = Depends(get_store)):
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store_warning": store.load_warning,
    }
