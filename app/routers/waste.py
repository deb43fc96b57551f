from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from app.dependencies import get_analyzer, get_store
from waste_tracker.config import get_max_upload_bytes
from waste_tracker.core.ingest import Analyzer, ingest
from waste_tracker.db.database import WasteStore, parse_timestamp
from waste_tracker.errors import ValidationError

router = APIRouter(prefix="/api", tags=["waste"])


def _parse_bound(value: Optional[str], name: str, end: bool = False) -> Optional[datetime]:
    """Parse a startDate/endDate query value. A bare endDate covers the whole day."""
    if not value:
        return None
    try:
        day = date.fromisoformat(value.strip())
    except ValueError:
        day = None
    if day is not None:
        if end:
            return parse_timestamp(datetime.combine(day + timedelta(days=1), time.min)) - timedelta(microseconds=1)
        return parse_timestamp(day)
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationError(f"Invalid {name}: {value!r}", details={name: value})
    return parsed


@router.post("/analyze-waste")
def analyze_waste(
    image: Optional[UploadFile] = File(None),
    store: WasteStore = Depends(get_store),
    analyze: Analyzer = Depends(get_analyzer),
):
    if image is None:
        raise ValidationError("No image file provided")
    if not (image.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed", details={"content_type": image.content_type})
    # Read one byte past the limit so oversized uploads are detected without buffering them whole.
    data = image.file.read(get_max_upload_bytes() + 1)
    result = ingest(store, data, analyze, filename=image.filename, media_type=image.content_type)
    return {
        "success": True,
        "analysis": result.analysis.to_api(),
        "wasteEntry": result.entry.to_api(),
    }


@router.get("/waste-history")
def waste_history(
    limit: int = Query(50, ge=1, le=1000),
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    store: WasteStore = Depends(get_store),
):
    entries = store.list_entries(
        limit=limit,
        start=_parse_bound(startDate, "startDate"),
        end=_parse_bound(endDate, "endDate", end=True),
    )
    return [e.to_api() for e in entries]


@router.delete("/waste-history/{entry_id}")
def delete_entry(entry_id: int, store: WasteStore = Depends(get_store)):
    return store.delete(entry_id)


@router.delete("/waste-history")
def clear_history(store: WasteStore = Depends(get_store)):
    return store.clear_all()
