"""Ingestion: photo in, reconciled and persisted waste entry out.

The vision collaborator is passed in as a callable
``analyze(image_bytes, media_type) -> dict`` so the HTTP layer can inject the
Claude client and tests can inject a stub. The collaborator call happens
before anything is written: the photo is saved only once the analysis
succeeds, and removed again if the store append fails. Only the final append
takes the store's lock.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from waste_tracker.config import get_max_upload_bytes
from waste_tracker.core.reconcile import reconcile
from waste_tracker.core.uploads import content_hash, guess_media_type, remove_upload, save_upload
from waste_tracker.db.database import WasteStore
from waste_tracker.db.models import WasteAnalysis, WasteEntry, WasteItem
from waste_tracker.errors import CollaboratorError, PersistenceError, UpstreamUnavailableError, ValidationError

logger = logging.getLogger("waste_tracker.ingest")

Analyzer = Callable[[bytes, str], dict]


@dataclass
class IngestResult:
    analysis: WasteAnalysis
    entry: WasteEntry


def validate_image(image_bytes: bytes, max_bytes: int = None) -> None:
    """Raise ValidationError for a missing, empty or oversized image."""
    if not image_bytes:
        raise ValidationError("No image file provided")
    limit = max_bytes if max_bytes is not None else get_max_upload_bytes()
    if len(image_bytes) > limit:
        raise ValidationError(
            f"Image is too large ({len(image_bytes)} bytes, limit {limit})",
            details={"size": len(image_bytes), "limit": limit},
        )


def _call_collaborator(analyze: Analyzer, image_bytes: bytes, media_type: str) -> dict:
    try:
        return analyze(image_bytes, media_type)
    except CollaboratorError:
        raise
    except Exception as e:
        logger.exception("Vision collaborator raised an unexpected error")
        raise UpstreamUnavailableError(f"AI analysis failed: {e}") from e


def ingest(
    store: WasteStore,
    image_bytes: bytes,
    analyze: Analyzer,
    filename: str = None,
    media_type: str = None,
    upload_dir: Path = None,
    now: Optional[datetime] = None,
) -> IngestResult:
    """Analyse a photo, align it with any earlier upload of the same image, and log it."""
    validate_image(image_bytes)
    image_hash = content_hash(image_bytes)
    media_type = media_type or guess_media_type(filename)

    analysis = WasteAnalysis.from_dict(_call_collaborator(analyze, image_bytes, media_type))
    image_path = save_upload(image_bytes, filename, upload_dir)

    prior = store.find_most_recent_by_hash(image_hash)
    result = reconcile(analysis.items, prior)
    analysis.items = result.items
    analysis.total_estimated_value = result.total

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    entry = WasteEntry(
        id=None,
        image_path=image_path,
        timestamp=timestamp,
        total_estimated_value=result.total,
        estimated_weight=analysis.estimated_waste.weight,
        notes=" ".join(n for n in (analysis.notes, result.consistency_note) if n).strip(),
        image_hash=image_hash,
        duplicate_of_entry_id=result.duplicate_of_entry_id,
        consistency_note=result.consistency_note,
    )
    items = [
        WasteItem(
            id=None,
            waste_entry_id=None,
            name=item.name,
            category=item.category,
            estimated_amount=item.estimated_amount,
            condition=item.condition,
            estimated_value=item.estimated_value,
        )
        for item in result.items
    ]
    try:
        saved = store.append(entry, items)
    except PersistenceError:
        remove_upload(image_path, upload_dir)
        raise

    logger.info(
        "Logged waste entry #%s hash=%s total=%.2f items=%d duplicate_of=%s",
        saved.id, image_hash[:12], saved.total_estimated_value, len(saved.items),
        saved.duplicate_of_entry_id,
    )
    return IngestResult(analysis=analysis, entry=saved)
