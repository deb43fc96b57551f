"""Consistency reconciliation for repeated photos of the same waste.

When an uploaded image has the same content hash as an earlier entry, the
new analysis is aligned with that entry so re-uploads and repeat shots do not
add spurious variance to the statistics:

- item values are copied from prior items with the same name (case-insensitive);
- the prior total is reused verbatim when it is positive, with a note citing
  the prior entry.

Otherwise the total is the item sum rounded to the nearest $0.10.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Optional

from waste_tracker.db.models import AnalyzedItem, WasteEntry


@dataclass
class Reconciliation:
    items: list = field(default_factory=list)  # list[AnalyzedItem]
    total: float = 0.0
    consistency_note: str = ""
    duplicate_of_entry_id: Optional[int] = None


def round_to_dime(amount: float) -> float:
    """Round half-up to the nearest $0.10 (7.03 -> 7.0, 7.06 -> 7.1, 0.25 -> 0.3)."""
    return math.floor(amount * 10 + 0.5) / 10


def _item_sum(items: list) -> float:
    return sum(item.estimated_value or 0 for item in items)


def reconcile(items: list[AnalyzedItem], prior: Optional[WasteEntry] = None) -> Reconciliation:
    """Align a fresh analysis with the prior entry for the same image, if any."""
    if prior is None:
        return Reconciliation(items=list(items), total=round_to_dime(_item_sum(items)))

    prior_by_name = {}
    for prior_item in prior.items or []:
        prior_by_name[(prior_item.name or "").lower()] = prior_item

    aligned = []
    for item in items:
        match = prior_by_name.get((item.name or "").lower())
        if match is not None and match.estimated_value is not None:
            item = replace(item, estimated_value=match.estimated_value)
        aligned.append(item)

    prior_total = prior.total_estimated_value or 0
    if prior_total > 0:
        return Reconciliation(
            items=aligned,
            total=prior_total,
            consistency_note=f"Values aligned with duplicate of entry #{prior.id} for consistency.",
            duplicate_of_entry_id=prior.id,
        )
    return Reconciliation(
        items=aligned,
        total=round_to_dime(_item_sum(aligned)),
        duplicate_of_entry_id=prior.id,
    )
