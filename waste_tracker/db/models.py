"""Dataclass models for stored waste records and vision analyses.

WasteEntry and WasteItem map 1:1 to the records in the JSON store. The
analysis classes describe what the vision collaborator reports for one photo;
WasteAnalysis.from_dict is the single place raw collaborator output is
defaulted and coerced.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _as_money(value: Any) -> float:
    """Coerce a value to a non-negative float, 0.0 when unusable."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if amount != amount or amount < 0:  # NaN or negative
        return 0.0
    return amount


def _as_optional_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class WasteItem:
    """A single food item identified within an entry."""

    id: Optional[int]
    waste_entry_id: Optional[int]
    name: str
    category: str = "unknown"
    estimated_amount: str = ""
    condition: str = "unknown"
    estimated_value: float = 0.0

    @classmethod
    def from_record(cls, data: dict) -> "WasteItem":
        return cls(
            id=_as_optional_int(data.get("id")),
            waste_entry_id=_as_optional_int(data.get("waste_entry_id")),
            name=_as_text(data.get("name")),
            category=_as_text(data.get("category"), "unknown"),
            estimated_amount=_as_text(data.get("estimated_amount")),
            condition=_as_text(data.get("condition"), "unknown"),
            estimated_value=_as_money(data.get("estimated_value")),
        )

    def to_api(self) -> dict:
        """Return the item as the presentation layer reads it (camelCase values)."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "estimatedAmount": self.estimated_amount,
            "condition": self.condition,
            "estimatedValue": self.estimated_value,
        }


@dataclass
class WasteEntry:
    """One logged waste event: a photograph plus the items found in it.

    total_estimated_value is None only before the store persists the entry;
    the store then fills it from the item sum. items is joined on reads and is
    never written inside the entry record.
    """

    id: Optional[int]
    image_path: str
    timestamp: str  # ISO-8601
    total_estimated_value: Optional[float] = None
    estimated_weight: str = ""
    notes: str = ""
    image_hash: str = ""
    duplicate_of_entry_id: Optional[int] = None
    consistency_note: str = ""
    created_at: Optional[str] = None
    items: list = field(default_factory=list)  # list[WasteItem]

    @classmethod
    def from_record(cls, data: dict) -> "WasteEntry":
        return cls(
            id=_as_optional_int(data.get("id")),
            image_path=_as_text(data.get("image_path")),
            timestamp=_as_text(data.get("timestamp")),
            total_estimated_value=_as_money(data.get("total_estimated_value")),
            estimated_weight=_as_text(data.get("estimated_weight")),
            notes=_as_text(data.get("notes")),
            image_hash=_as_text(data.get("image_hash")),
            duplicate_of_entry_id=_as_optional_int(data.get("duplicate_of_entry_id")),
            consistency_note=_as_text(data.get("consistency_note")),
            created_at=data.get("created_at") or None,
        )

    def to_record(self) -> dict:
        """Return the persisted form (no joined items)."""
        return {
            "id": self.id,
            "image_path": self.image_path,
            "timestamp": self.timestamp,
            "total_estimated_value": self.total_estimated_value,
            "estimated_weight": self.estimated_weight,
            "notes": self.notes,
            "image_hash": self.image_hash,
            "duplicate_of_entry_id": self.duplicate_of_entry_id,
            "consistency_note": self.consistency_note,
            "created_at": self.created_at,
        }

    def to_api(self) -> dict:
        """Return the stored row with its joined items in API form."""
        return {**self.to_record(), "items": [i.to_api() for i in self.items]}


@dataclass
class AnalyzedItem:
    """A food item as reported by the vision collaborator, before storage."""

    name: str
    category: str = "unknown"
    estimated_amount: str = ""
    condition: str = "unknown"
    estimated_value: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyzedItem":
        return cls(
            name=_as_text(data.get("name"), "Unknown item"),
            category=_as_text(data.get("category"), "unknown"),
            estimated_amount=_as_text(data.get("estimatedAmount", data.get("estimated_amount"))),
            condition=_as_text(data.get("condition"), "unknown"),
            estimated_value=_as_money(data.get("estimatedValue", data.get("estimated_value"))),
        )

    def to_api(self) -> dict:
        return {
            "name": self.name,
            "category": self.category,
            "estimatedAmount": self.estimated_amount,
            "condition": self.condition,
            "estimatedValue": self.estimated_value,
        }


@dataclass
class EstimatedWaste:
    weight: str = "unknown"
    percentage: str = "unknown"


@dataclass
class WasteAnalysis:
    """Structured result of analysing one photo of food waste.

    confidence is clamped to [0, 1]. total_estimated_value holds the
    collaborator's own figure until reconciliation replaces it.
    """

    items: list = field(default_factory=list)  # list[AnalyzedItem]
    total_estimated_value: float = 0.0
    estimated_waste: EstimatedWaste = field(default_factory=EstimatedWaste)
    confidence: Optional[float] = None
    uncertainty_disclaimer: str = ""
    needs_better_photo: bool = False
    reasons_uncertain: list = field(default_factory=list)  # list[str]
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "WasteAnalysis":
        if not isinstance(data, dict):
            data = {}

        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raw_items = []
        items = [AnalyzedItem.from_dict(i) for i in raw_items if isinstance(i, dict)]

        total = data.get("totalEstimatedValue")
        if isinstance(total, (int, float)) and not isinstance(total, bool):
            total = _as_money(total)
        else:
            total = sum(i.estimated_value for i in items)

        waste = data.get("estimatedWaste")
        if not isinstance(waste, dict):
            waste = {}

        confidence = data.get("confidence")
        try:
            confidence = min(1.0, max(0.0, float(confidence)))
        except (TypeError, ValueError):
            confidence = None

        reasons = data.get("reasonsUncertain")
        if not isinstance(reasons, list):
            reasons = []

        return cls(
            items=items,
            total_estimated_value=total,
            estimated_waste=EstimatedWaste(
                weight=_as_text(waste.get("weight"), "unknown"),
                percentage=_as_text(waste.get("percentage"), "unknown"),
            ),
            confidence=confidence,
            uncertainty_disclaimer=_as_text(data.get("uncertaintyDisclaimer")),
            needs_better_photo=bool(data.get("needsBetterPhoto", False)),
            reasons_uncertain=[str(r) for r in reasons if r],
            notes=_as_text(data.get("notes")),
        )

    def to_api(self) -> dict:
        """Return the analysis under the same keys the collaborator reports them."""
        return {
            "items": [i.to_api() for i in self.items],
            "totalEstimatedValue": self.total_estimated_value,
            "estimatedWaste": {
                "weight": self.estimated_waste.weight,
                "percentage": self.estimated_waste.percentage,
            },
            "confidence": self.confidence,
            "uncertaintyDisclaimer": self.uncertainty_disclaimer,
            "needsBetterPhoto": self.needs_better_photo,
            "reasonsUncertain": list(self.reasons_uncertain),
            "notes": self.notes,
        }


@dataclass
class Suggestion:
    """A prioritized waste-reduction recommendation."""

    type: str  # portion_adjustment, menu_change, trend_alert, best_practice
    priority: str  # high, medium, low
    title: str
    description: str
    estimated_savings: Optional[str] = None

    def to_api(self) -> dict:
        data = {
            "type": self.type,
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
        }
        if self.estimated_savings is not None:
            data["estimatedSavings"] = self.estimated_savings
        return data
