"""Rule-based waste-reduction suggestions.

Two separate strategies with different rules:

- suggest_from_stats works on the full statistics snapshot (top items,
  categories, the 30-day daily trend) and always ends with a general
  best-practice tip. Results are ordered high > medium > low.
- suggest_from_recent looks only at the three most recent entries and needs
  all three to say anything. Results keep emission order.
"""

from waste_tracker.db.models import Suggestion, WasteEntry

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

PORTION_MIN_FREQUENCY = 5
CATEGORY_MIN_FREQUENCY = 10
CATEGORY_MIN_VALUE = 50
CATEGORY_SAVINGS_RATE = 0.3
TREND_RATIO = 1.2
TREND_RECENT_DAYS = 3

RECENT_ENTRY_COUNT = 3
SPOILAGE_KEYWORDS = ("spoiled", "expired", "stale")


def _money(amount: float) -> str:
    return f"${amount:.2f}"


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0.0


def suggest_from_stats(stats: dict) -> list[Suggestion]:
    """Apply the aggregate threshold rules to a statistics snapshot."""
    suggestions = []

    top_items = stats.get("topItems") or []
    if top_items and top_items[0].get("frequency", 0) >= PORTION_MIN_FREQUENCY:
        top = top_items[0]
        suggestions.append(Suggestion(
            type="portion_adjustment",
            priority="high",
            title=f"Consider reducing portions for {top['name']}",
            description=(
                f"{top['name']} is being wasted frequently ({top['frequency']} times). "
                "Consider reducing portion sizes or offering half-portion options."
            ),
            estimated_savings=f"{_money(top.get('total_value', 0))} per period",
        ))

    for cat in stats.get("categoryStats") or []:
        if cat.get("frequency", 0) >= CATEGORY_MIN_FREQUENCY and cat.get("total_value", 0) > CATEGORY_MIN_VALUE:
            suggestions.append(Suggestion(
                type="menu_change",
                priority="medium",
                title=f"Review menu items in {cat['category']} category",
                description=(
                    f"{cat['category']} items account for {_money(cat['total_value'])} in waste. "
                    "Consider menu rotation or recipe adjustments."
                ),
                estimated_savings=f"Up to {_money(cat['total_value'] * CATEGORY_SAVINGS_RATE)} per period",
            ))

    daily = stats.get("dailyStats") or []
    if daily:
        all_time_avg = _mean([d.get("total_value", 0) for d in daily])
        recent_avg = _mean([d.get("total_value", 0) for d in daily[:TREND_RECENT_DAYS]])
        if all_time_avg > 0 and recent_avg > all_time_avg * TREND_RATIO:
            increase = (recent_avg / all_time_avg - 1) * 100
            suggestions.append(Suggestion(
                type="trend_alert",
                priority="high",
                title="Recent increase in food waste detected",
                description=(
                    f"Waste has increased {increase:.0f}% in recent days. "
                    "Review recent menu changes or preparation methods."
                ),
                estimated_savings="Monitor and adjust",
            ))

    suggestions.append(Suggestion(
        type="best_practice",
        priority="low",
        title="Prevent food waste best practices",
        description=(
            "Consider: 1) Pre-ordering systems to reduce over-preparation, "
            "2) Flexible portion sizes, 3) Daily specials for items nearing expiration, "
            "4) Staff training on portion control, 5) Regular inventory rotation"
        ),
        estimated_savings="Long-term improvement",
    ))

    return sorted(suggestions, key=lambda s: PRIORITY_ORDER[s.priority], reverse=True)


def suggest_from_recent(entries: list[WasteEntry]) -> list[Suggestion]:
    """Apply the last-three-entries rules. Returns [] with fewer than three entries."""
    if len(entries) < RECENT_ENTRY_COUNT:
        return []
    entries = entries[:RECENT_ENTRY_COUNT]

    totals: dict[str, dict] = {}
    conditions: dict[str, set] = {}
    recent_value = 0.0
    for entry in entries:
        recent_value += entry.total_estimated_value or 0
        for item in entry.items or []:
            display = item.name or "Unknown item"
            key = display.lower()
            group = totals.setdefault(key, {"name": display, "count": 0, "total_value": 0.0})
            group["count"] += 1
            group["total_value"] += item.estimated_value or 0
            seen = conditions.setdefault(key, set())
            if item.condition:
                seen.add(item.condition.lower())

    suggestions = []

    repeated = [g for g in totals.values() if g["count"] >= 2]
    repeated.sort(key=lambda g: g["total_value"], reverse=True)
    for group in repeated[:3]:
        value = group["total_value"]
        suggestions.append(Suggestion(
            type="portion_adjustment",
            priority="high" if group["count"] == RECENT_ENTRY_COUNT or value >= 10 else "medium",
            title=f"Reduce portions or adjust prep for {group['name']}",
            description=(
                f"{group['name']} appeared in {group['count']} of your last 3 entries "
                f"(≈ {_money(value)} wasted). Consider smaller default portions, offering "
                "half sizes, or preparing fewer batches."
            ),
            estimated_savings=f"Up to {_money(value * 0.3)} per week" if value > 0 else None,
        ))

    spoiled = [
        key for key, seen in conditions.items()
        if not seen.isdisjoint(SPOILAGE_KEYWORDS)
    ]
    for key in spoiled[:2]:
        suggestions.append(Suggestion(
            type="best_practice",
            priority="medium",
            title=f"Improve storage and rotation for {key}",
            description=(
                f"Recent entries show spoilage or staleness for {key}. Tighten FIFO rotation, "
                "cool-down procedures, and sealed storage to extend shelf life and prevent discard."
            ),
        ))

    if not suggestions and totals:
        top = max(totals.values(), key=lambda g: g["total_value"])
        value = top["total_value"]
        suggestions.append(Suggestion(
            type="trend_alert",
            priority="low",
            title=f"Focus on {top['name']} waste first",
            description=(
                f"{top['name']} contributed the most value to waste across your last 3 entries "
                f"(≈ {_money(value)}). Review portioning, prep timing, and menu fit."
            ),
            estimated_savings=f"Save {_money(value * 0.25)} by small adjustments" if value > 0 else None,
        ))

    if recent_value >= 5:
        suggestions.append(Suggestion(
            type="best_practice",
            priority="low",
            title="Quick wins to reduce immediate waste",
            description=(
                "1) Offer smaller default portions with add-on sides, 2) Pre-portion popular "
                "sides to reduce over-scooping, 3) Label prep times to tighten hold limits."
            ),
            estimated_savings=f"Target {_money(recent_value * 0.2)} reduction next 3 entries",
        ))

    return suggestions
