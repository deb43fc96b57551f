from fastapi import Request

from waste_tracker.core.ingest import Analyzer
from waste_tracker.core.vision import analyze_food_waste
from waste_tracker.db.database import WasteStore


def get_store(request: Request) -> WasteStore:
    """Return the store opened at startup (see main.lifespan)."""
    return request.app.state.store


def get_analyzer() -> Analyzer:
    """Return the vision collaborator. Tests override this dependency."""
    return analyze_food_waste
