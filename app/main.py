import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.routers import health, insights, waste
from waste_tracker.config import get_log_level, get_upload_dir
from waste_tracker.db.database import WasteStore
from waste_tracker.errors import WasteTrackerError

logging.basicConfig(
    level=getattr(logging, get_log_level(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("waste_tracker.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = WasteStore()
    if app.state.store.load_warning:
        logger.warning("Store started empty: %s", app.state.store.load_warning)
    logger.info("Waste store ready at %s", app.state.store.path)
    yield


app = FastAPI(title="Food Waste Tracker API", lifespan=lifespan)
app.mount("/uploads", StaticFiles(directory=get_upload_dir()), name="uploads")


@app.exception_handler(WasteTrackerError)
async def waste_tracker_error_handler(request: Request, exc: WasteTrackerError):
    level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
    logger.log(level, "%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    payload = {"error": type(exc).__name__, **exc.to_dict()}
    if hasattr(exc, "retryable"):
        payload["retryable"] = exc.retryable
    return JSONResponse(status_code=exc.http_status, content=payload)


app.include_router(health.router)
app.include_router(waste.router)
app.include_router(insights.router)
