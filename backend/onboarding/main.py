"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager, suppress
import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from onboarding.config import get_settings
from onboarding.routers import extraction, handover, observatory, prompts
from onboarding.services.extraction import get_operation_tracker
from onboarding.services.operation_tracker import OperationTracker

logger = logging.getLogger(__name__)


async def _flush_periodically(tracker: OperationTracker, interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(tracker.tick)
        except Exception:
            logger.exception("operation_tracker.tick_failed")


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    tracker = get_operation_tracker()
    task = asyncio.create_task(_flush_periodically(tracker, settings.tracker_flush_interval_seconds))
    try:
        yield
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        flushed = await asyncio.to_thread(tracker.shutdown)
        logger.info("operation_tracker.shutdown_flush flushed=%d", flushed)


app = FastAPI(title=get_settings().app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(extraction.router, tags=["extraction"])
app.include_router(prompts.router, tags=["prompt-templates"])
app.include_router(observatory.router, tags=["observatory"])
app.include_router(handover.router, tags=["handover"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
