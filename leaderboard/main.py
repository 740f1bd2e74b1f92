"""
Leaderboard API entrypoint (FastAPI).

This module wires together:
- App startup/shutdown (lifespan): open the JSON store, mount the competition
  controller, start background maintenance tasks; dispose everything on shutdown
- Global middleware: request logging + CORS
- Router registration
"""

# -------------------- Standard library imports --------------------
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from time import time

# -------------------- Third-party imports --------------------
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# -------------------- Local application imports --------------------
from leaderboard.api import live as live_module
from leaderboard.api.health import router as health_router
from leaderboard.api.live import router as live_router
from leaderboard.config import settings
from leaderboard.core import CompetitionController
from leaderboard.rate_limit import cleanup_rate_limit_data
from leaderboard.storage import JsonTreeStore

# -------------------- Logging --------------------
# Log to stdout (for containers/terminal) and also to a local file (useful on event day).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler("leaderboard.log")],
)

logger = logging.getLogger(__name__)

# -------------------- Environment configuration --------------------
load_dotenv()

RATE_LIMIT_CLEANUP_INTERVAL_MIN = settings.rate_limit_cleanup_interval_min

rate_limit_cleanup_task: asyncio.Task | None = None


def build_controller(store=None) -> CompetitionController:
    """Controller wired to the configured store regions and the audit log."""
    return CompetitionController(
        store if store is not None else JsonTreeStore(settings.storage_dir),
        duration_sec=settings.competition_duration_sec,
        tick_interval_sec=settings.tick_interval_sec,
        leaderboard_path=settings.leaderboard_path,
        competition_path=settings.competition_path,
        audit=live_module.record_transition,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events for the FastAPI application."""

    # -------------------- Startup --------------------
    logger.info(
        "🚀 Leaderboard API starting up (duration=%ss, tick=%ss)...",
        settings.competition_duration_sec,
        settings.tick_interval_sec,
    )

    controller = build_controller()
    live_module.install_controller(controller)
    phase = await controller.mount()
    logger.info("Competition controller mounted in phase %s", phase)

    async def _rate_limit_cleanup_loop():
        """Periodic cleanup of old rate limiting data to prevent memory leak."""
        while True:
            try:
                await asyncio.sleep(max(RATE_LIMIT_CLEANUP_INTERVAL_MIN, 1) * 60)
                cleanup_rate_limit_data()
                logger.debug("Rate limit data cleanup completed")
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.warning("Rate limit cleanup failed: %s", exc)

    global rate_limit_cleanup_task
    if RATE_LIMIT_CLEANUP_INTERVAL_MIN > 0:
        rate_limit_cleanup_task = asyncio.create_task(_rate_limit_cleanup_loop())
    else:
        rate_limit_cleanup_task = None

    yield

    # -------------------- Shutdown --------------------
    logger.info("🛑 Leaderboard API shutting down...")
    if rate_limit_cleanup_task:
        rate_limit_cleanup_task.cancel()
        try:
            await rate_limit_cleanup_task
        except asyncio.CancelledError:
            pass

    live_module.install_controller(None)
    await controller.dispose()


# -------------------- FastAPI app --------------------
app = FastAPI(
    title="Arcade Leaderboard API",
    lifespan=lifespan,
)

# -------------------- CORS --------------------
ALLOWED_ORIGINS = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    # Lightweight access log with timing; errors include stack traces for debugging.
    start_time = time()

    logger.info(
        "%s %s - Client: %s",
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
    )

    try:
        response = await call_next(request)
        process_time = time() - start_time
        logger.info(
            "%s %s - Status: %s - Duration: %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )
        return response
    except Exception as exc:
        process_time = time() - start_time
        logger.error(
            "%s %s - Error: %s - Duration: %.3fs",
            request.method,
            request.url.path,
            str(exc),
            process_time,
            exc_info=True,
        )
        raise


@app.get("/health")
async def health():
    # Minimal liveness probe used by local tooling / reverse proxies.
    return {"status": "ok", "storage": "json"}


# -------------------- Router registration --------------------
app.include_router(live_router, prefix="/api")
app.include_router(health_router, prefix="/api")
