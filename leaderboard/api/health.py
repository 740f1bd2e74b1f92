# leaderboard/api/health.py
"""Health probes plus a small operational summary of the running competition."""

# -------------------- Standard library imports --------------------
import logging
from datetime import datetime, timezone
from pathlib import Path

# -------------------- Third-party imports --------------------
from fastapi import APIRouter

# -------------------- Local application imports --------------------
from leaderboard.api import live as live_module
from leaderboard.storage import json_store

logger = logging.getLogger(__name__)
# Router is mounted under `/api` in `leaderboard/main.py`.
router = APIRouter(tags=["health"])

_MB = 1024 * 1024


def _disk_usage_mb() -> dict[str, float]:
    """Sizes of the audit log and the whole storage dir (0 when missing)."""
    root = Path(json_store.STORAGE_DIR)
    usage = {"audit_file_mb": 0.0, "storage_mb": 0.0}
    try:
        events = json_store._events_path()
        if events.exists():
            usage["audit_file_mb"] = events.stat().st_size / _MB
        if root.exists():
            usage["storage_mb"] = sum(f.stat().st_size for f in root.rglob("*") if f.is_file()) / _MB
    except OSError as exc:
        logger.debug(f"Disk usage probe failed: {exc}")
    return {key: round(value, 2) for key, value in usage.items()}


def _competition_summary() -> dict:
    ctrl = live_module.controller
    if ctrl is None:
        return {"phase": None}
    return {
        "phase": ctrl.phase,
        "countdown": ctrl.countdown,
        "ranked": len(ctrl.ranking),
        "live_subscription": ctrl.is_subscribed,
        "error": ctrl.error,
    }


@router.get("/health")
async def health_check():
    """
    Coarse status for dashboards: competition phase and countdown, ranked
    entry count, live subscription flag, WebSocket spectators and disk usage.
    """
    return {
        "status": "ok",
        **_competition_summary(),
        "subscribers": len(live_module.channels),
        **_disk_usage_mb(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def readiness_check():
    # Ready once lifespan has installed and mounted the controller.
    ctrl = live_module.controller
    if ctrl is None:
        return {"status": "not_ready", "error": "controller_not_installed"}
    return {"status": "ready", "phase": ctrl.phase}


@router.get("/health/live")
async def liveness_check():
    return {"status": "alive"}
