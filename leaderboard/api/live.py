# leaderboard/api/live.py
"""
Live leaderboard API (view + control actions + WebSockets).

This module exposes the single CompetitionController of the process:
- GET `/api/leaderboard`: current view (phase, countdown, ranking, error)
- POST `/api/competition/{start,stop,reset}`: lifecycle transitions with rate limiting
- WS `/api/ws`: real-time stream; a LEADERBOARD_SNAPSHOT is pushed on connect and
  after every controller change
- GET `/api/audit/events`: most recent lifecycle transitions (NDJSON audit log)

Key design points:
- The controller is installed at startup (`install_controller`) and only read here
- Broadcasting is driven by a controller listener, so ticks, live snapshots and
  HTTP actions all reach spectators the same way
- Audit logging includes actor metadata via a ContextVar (`current_actor`)
"""

# -------------------- Standard library imports --------------------
import asyncio
import json
import logging
from contextvars import ContextVar
from typing import Any

# -------------------- Third-party imports --------------------
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from starlette.websockets import WebSocket

# -------------------- Local application imports --------------------
from leaderboard.core import (
    CompetitionController,
    CompetitionStateError,
    format_countdown,
    rank_entries,
)
from leaderboard.core.types import LeaderboardView
from leaderboard.rate_limit import check_rate_limit
from leaderboard.storage.json_store import (
    append_audit_event,
    build_audit_event,
    read_latest_events,
)

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "No leaderboard data available"

router = APIRouter()

# -------------------- Runtime state --------------------
controller: CompetitionController | None = None
# Active WS subscribers.
channels: set[WebSocket] = set()
channels_lock = asyncio.Lock()
# Strong references to in-flight broadcast tasks.
_broadcast_tasks: set[asyncio.Task] = set()
# Actor metadata for audit log entries (set in request handlers).
current_actor: ContextVar[dict[str, Any] | None] = ContextVar("current_actor", default=None)

# Toggle for tests that hammer the control endpoints.
RATE_LIMIT_ENABLED = True


def install_controller(ctrl: CompetitionController | None) -> None:
    """Make `ctrl` the controller served by this router (None uninstalls)."""
    global controller
    if controller is not None:
        controller.remove_listener(_on_controller_change)
    controller = ctrl
    if ctrl is not None:
        ctrl.add_listener(_on_controller_change)


def get_controller() -> CompetitionController:
    if controller is None:
        raise HTTPException(status_code=503, detail="leaderboard_not_ready")
    return controller


async def record_transition(action: str, competition: dict) -> None:
    """Audit hook wired into the controller."""
    event = build_audit_event(
        action=action,
        competition=competition,
        actor=current_actor.get(),
    )
    await append_audit_event(event)


# -------------------- View --------------------
def _build_view(ctrl: CompetitionController) -> LeaderboardView:
    """
    Build the read-only view sent to clients.

    Entries are numbered and tagged with podium medals; the countdown is also
    sent preformatted (HH:MM:SS) for simple displays.
    """
    entries = rank_entries(ctrl.ranking)
    return {
        "type": "LEADERBOARD_SNAPSHOT",
        "phase": ctrl.phase,
        "loading": ctrl.loading,
        "error": ctrl.error,
        "competition": ctrl.competition.to_dict(),
        "durationSec": ctrl.duration_sec,
        "countdown": ctrl.countdown,
        "countdownDisplay": format_countdown(ctrl.countdown),
        "message": None if entries else EMPTY_MESSAGE,
        "entries": entries,
    }


@router.get("/leaderboard")
async def get_leaderboard(ctrl: CompetitionController = Depends(get_controller)):
    return _build_view(ctrl)


# -------------------- Control actions --------------------
def _get_actor_from_request(request: Request | None) -> dict[str, Any] | None:
    if request is None:
        return None
    return {
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def _run_action(action: str, request: Request | None, ctrl: CompetitionController) -> dict:
    if RATE_LIMIT_ENABLED:
        client = request.client.host if request is not None and request.client else "unknown"
        is_allowed, reason = check_rate_limit(client, action)
        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {action} from {client}: {reason}")
            raise HTTPException(status_code=429, detail=reason)

    actor_token = current_actor.set(_get_actor_from_request(request))
    try:
        handler = {"start": ctrl.start, "stop": ctrl.stop, "reset": ctrl.reset}[action]
        try:
            ok = await handler()
        except CompetitionStateError as exc:
            logger.info("Rejected %s: %s", action, exc)
            raise HTTPException(status_code=409, detail=str(exc))
    finally:
        current_actor.reset(actor_token)

    # Store failures are already surfaced on the view (`error`), not as HTTP errors.
    return {"status": "ok" if ok else "error", **_build_view(ctrl)}


@router.post("/competition/start")
async def start_competition(request: Request, ctrl: CompetitionController = Depends(get_controller)):
    return await _run_action("start", request, ctrl)


@router.post("/competition/stop")
async def stop_competition(request: Request, ctrl: CompetitionController = Depends(get_controller)):
    return await _run_action("stop", request, ctrl)


@router.post("/competition/reset")
async def reset_competition(request: Request, ctrl: CompetitionController = Depends(get_controller)):
    return await _run_action("reset", request, ctrl)


# -------------------- Audit --------------------
class AuditEventOut(BaseModel):
    id: str
    createdAt: str
    action: str
    competition: dict
    actorIp: str | None = None
    actorUserAgent: str | None = None


@router.get("/audit/events", response_model=list[AuditEventOut])
async def list_audit_events(
    limit: int = Query(default=200, ge=1, le=2000),
    action: str | None = Query(default=None),
):
    """Most recent lifecycle transitions first."""
    events = read_latest_events(limit=limit, action=action)
    return [
        AuditEventOut(
            id=str(ev.get("id", "")),
            createdAt=str(ev.get("createdAt", "")),
            action=str(ev.get("action", "")),
            competition=ev.get("competition") if isinstance(ev.get("competition"), dict) else {},
            actorIp=ev.get("actorIp"),
            actorUserAgent=ev.get("actorUserAgent"),
        )
        for ev in events
    ]


# -------------------- Broadcasting --------------------
def _on_controller_change(ctrl: CompetitionController) -> None:
    # Listener runs synchronously inside the controller; push happens in a task.
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    task = loop.create_task(_broadcast(_build_view(ctrl)))
    _broadcast_tasks.add(task)
    task.add_done_callback(_broadcast_tasks.discard)


async def _broadcast(payload: dict) -> None:
    """Safely broadcast JSON payload to all subscribers.
    Removes dead connections automatically.
    Disconnects slow clients (timeout 5s) to prevent blocking.
    """
    async with channels_lock:
        sockets = list(channels)
    if not sockets:
        return

    dead = []
    message = json.dumps(payload, ensure_ascii=False)
    for ws in sockets:
        try:
            await asyncio.wait_for(ws.send_text(message), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("WebSocket send timeout, disconnecting slow client")
            dead.append(ws)
            try:
                await ws.close(code=1008, reason="Send timeout")
            except Exception:
                pass
        except Exception as e:
            logger.debug(f"Broadcast error: {e}")
            dead.append(ws)

    if dead:
        async with channels_lock:
            for ws in dead:
                channels.discard(ws)


async def _send_view(ws: WebSocket) -> None:
    if controller is None:
        return
    try:
        await ws.send_text(json.dumps(_build_view(controller), ensure_ascii=False))
    except Exception as e:
        logger.debug(f"Failed to send view: {e}")


async def _heartbeat(ws: WebSocket, last_pong: dict[str, float]) -> None:
    """Send PING every 30s; close if no PONG for 60s."""
    heartbeat_interval = 30
    heartbeat_timeout = 60

    while True:
        try:
            await asyncio.sleep(heartbeat_interval)
            now = asyncio.get_event_loop().time()

            if now - (last_pong.get("ts") or 0.0) > heartbeat_timeout:
                logger.warning("Heartbeat timeout, closing leaderboard WebSocket")
                try:
                    await ws.close(code=1000)
                except Exception:
                    pass
                break

            await ws.send_text(
                json.dumps({"type": "PING", "timestamp": now}, ensure_ascii=False)
            )
        except Exception as e:
            logger.debug(f"Heartbeat error: {e}")
            break


@router.websocket("/ws")
async def leaderboard_websocket(ws: WebSocket):
    """
    Read-only leaderboard feed.

    Clients receive LEADERBOARD_SNAPSHOT on connect and after every change, and
    can request a refresh with REQUEST_STATE. Only PONG/PING/REQUEST_STATE are
    understood; anything else is ignored.
    """
    await ws.accept()

    async with channels_lock:
        channels.add(ws)
        subscriber_count = len(channels)
    logger.info(f"Leaderboard client connected, total: {subscriber_count}")

    await _send_view(ws)

    last_pong = {"ts": asyncio.get_event_loop().time()}
    heartbeat_task = asyncio.create_task(_heartbeat(ws, last_pong))

    try:
        while True:
            try:
                data = await asyncio.wait_for(ws.receive_text(), timeout=180)
            except asyncio.TimeoutError:
                logger.warning("Leaderboard WebSocket receive timeout")
                break
            except Exception as e:
                logger.debug(f"Leaderboard WebSocket receive error: {e}")
                break

            try:
                msg = json.loads(data) if isinstance(data, str) else data
            except json.JSONDecodeError:
                logger.debug("Invalid JSON from leaderboard WebSocket")
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type")
            if msg_type == "PONG":
                last_pong["ts"] = asyncio.get_event_loop().time()
                continue
            if msg_type == "PING":
                await ws.send_text(
                    json.dumps(
                        {"type": "PONG", "timestamp": msg.get("timestamp")},
                        ensure_ascii=False,
                    )
                )
                continue
            if msg_type == "REQUEST_STATE":
                await _send_view(ws)
                continue
    finally:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass

        async with channels_lock:
            channels.discard(ws)
            remaining = len(channels)
        logger.info(f"Leaderboard client disconnected, remaining: {remaining}")

        try:
            await ws.close()
        except Exception:
            pass
