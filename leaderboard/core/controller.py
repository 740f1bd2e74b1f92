"""
Competition lifecycle controller (idle -> running -> completed -> idle).

The controller is the only writer of the competition-state record and owns
everything the leaderboard view shows: phase, countdown, Ranking and error.

Key design points:
- All transitions run under one asyncio.Lock and re-check the phase once they
  hold it, so a stop racing the last tick completes the run only once
- Store writes happen before any local state changes; a failed write leaves
  the controller in its pre-transition phase with `error` set
- At most one live subscription exists; it is always cancelled before a new
  one is opened and on dispose
- Listeners are plain callables notified after every observable change
  (the WebSocket broadcaster is one of them)
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from leaderboard.storage.base import SharedStore, Subscription

from .competition import CompetitionState, CompetitionStateError, remaining_ticks
from .ranking import ScoreRecord, aggregate_scores
from .types import Phase

logger = logging.getLogger(__name__)

ERR_FETCH = "Failed to fetch leaderboard data"
ERR_PROCESS = "Failed to process leaderboard data"
ERR_LOAD_STATE = "Failed to load competition state"
ERR_START = "Failed to start competition"
ERR_STOP = "Failed to stop competition"
ERR_RESET = "Failed to reset competition"

Listener = Callable[["CompetitionController"], None]
AuditHook = Callable[[str, dict], Awaitable[None]]


class CompetitionController:
    def __init__(
        self,
        store: SharedStore,
        *,
        duration_sec: int,
        tick_interval_sec: float = 1.0,
        leaderboard_path: str = "",
        competition_path: str = "competition",
        clock: Callable[[], float] = time.time,
        audit: Optional[AuditHook] = None,
    ) -> None:
        if duration_sec <= 0:
            raise ValueError("duration_sec must be positive")
        self.store = store
        self.duration_sec = int(duration_sec)
        self.tick_interval_sec = tick_interval_sec
        self.leaderboard_path = leaderboard_path
        self.competition_path = competition_path
        self._clock = clock
        self._audit_hook = audit

        self.phase: Phase = "idle"
        self.competition = CompetitionState()
        self.ranking: list[ScoreRecord] = []
        self.countdown: int = self.duration_sec
        self.error: Optional[str] = None
        self.loading: bool = True

        self._subscription: Optional[Subscription] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._listeners: list[Listener] = []
        self._disposed = False

    # -------------------- Listeners --------------------
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self) -> None:
        if self._disposed:
            return
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:
                logger.error("Controller listener failed: %s", exc, exc_info=True)

    # -------------------- Introspection --------------------
    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # -------------------- Transitions --------------------
    async def mount(self) -> Phase:
        """Hydrate from the stored competition record (run once at startup)."""
        async with self._lock:
            try:
                raw = await self.store.read(self.competition_path)
            except Exception as exc:
                logger.error("%s: %s", ERR_LOAD_STATE, exc, exc_info=True)
                self.error = ERR_LOAD_STATE
                self.loading = False
                self._notify()
                return self.phase

            stored = CompetitionState.from_dict(raw)
            if stored.is_running:
                left = remaining_ticks(stored.start_time, self._now_ms(), self.duration_sec)
                self.competition = stored
                self._enter_running(left)
                if left > 0:
                    logger.info("Resumed running competition with %ss left", left)
                else:
                    logger.info("Stored competition already ran out; expiring")
                    await self._finish("EXPIRE")
            elif stored.is_concluded:
                self.competition = stored
                self.phase = "completed"
                self.countdown = 0
                await self._load_final_ranking()
                logger.info("Loaded concluded competition (ended at %s)", stored.end_time)
            else:
                self.loading = False

            self._notify()
            return self.phase

    async def start(self) -> bool:
        async with self._lock:
            if self.phase != "idle":
                raise CompetitionStateError("start", self.phase)
            now = self._now_ms()
            state = CompetitionState(
                active=True,
                start_time=now,
                end_time=now + self.duration_sec * 1000,
            )
            try:
                await self.store.write(self.competition_path, state.to_dict())
            except Exception as exc:
                logger.error("%s: %s", ERR_START, exc, exc_info=True)
                self.error = ERR_START
                self._notify()
                return False

            self.competition = state
            self.error = None
            self._enter_running(self.duration_sec)
            logger.info("Competition started at %s for %ss", now, self.duration_sec)
            await self._audit("START")
            self._notify()
            return True

    async def stop(self) -> bool:
        async with self._lock:
            if self.phase != "running":
                raise CompetitionStateError("stop", self.phase)
            return await self._finish("STOP")

    async def reset(self) -> bool:
        async with self._lock:
            if self.phase != "completed":
                raise CompetitionStateError("reset", self.phase)
            try:
                await self.store.delete(self.competition_path)
            except Exception as exc:
                logger.error("%s: %s", ERR_RESET, exc, exc_info=True)
                self.error = ERR_RESET
                self._notify()
                return False

            self.phase = "idle"
            self.competition = CompetitionState()
            self.ranking = []
            self.countdown = self.duration_sec
            self.error = None
            self.loading = False
            logger.info("Competition reset")
            await self._audit("RESET")
            self._notify()
            return True

    async def tick(self) -> None:
        """One countdown step; the last step expires the run."""
        if self.phase != "running":
            return
        if self.countdown > 0:
            self.countdown -= 1
            logger.debug("Countdown: %s", self.countdown)
            self._notify()
        if self.countdown <= 0:
            await self._expire()

    async def dispose(self) -> None:
        """Cancel the live subscription and the ticker; ignore late callbacks.

        A transition still waiting on the store finishes first, then its
        subscription and ticker are torn down with the rest.
        """
        self._disposed = True
        async with self._lock:
            self._cancel_subscription()
            task, self._tick_task = self._tick_task, None
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            self._listeners.clear()

    # -------------------- Internals --------------------
    async def _expire(self) -> bool:
        async with self._lock:
            if self.phase != "running":
                return False
            return await self._finish("EXPIRE")

    async def _finish(self, action: str) -> bool:
        # Caller holds the lock and has checked phase == "running".
        now = self._now_ms()
        state = CompetitionState(
            active=False,
            start_time=self.competition.start_time,
            end_time=now,
        )
        try:
            await self.store.write(self.competition_path, state.to_dict())
        except Exception as exc:
            logger.error("%s: %s", ERR_STOP, exc, exc_info=True)
            self.error = ERR_STOP
            self._notify()
            return False

        self._cancel_subscription()
        self._stop_ticker()
        self.competition = state
        self.phase = "completed"
        self.countdown = 0
        self.error = None
        await self._load_final_ranking()
        logger.info("Competition %s at %s (%s ranked)", action.lower(), now, len(self.ranking))
        await self._audit(action)
        self._notify()
        return True

    def _enter_running(self, countdown: int) -> None:
        self.phase = "running"
        self.countdown = countdown
        self.loading = True
        self._subscribe_live()
        self._start_ticker()

    def _subscribe_live(self) -> None:
        self._cancel_subscription()
        if self._disposed:
            return
        try:
            self._subscription = self.store.subscribe(
                self.leaderboard_path,
                self._on_snapshot,
                self._on_snapshot_error,
            )
        except Exception as exc:
            self._on_snapshot_error(exc)

    def _cancel_subscription(self) -> None:
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.cancel()

    def _on_snapshot(self, raw: Any) -> None:
        if self._disposed or self.phase != "running":
            return
        try:
            self.ranking = aggregate_scores(raw)
            # Only snapshot errors are cleared here; a failed stop stays visible.
            if self.error in (ERR_FETCH, ERR_PROCESS):
                self.error = None
        except Exception as exc:
            logger.error("%s: %s", ERR_PROCESS, exc, exc_info=True)
            self.error = ERR_PROCESS
        self.loading = False
        self._notify()

    def _on_snapshot_error(self, exc: Exception) -> None:
        if self._disposed:
            return
        logger.error("Live subscription error: %s", exc)
        self.error = ERR_FETCH
        self.loading = False
        self._notify()

    async def _load_final_ranking(self) -> None:
        # A failed final read keeps the last live Ranking on screen.
        try:
            raw = await self.store.read(self.leaderboard_path)
        except Exception as exc:
            logger.error("%s: %s", ERR_FETCH, exc, exc_info=True)
            self.error = ERR_FETCH
        else:
            try:
                self.ranking = aggregate_scores(raw)
            except Exception as exc:
                logger.error("%s: %s", ERR_PROCESS, exc, exc_info=True)
                self.error = ERR_PROCESS
        self.loading = False

    def _start_ticker(self) -> None:
        self._stop_ticker()
        if self._disposed:
            return
        self._tick_task = asyncio.create_task(self._run_ticker())

    def _stop_ticker(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run_ticker(self) -> None:
        while self.phase == "running" and not self._disposed:
            await asyncio.sleep(self.tick_interval_sec)
            try:
                await self.tick()
            except Exception as exc:
                logger.error("Countdown tick failed: %s", exc, exc_info=True)

    async def _audit(self, action: str) -> None:
        if self._audit_hook is None:
            return
        try:
            await self._audit_hook(action, self.competition.to_dict())
        except Exception as exc:
            logger.warning("Failed to record %s audit event: %s", action, exc)
