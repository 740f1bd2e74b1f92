"""
In-memory rate limiting for the competition control actions.

Each client (remote host) gets one sliding window over all of its control
requests plus one window per action. Only start/stop/reset are limited; the
read-only view and the WebSocket feed are not.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Tuple

logger = logging.getLogger(__name__)

# Per-minute caps for the control actions (per client).
ACTION_LIMITS: Dict[str, int] = {"start": 10, "reset": 10, "stop": 30}

WINDOW_SEC = 60.0
BURST_WINDOW_SEC = 1.0


@dataclass
class ClientWindow:
    requests: Deque[float] = field(default_factory=deque)
    actions: Dict[str, Deque[float]] = field(default_factory=dict)
    blocked_until: float = 0.0

    def prune(self, now: float, horizon: float = WINDOW_SEC) -> None:
        while self.requests and now - self.requests[0] >= horizon:
            self.requests.popleft()
        for action in list(self.actions):
            stamps = self.actions[action]
            while stamps and now - stamps[0] >= horizon:
                stamps.popleft()
            if not stamps:
                del self.actions[action]

    def burst(self, now: float) -> int:
        return sum(1 for ts in self.requests if now - ts < BURST_WINDOW_SEC)

    @property
    def idle(self) -> bool:
        return not self.requests and not self.actions


class RateLimiter:
    """
    Sliding-window limiter keyed by client

    A client that bursts past `max_per_second` or `max_per_minute` is blocked
    for `block_duration` seconds. Going over an action cap only rejects that
    action until its window frees up.
    """

    def __init__(
        self,
        max_per_minute: int = 300,
        max_per_second: int = 20,
        block_duration: int = 60,
    ):
        self.max_per_minute = max_per_minute
        self.max_per_second = max_per_second
        self.block_duration = block_duration
        self.action_limits: Dict[str, int] = {}
        self.clients: Dict[str, ClientWindow] = {}

    def set_action_limit(self, action: str, max_per_minute: int):
        self.action_limits[action] = max_per_minute

    def reset_all(self):
        """Forget every client (used by tests)."""
        self.clients = {}

    def is_blocked(self, client: str) -> bool:
        window = self.clients.get(client)
        return window is not None and window.blocked_until > time.time()

    def _block(self, client: str, window: ClientWindow, now: float, reason: str) -> Tuple[bool, str]:
        window.blocked_until = now + self.block_duration
        logger.warning(f"Blocking {client} for {self.block_duration}s: {reason}")
        return False, reason

    def check_rate_limit(self, client: str, action: str) -> Tuple[bool, str]:
        """
        Record one `action` request from `client` if it is allowed.

        Returns:
            Tuple[bool, str]: (is_allowed, reason)
        """
        now = time.time()
        window = self.clients.setdefault(client, ClientWindow())
        if window.blocked_until > now:
            return False, f"Client {client} is rate-limited. Try again later."

        window.prune(now)
        if window.burst(now) >= self.max_per_second:
            return self._block(client, window, now, "Rate limit exceeded (too many requests per second)")
        if len(window.requests) >= self.max_per_minute:
            return self._block(client, window, now, "Rate limit exceeded (too many requests per minute)")

        stamps = window.actions.setdefault(action, deque())
        limit = self.action_limits.get(action)
        if limit is not None and len(stamps) >= limit:
            logger.warning(f"{client} exceeded {action} limit ({limit} per minute)")
            return False, f"Rate limit exceeded for {action}"

        window.requests.append(now)
        stamps.append(now)
        return True, ""

    def cleanup_old_data(self, max_age_seconds: int = 300):
        """Drop clients with no recent requests and no active block."""
        now = time.time()
        for client in list(self.clients):
            window = self.clients[client]
            window.prune(now, horizon=max_age_seconds)
            if window.idle and window.blocked_until <= now:
                del self.clients[client]


_rate_limiter = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter with the control action caps applied."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(max_per_minute=300, max_per_second=20, block_duration=60)
        for action, limit in ACTION_LIMITS.items():
            _rate_limiter.set_action_limit(action, limit)
    return _rate_limiter


def check_rate_limit(client: str, action: str) -> Tuple[bool, str]:
    return get_rate_limiter().check_rate_limit(client, action)


def cleanup_rate_limit_data():
    get_rate_limiter().cleanup_old_data()


__all__ = [
    "ACTION_LIMITS",
    "RateLimiter",
    "get_rate_limiter",
    "check_rate_limit",
    "cleanup_rate_limit_data",
]
