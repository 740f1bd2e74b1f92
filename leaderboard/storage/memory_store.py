"""
In-process implementation of the shared store.

The whole tree is a nested dict. Subscribers are notified synchronously after
every write that touches their path (the written node, one of its ancestors,
or one of its descendants). Everything runs on the caller's event loop, so a
notification never interleaves with another write.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, List, Optional

from .base import (
    ErrorCallback,
    SharedStore,
    StoreError,
    Subscription,
    ValueCallback,
    split_path,
)

logger = logging.getLogger(__name__)


def _prune(value: Any) -> Any:
    # Empty objects disappear from the tree, the same way a null write removes a key.
    if isinstance(value, dict):
        pruned = {}
        for key, child in value.items():
            child = _prune(child)
            if child is not None:
                pruned[str(key)] = child
        return pruned or None
    return value


class MemoryStore(SharedStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._tree: Dict[str, Any] = _prune(deepcopy(initial)) or {}
        self._subscriptions: List[Subscription] = []

    # -------------------- Tree helpers --------------------
    def _get(self, parts: tuple[str, ...]) -> Any:
        node: Any = self._tree
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _set(self, parts: tuple[str, ...], value: Any) -> None:
        value = _prune(deepcopy(value))
        if not parts:
            self._tree = value if isinstance(value, dict) else {}
            return

        # Walk down, creating intermediate objects; remember the chain so empty
        # parents can be removed after a delete.
        chain: list[tuple[dict, str]] = []
        node = self._tree
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[part] = child
            chain.append((node, part))
            node = child

        leaf = parts[-1]
        if value is None:
            node.pop(leaf, None)
        else:
            node[leaf] = value

        for parent, key in reversed(chain):
            if parent[key]:
                break
            del parent[key]

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the whole tree (used by persistence and tests)."""
        return deepcopy(self._tree)

    # -------------------- SharedStore API --------------------
    async def read(self, path: str) -> Any:
        return deepcopy(self._get(split_path(path)))

    def subscribe(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        sub = Subscription(path, on_value, on_error, on_cancel=self._discard)
        self._subscriptions.append(sub)
        logger.debug("Subscribed to %r (total=%s)", path, len(self._subscriptions))
        # Initial value is pushed right away so the subscriber can render.
        self._deliver(sub)
        return sub

    async def write(self, path: str, value: Any) -> None:
        parts = split_path(path)
        previous = deepcopy(self._tree)
        try:
            self._set(parts, value)
        except Exception as exc:
            self._tree = previous
            raise StoreError(f"write failed for {path!r}: {exc}") from exc
        try:
            await self._after_write(parts)
        except Exception:
            # Not persisted, so not written: readers keep seeing the old tree.
            self._tree = previous
            raise
        self._notify(parts)

    async def _after_write(self, parts: tuple[str, ...]) -> None:
        """Hook for persistent subclasses; runs before subscribers are notified.

        Raising here undoes the write.
        """
        return None

    # -------------------- Subscriptions --------------------
    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _discard(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass
        logger.debug("Unsubscribed from %r (total=%s)", sub.path, len(self._subscriptions))

    def _notify(self, changed: tuple[str, ...]) -> None:
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            depth = min(len(sub.parts), len(changed))
            if sub.parts[:depth] == changed[:depth]:
                self._deliver(sub)

    def _deliver(self, sub: Subscription) -> None:
        value = deepcopy(self._get(sub.parts))
        try:
            sub.on_value(value)
        except Exception as exc:
            logger.error("Subscriber for %r failed: %s", sub.path, exc, exc_info=True)
            if sub.on_error is not None:
                sub.on_error(exc)
