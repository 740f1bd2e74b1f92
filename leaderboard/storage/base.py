"""
Shared store contract (key-value tree with push notifications).

The controller only talks to this interface:
- `read(path)`: one-shot snapshot of the value at `path`
- `subscribe(path, on_value, on_error)`: continuous push of the value at `path`
- `write(path, value)`: full-value write (`None` deletes)
- `delete(path)`: convenience for `write(path, None)`

Paths are `/`-separated; the empty string addresses the root of the tree.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

ValueCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class StoreError(Exception):
    """Raised when a read/write against the shared store fails."""


def split_path(path: str | None) -> tuple[str, ...]:
    # "" / None -> root; leading/trailing/double slashes are ignored.
    if not path:
        return ()
    return tuple(part for part in path.split("/") if part)


class Subscription:
    """Cancellable registration returned by `SharedStore.subscribe`."""

    def __init__(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: Optional[ErrorCallback] = None,
        on_cancel: Optional[Callable[["Subscription"], None]] = None,
    ) -> None:
        self.path = path
        self.parts = split_path(path)
        self.on_value = on_value
        self.on_error = on_error
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        # Idempotent: cancelling twice is a no-op.
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel(self)

    def __repr__(self) -> str:
        return f"Subscription(path={self.path!r}, active={self._active})"


class SharedStore(ABC):
    @abstractmethod
    async def read(self, path: str) -> Any:
        ...

    @abstractmethod
    def subscribe(
        self,
        path: str,
        on_value: ValueCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        ...

    @abstractmethod
    async def write(self, path: str, value: Any) -> None:
        ...

    async def delete(self, path: str) -> None:
        await self.write(path, None)
