"""
JSON storage backend (file-based persistence).

This module provides:
- `JsonTreeStore`: the shared store tree persisted to `STORAGE_DIR/tree.json` (atomic writes)
- Append-only audit log of competition transitions in NDJSON format
  (`STORAGE_DIR/events.ndjson`) with size-based rotation

Concurrency model:
- Tree file writes are synchronous, so they land in write order on the event loop
- A global audit lock serializes appends/rotations of the NDJSON audit log
"""

# -------------------- Standard library imports --------------------
import asyncio
import json
import logging
import os
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

# -------------------- Local application imports --------------------
from leaderboard.config import settings

from .base import StoreError
from .memory_store import MemoryStore

# -------------------- Storage configuration --------------------
STORAGE_DIR = settings.storage_dir

# Single lock for audit writes/rotation (NDJSON is append-only but rotation/rename must be serialized).
_audit_lock = asyncio.Lock()

# -------------------- Audit file rotation settings --------------------
MAX_AUDIT_FILE_SIZE_MB = settings.max_audit_file_size_mb

logger = logging.getLogger(__name__)


def _storage_dir() -> Path:
    # Root storage directory (defaults to `./data`).
    return Path(STORAGE_DIR)


def _tree_path() -> Path:
    return _storage_dir() / "tree.json"


def _events_path() -> Path:
    # Append-only audit log (NDJSON: 1 JSON object per line).
    return _storage_dir() / "events.ndjson"


def ensure_storage_dirs() -> None:
    _storage_dir().mkdir(parents=True, exist_ok=True)


def _atomic_write_json(path: Path, payload: Any) -> None:
    # Atomic write pattern:
    # 1) write to `*.tmp`
    # 2) replace the target file in one filesystem operation
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    os.replace(tmp_path, path)


def load_tree(path: Path | None = None) -> Dict[str, Any]:
    """Load the persisted tree.
    Corrupt or non-object files are skipped so a bad file never blocks startup.
    """
    path = path or _tree_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error(f"Corrupt JSON in store file {path.name}: {exc}")
        return {}
    except Exception as exc:
        logger.error(f"Failed to read store file {path.name}: {exc}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Invalid store format in {path.name} (not an object), ignoring")
        return {}
    return data


class JsonTreeStore(MemoryStore):
    """MemoryStore whose tree survives restarts (one JSON file per store)."""

    def __init__(self, storage_dir: str | Path | None = None) -> None:
        self.storage_dir = Path(storage_dir) if storage_dir is not None else _storage_dir()
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.storage_dir / "tree.json"
        super().__init__(load_tree(self.path))
        logger.info("JSON store ready at %s (%s top-level keys)", self.path, len(self._tree))

    async def _after_write(self, parts: tuple[str, ...]) -> None:
        # No await between the in-memory change and the file replace: files land in write order.
        try:
            _atomic_write_json(self.path, self.snapshot())
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(f"failed to persist {self.path}: {exc}") from exc


def _rotate_audit_file_if_needed() -> None:
    """Rotate audit file if it exceeds MAX_AUDIT_FILE_SIZE_MB."""
    path = _events_path()
    if not path.exists():
        return
    try:
        size_mb = path.stat().st_size / (1024 * 1024)
        if size_mb >= MAX_AUDIT_FILE_SIZE_MB:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
            archive_name = f"events.{timestamp}.ndjson"
            archive_path = path.parent / archive_name
            path.rename(archive_path)
            logger.info("Rotated audit file to %s (was %.2f MB)", archive_name, size_mb)
    except Exception as exc:
        logger.warning("Failed to rotate audit file: %s", exc)


async def append_audit_event(event: dict) -> None:
    # Append a single event as NDJSON.
    # Rotation happens under the same lock so rename + append cannot interleave.
    ensure_storage_dirs()
    line = json.dumps(event, ensure_ascii=False)
    async with _audit_lock:
        try:
            _rotate_audit_file_if_needed()
            with _events_path().open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except Exception as exc:
            logger.warning("Failed to append audit event: %s", exc)


def read_latest_events(*, limit: int = 200, action: str | None = None) -> list[dict]:
    # Tail the NDJSON audit log in a memory-bounded way using a deque.
    path = _events_path()
    if not path.exists():
        return []
    tail: deque[dict] = deque(maxlen=limit)
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except Exception:
                continue
            if action is not None and event.get("action") != action:
                continue
            tail.append(event)
    return list(reversed(list(tail)))


def build_audit_event(
    *,
    action: str,
    competition: dict | None,
    actor: dict | None,
) -> dict:
    # Normalized event envelope written to NDJSON.
    now = datetime.now(timezone.utc).isoformat()
    return {
        "id": str(uuid.uuid4()),
        "createdAt": now,
        "action": action,
        "competition": dict(competition or {}),
        "actorIp": (actor or {}).get("ip"),
        "actorUserAgent": (actor or {}).get("user_agent"),
    }
