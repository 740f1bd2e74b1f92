from .base import SharedStore, StoreError, Subscription, split_path
from .json_store import (
    STORAGE_DIR,
    JsonTreeStore,
    append_audit_event,
    build_audit_event,
    ensure_storage_dirs,
    read_latest_events,
)
from .memory_store import MemoryStore

__all__ = [
    "STORAGE_DIR",
    "JsonTreeStore",
    "MemoryStore",
    "SharedStore",
    "StoreError",
    "Subscription",
    "append_audit_event",
    "build_audit_event",
    "ensure_storage_dirs",
    "read_latest_events",
    "split_path",
]
