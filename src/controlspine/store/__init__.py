"""Object stores implementing the ``ObjectStore`` protocol."""

from controlspine.store.base import BaseObjectStore
from controlspine.store.memory import InMemoryObjectStore
from controlspine.store.patch import apply_merge_patch, create_merge_patch
from controlspine.store.sqlite import SqliteObjectStore

__all__ = [
    "BaseObjectStore",
    "InMemoryObjectStore",
    "SqliteObjectStore",
    "apply_merge_patch",
    "create_merge_patch",
]
