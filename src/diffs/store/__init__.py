from .base import Store
from .disk_store import DiskStore
from .memory_store import MemoryStore

__all__ = ["Store", "DiskStore", "MemoryStore"]
