from .base import RecordStore
from .memory_store import MemoryRecordStore

__all__ = ["RecordStore", "MemoryRecordStore"]
