from .base import VisitedSet
from .memory_state import MemoryVisitedSet

__all__ = ["VisitedSet", "MemoryVisitedSet"]
