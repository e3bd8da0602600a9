from __future__ import annotations

from typing import Protocol


class VisitedSet(Protocol):
    """
    Deduplication store shared by all workers and by consecutive runs.
    `try_insert` must be atomic: it returns True only for the one caller
    that actually added the URL.
    """

    async def try_insert(self, url: str) -> bool:
        ...

    async def clear(self) -> None:
        ...

    async def close(self) -> None:
        ...
