from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Task:
    """A URL admitted to the frontier, with its depth and referrer."""

    url: str
    depth: int
    parent_url: str = ""


@dataclass
class CrawledRecord:
    """The artifact persisted for every crawled page."""

    url: str
    depth: int
    parent_url: str = ""
    found_links: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "depth": self.depth,
            "found_on": self.parent_url,
            "found_links": list(self.found_links),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CrawledRecord":
        return cls(
            url=doc["url"],
            depth=int(doc.get("depth", 0)),
            parent_url=doc.get("found_on") or "",
            found_links=list(doc.get("found_links") or []),
        )
