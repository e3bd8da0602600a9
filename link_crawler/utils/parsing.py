from __future__ import annotations

from typing import List, Optional, Protocol, Set
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from ..errors import ExtractError, InvalidBase

ALLOWED_SCHEMES = ("http", "https")


class Extractor(Protocol):
    def parse_links(self, base_url: str, html: bytes) -> List[str]:
        ...


def normalize_url(url: str) -> str:
    """
    Strip the fragment. No other canonicalization is applied.
    """
    return urldefrag(url).url


def host_of(url: str) -> Optional[str]:
    """Return the netloc of an absolute http(s) URL, or None if it has none."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
        return None
    return parts.netloc


def extract_links(html: bytes | str, base_url: str) -> List[str]:
    """
    Extract absolute http(s) links from an HTML document, fragments removed,
    deduplicated in encounter order.
    """
    if host_of(base_url) is None:
        raise InvalidBase(base_url)

    try:
        soup = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ExtractError(f"cannot parse HTML from {base_url}: {exc}") from exc
    seen: Set[str] = set()
    out: List[str] = []
    for a in soup.find_all("a", href=True):
        href = a.get("href")
        if not href:
            continue
        try:
            absolute = urljoin(base_url, href.strip())
            scheme = urlsplit(absolute).scheme.lower()
        except ValueError:
            # Malformed href (e.g. broken IPv6 literal); skip it.
            continue
        if scheme not in ALLOWED_SCHEMES:
            continue
        link = normalize_url(absolute)
        if link not in seen:
            seen.add(link)
            out.append(link)
    return out


class LinkExtractor:
    """Default extractor backed by BeautifulSoup's html.parser."""

    def parse_links(self, base_url: str, html: bytes) -> List[str]:
        return extract_links(html, base_url)
