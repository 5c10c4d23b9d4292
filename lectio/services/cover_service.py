"""Cover resolution for a stored document.

Tries the cover embedded in the EPUB, then the Open Library lookup, then
falls back to a generated SVG placeholder. Every path yields an image;
"no cover" is a normal outcome, never an error.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional

from lectio import config
from lectio.services import epub_cover
from lectio.services.cover_cache import DiskCoverCache
from lectio.services.cover_lookup import CoverResolver
from lectio.utils.logging import get_logger

LOG = get_logger("lectio.cover_service")

ORIGIN_EMBEDDED = "embedded"
ORIGIN_EXTERNAL = "external"
ORIGIN_PLACEHOLDER = "placeholder"

EMBEDDED_CACHE_CONTROL = "public, max-age=86400"  # 24h
EXTERNAL_CACHE_CONTROL = "public, max-age=604800"  # 7 days
PLACEHOLDER_CACHE_CONTROL = "public, max-age=3600"

PLACEHOLDER_MIMETYPE = "image/svg+xml"
PLACEHOLDER_CAPTION = "No cover"


@dataclass(frozen=True)
class CoverImage:
    data: bytes
    mimetype: str
    cache_control: str
    origin: str


def placeholder_svg(caption: str = PLACEHOLDER_CAPTION) -> bytes:
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="300" height="450" viewBox="0 0 300 450">'
        '<rect width="300" height="450" fill="#f5f5f5"/>'
        '<rect x="100" y="150" width="100" height="130" rx="4" fill="none" stroke="#d4d4d4" stroke-width="2"/>'
        '<path d="M120 170 h60 M120 190 h50 M120 210 h40" stroke="#d4d4d4" stroke-width="2" stroke-linecap="round"/>'
        '<text x="150" y="320" text-anchor="middle" font-family="system-ui, sans-serif" font-size="14" fill="#a3a3a3">'
        f"{caption}</text>"
        "</svg>"
    )
    return svg.encode("utf-8")


def placeholder_cover() -> CoverImage:
    return CoverImage(
        data=placeholder_svg(),
        mimetype=PLACEHOLDER_MIMETYPE,
        cache_control=PLACEHOLDER_CACHE_CONTROL,
        origin=ORIGIN_PLACEHOLDER,
    )


# ---------------- counters (in-process only) ----------------

_STATS_LOCK = threading.Lock()
_STATS: Dict[str, int] = {"extracted": 0, "fetched": 0, "cached": 0, "placeholders": 0, "errors": 0}


def _bump(name: str) -> None:
    with _STATS_LOCK:
        _STATS[name] = _STATS.get(name, 0) + 1


def cover_stats() -> Dict[str, int]:
    with _STATS_LOCK:
        return dict(_STATS)


def reset_stats() -> None:
    with _STATS_LOCK:
        for name in _STATS:
            _STATS[name] = 0


# ---------------- default resolver ----------------

_RESOLVER: Optional[CoverResolver] = None
_RESOLVER_LOCK = threading.Lock()


def get_resolver() -> CoverResolver:
    """Process-wide resolver over the configured covers directory."""
    global _RESOLVER
    if _RESOLVER is not None:
        return _RESOLVER
    with _RESOLVER_LOCK:
        if _RESOLVER is None:
            _RESOLVER = CoverResolver(DiskCoverCache(config.covers_dir()))
            LOG.debug("cover resolver initialized covers_dir=%s", config.covers_dir())
        return _RESOLVER


def set_resolver(resolver: Optional[CoverResolver]) -> None:
    global _RESOLVER
    with _RESOLVER_LOCK:
        _RESOLVER = resolver


def _try_embedded(file_bytes: bytes) -> Optional[CoverImage]:
    try:
        found = epub_cover.locate(file_bytes)
    except epub_cover.MalformedEpubError as exc:
        LOG.info("embedded cover unavailable: %s", exc)
        return None
    except Exception:
        _bump("errors")
        LOG.warning("embedded cover extraction failed", exc_info=True)
        return None
    if found is None:
        return None
    _bump("extracted")
    return CoverImage(
        data=found.data,
        mimetype=found.mimetype,
        cache_control=EMBEDDED_CACHE_CONTROL,
        origin=ORIGIN_EMBEDDED,
    )


def _try_external(resolver: CoverResolver, title: str, author: Optional[str]) -> Optional[CoverImage]:
    try:
        result = resolver.resolution(title, author)
    except Exception:
        _bump("errors")
        LOG.warning("external cover lookup failed title=%r", title, exc_info=True)
        return None
    if not result.data:
        return None
    _bump("cached" if result.from_cache else "fetched")
    return CoverImage(
        data=result.data,
        mimetype="image/jpeg",
        cache_control=EXTERNAL_CACHE_CONTROL,
        origin=ORIGIN_EXTERNAL,
    )


def resolve_cover(
    file_bytes: bytes,
    title: str,
    author: Optional[str] = None,
    *,
    resolver: Optional[CoverResolver] = None,
) -> CoverImage:
    """Return the best available cover for a document; never raises."""
    cover = _try_embedded(file_bytes)
    if cover is not None:
        return cover
    cover = _try_external(resolver or get_resolver(), title or "", author)
    if cover is not None:
        return cover
    _bump("placeholders")
    return placeholder_cover()


__all__ = [
    "CoverImage",
    "ORIGIN_EMBEDDED",
    "ORIGIN_EXTERNAL",
    "ORIGIN_PLACEHOLDER",
    "placeholder_svg",
    "placeholder_cover",
    "cover_stats",
    "reset_stats",
    "get_resolver",
    "set_resolver",
    "resolve_cover",
]
