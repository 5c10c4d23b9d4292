"""Service exports."""

from .epub_cover import MalformedEpubError, EmbeddedCover
from .cover_cache import DiskCoverCache, MemoryCoverCache, cache_key
from .cover_lookup import (
    CoverResolver,
    OpenLibraryClient,
    CoverLookupError,
    CoverTranscodeError,
)
from .cover_service import CoverImage, resolve_cover, cover_stats
from .rate_limit import FixedWindowRateLimiter
from . import epub_cover, cover_cache, cover_lookup, cover_service, rate_limit

__all__ = [
    "MalformedEpubError",
    "EmbeddedCover",
    "DiskCoverCache",
    "MemoryCoverCache",
    "cache_key",
    "CoverResolver",
    "OpenLibraryClient",
    "CoverLookupError",
    "CoverTranscodeError",
    "CoverImage",
    "resolve_cover",
    "cover_stats",
    "FixedWindowRateLimiter",
    "epub_cover",
    "cover_cache",
    "cover_lookup",
    "cover_service",
    "rate_limit",
]
