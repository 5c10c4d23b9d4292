"""Disk cache for externally resolved covers.

Two files per key under the cache directory:

* ``<key>.jpg``      resolved cover (transcoded JPEG)
* ``<key>.nocover``  negative marker; the external search found nothing

Both are write-once and permanent: no TTL, no eviction. Marker content is
an informational timestamp, only its presence is checked.
"""
from __future__ import annotations

import hashlib
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from lectio.utils.logging import get_logger

LOG = get_logger("lectio.cover_cache")

HIT_SUFFIX = ".jpg"
NEGATIVE_SUFFIX = ".nocover"
_EPUB_SUFFIX = ".epub"


@dataclass(frozen=True)
class CacheHit:
    data: bytes


@dataclass(frozen=True)
class NegativeMarker:
    pass


CacheEntry = Optional[Union[CacheHit, NegativeMarker]]


def normalize(value: Optional[str]) -> str:
    """Lower-case and trim; a trailing ``.epub`` is dropped as well."""
    text = (value or "").strip().lower()
    if text.endswith(_EPUB_SUFFIX):
        text = text[: -len(_EPUB_SUFFIX)].strip()
    return text


def cache_key(title: Optional[str], author: Optional[str] = None) -> str:
    """Short stable key for a (title, author) pair.

    Pairs that normalize equally share a key, so two uploads of the same
    book reuse one cached cover.
    """
    joined = f"{normalize(title)}|{normalize(author)}"
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()[:16]


class CoverCache(Protocol):
    def get(self, key: str) -> CacheEntry: ...

    def put_hit(self, key: str, data: bytes) -> None: ...

    def put_negative(self, key: str) -> None: ...


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class DiskCoverCache:
    """File-backed cover cache rooted at ``cache_dir``."""

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)

    def hit_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{HIT_SUFFIX}"

    def negative_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{NEGATIVE_SUFFIX}"

    def get(self, key: str) -> CacheEntry:
        hit = self.hit_path(key)
        if hit.is_file():
            return CacheHit(hit.read_bytes())
        if self.negative_path(key).is_file():
            return NegativeMarker()
        return None

    def put_hit(self, key: str, data: bytes) -> None:
        self._write(self.hit_path(key), data)
        self.negative_path(key).unlink(missing_ok=True)
        LOG.info("cover cached key=%s size_kb=%s", key, round(len(data) / 1024))

    def put_negative(self, key: str) -> None:
        if self.hit_path(key).exists():
            LOG.debug("negative marker skipped, hit exists key=%s", key)
            return
        self._write(self.negative_path(key), _timestamp().encode("ascii"))
        LOG.info("no cover found key=%s", key)

    def _write(self, target: Path, payload: bytes) -> None:
        # Whole-file create via rename; concurrent writers for a key never
        # leave a partially written file behind.
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.cache_dir), prefix=".cover-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class MemoryCoverCache:
    """In-process cache with the same semantics as `DiskCoverCache`."""

    def __init__(self) -> None:
        self._hits: Dict[str, bytes] = {}
        self._negatives: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry:
        with self._lock:
            if key in self._hits:
                return CacheHit(self._hits[key])
            if key in self._negatives:
                return NegativeMarker()
        return None

    def put_hit(self, key: str, data: bytes) -> None:
        with self._lock:
            self._hits[key] = bytes(data)
            self._negatives.pop(key, None)

    def put_negative(self, key: str) -> None:
        with self._lock:
            if key not in self._hits:
                self._negatives[key] = _timestamp()


__all__ = [
    "CacheHit",
    "NegativeMarker",
    "CacheEntry",
    "CoverCache",
    "DiskCoverCache",
    "MemoryCoverCache",
    "normalize",
    "cache_key",
]
