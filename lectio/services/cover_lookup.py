"""External cover lookup (Open Library) with disk caching.

Flow for one (title, author) pair:

1. cache hit → cached JPEG, negative marker → no cover (no network call)
2. search Open Library by cleaned title/author, first doc with ``cover_i`` wins
3. fetch the medium cover, shrink to ``COVER_MAX_WIDTH`` and re-encode as
   progressive JPEG, then cache it

Only a search that succeeds with no usable candidate writes a negative
marker. Network errors, timeouts, non-2xx answers and undecodable images
are transient and leave the cache untouched so the next request retries.
"""
from __future__ import annotations

import io
import json
import re
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests
from PIL import Image

from lectio import config
from lectio.services.cover_cache import CacheHit, CoverCache, NegativeMarker, cache_key
from lectio.utils.logging import get_logger

LOG = get_logger("lectio.cover_lookup")

COVER_MAX_WIDTH = 400
COVER_JPEG_QUALITY = 80
SEARCH_LIMIT = 5
COVER_SIZE = "M"
_READ_CHUNK = 16 * 1024


class CoverLookupError(RuntimeError):
    """External search or image fetch did not complete."""


class CoverTranscodeError(ValueError):
    """Fetched bytes could not be decoded as an image."""


_EPUB_SUFFIX_RE = re.compile(r"\.epub$", re.IGNORECASE)
_SEPARATORS_RE = re.compile(r"[_\-.]+")
_PARENS_RE = re.compile(r"\([^)]*\)")
_BRACKETS_RE = re.compile(r"\[[^\]]*\]")
_SPACES_RE = re.compile(r"\s+")


def clean_search_text(value: Optional[str]) -> str:
    """Turn a stored title/author into a search-friendly phrase.

    >>> clean_search_text("The_Hobbit (Illustrated) [EN].epub")
    'The Hobbit'
    """
    if not value:
        return ""
    text = _EPUB_SUFFIX_RE.sub("", value.strip())
    text = _SEPARATORS_RE.sub(" ", text)
    text = _PARENS_RE.sub("", text)
    text = _BRACKETS_RE.sub("", text)
    return _SPACES_RE.sub(" ", text).strip()


def build_query(title: Optional[str], author: Optional[str] = None) -> str:
    clean_title = clean_search_text(title)
    clean_author = clean_search_text(author)
    if clean_author:
        return f"{clean_title} {clean_author}".strip()
    return clean_title


def transcode_cover(data: bytes, max_width: int = COVER_MAX_WIDTH, quality: int = COVER_JPEG_QUALITY) -> bytes:
    """Shrink to ``max_width`` (aspect preserved, never enlarged), encode progressive JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            img = source if source.mode == "RGB" else source.convert("RGB")
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality, progressive=True, optimize=True)
            return out.getvalue()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise CoverTranscodeError(f"undecodable cover image: {exc}") from exc


class OpenLibraryClient:
    """Thin requests wrapper for the Open Library search and covers endpoints.

    ``timeout`` caps each call as a whole: connect, headers and body.
    """

    def __init__(
        self,
        search_url: Optional[str] = None,
        image_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.search_url = search_url or config.cover_search_url()
        self.image_url = (image_url or config.cover_image_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else config.cover_fetch_timeout()

    def _get(self, url: str, params: Dict[str, Any]) -> Tuple[int, bytes]:
        """GET ``url`` and return ``(status, body)`` before the deadline or raise CoverLookupError.

        requests only bounds connect and single socket reads, so a server that
        trickles bytes could hold the call open indefinitely. The transfer runs
        on a worker thread that stops between chunks once the deadline passes,
        and the caller stops waiting at the deadline.
        """
        deadline = time.monotonic() + self.timeout
        outcome: Future = Future()

        def transfer() -> None:
            try:
                r = requests.get(url, params=params, stream=True, timeout=self.timeout)
                try:
                    chunks = []
                    if 200 <= r.status_code < 300:
                        for chunk in r.iter_content(chunk_size=_READ_CHUNK):
                            if time.monotonic() > deadline:
                                raise CoverLookupError(f"deadline exceeded after {self.timeout}s")
                            chunks.append(chunk)
                    status = r.status_code
                finally:
                    r.close()
            except BaseException as exc:
                outcome.set_exception(exc)
            else:
                outcome.set_result((status, b"".join(chunks)))

        threading.Thread(target=transfer, name="lectio-cover-http", daemon=True).start()
        try:
            return outcome.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError as exc:
            raise CoverLookupError(f"no complete response within {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise CoverLookupError(str(exc)) from exc

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> List[Dict[str, Any]]:
        """Return the search ``docs`` list; raises CoverLookupError on any transport problem."""
        params = {"q": query, "limit": limit, "fields": "cover_i"}
        try:
            status, body = self._get(self.search_url, params)
        except CoverLookupError as exc:
            raise CoverLookupError(f"search failed: {exc}") from exc
        if not 200 <= status < 300:
            raise CoverLookupError(f"search failed: status={status}")
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise CoverLookupError("search returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise CoverLookupError("search returned unexpected payload")
        docs = data.get("docs") or []
        if not isinstance(docs, list):
            raise CoverLookupError("search returned unexpected docs")
        return [d for d in docs if isinstance(d, dict)]

    def fetch_image(self, cover_id: int, size: str = COVER_SIZE) -> bytes:
        url = f"{self.image_url}/{cover_id}-{size}.jpg"
        try:
            status, body = self._get(url, {"default": "false"})
        except CoverLookupError as exc:
            raise CoverLookupError(f"cover fetch failed: {exc}") from exc
        if not 200 <= status < 300:
            raise CoverLookupError(f"cover fetch failed: status={status}")
        if not body:
            raise CoverLookupError("cover fetch returned empty body")
        return body


def first_cover_id(docs: List[Dict[str, Any]]) -> Optional[int]:
    for doc in docs:
        cover_id = doc.get("cover_i")
        if cover_id:
            return cover_id
    return None


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolve: JPEG bytes or None, and whether the cache answered."""

    data: Optional[bytes]
    from_cache: bool = False


class CoverResolver:
    """Resolve covers by title/author through the cache and the external client.

    With ``single_flight`` enabled, concurrent callers for a key whose lookup
    is already running wait for that lookup instead of issuing their own.
    """

    def __init__(
        self,
        cache: CoverCache,
        client: Optional[OpenLibraryClient] = None,
        *,
        max_width: int = COVER_MAX_WIDTH,
        quality: int = COVER_JPEG_QUALITY,
        single_flight: Optional[bool] = None,
    ):
        self.cache = cache
        self.client = client or OpenLibraryClient()
        self.max_width = max_width
        self.quality = quality
        self.single_flight = config.cover_single_flight() if single_flight is None else single_flight
        self._inflight: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    def resolve(self, title: str, author: Optional[str] = None) -> Optional[bytes]:
        """Return JPEG bytes for the pair, or None when no cover is available."""
        return self.resolution(title, author).data

    def resolution(self, title: str, author: Optional[str] = None) -> Resolution:
        """Like :meth:`resolve`, also telling whether the answer came from the cache."""
        key = cache_key(title, author)
        entry = self.cache.get(key)
        if isinstance(entry, CacheHit):
            LOG.debug("cover cache hit key=%s", key)
            return Resolution(entry.data, from_cache=True)
        if isinstance(entry, NegativeMarker):
            LOG.debug("cover negative marker key=%s", key)
            return Resolution(None, from_cache=True)
        if not self.single_flight:
            return Resolution(self._lookup(key, title, author))

        with self._inflight_lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
        if not owner:
            LOG.debug("joining in-flight cover lookup key=%s", key)
            return Resolution(future.result())
        try:
            result = self._lookup(key, title, author)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return Resolution(result)
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)

    def _lookup(self, key: str, title: str, author: Optional[str]) -> Optional[bytes]:
        query = build_query(title, author)
        if not query:
            LOG.debug("cover lookup skipped, empty query key=%s", key)
            return None
        LOG.info("open library search title=%r author=%r", clean_search_text(title), clean_search_text(author) or "?")
        try:
            docs = self.client.search(query, limit=SEARCH_LIMIT)
        except CoverLookupError as exc:
            LOG.warning("open library search error key=%s err=%s", key, exc)
            return None

        cover_id = first_cover_id(docs)
        if cover_id is None:
            self.cache.put_negative(key)
            return None

        try:
            raw = self.client.fetch_image(cover_id, size=COVER_SIZE)
            data = transcode_cover(raw, max_width=self.max_width, quality=self.quality)
        except (CoverLookupError, CoverTranscodeError) as exc:
            LOG.warning("open library cover error key=%s cover_id=%s err=%s", key, cover_id, exc)
            return None
        self.cache.put_hit(key, data)
        return data


__all__ = [
    "COVER_MAX_WIDTH",
    "COVER_JPEG_QUALITY",
    "CoverLookupError",
    "CoverTranscodeError",
    "OpenLibraryClient",
    "CoverResolver",
    "Resolution",
    "clean_search_text",
    "build_query",
    "first_cover_id",
    "transcode_cover",
]
