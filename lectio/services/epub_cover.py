"""Embedded EPUB cover extraction.

Reads ``META-INF/container.xml`` to find the OPF package document, then
looks for the cover image in the manifest using, in order:

1. an item whose ``properties`` include ``cover-image`` (EPUB 3)
2. ``<meta name="cover" content="ID">`` pointing at a manifest item (EPUB 2)
3. an item whose id is ``cover``, ``cover-image`` or ``coverimage``

A broken archive, container or OPF raises `MalformedEpubError`; a cover
reference that is missing or points nowhere returns None.
"""
from __future__ import annotations

import io
import posixpath
import zipfile
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote

from lxml import etree

from lectio.utils.logging import get_logger

LOG = get_logger("lectio.epub_cover")

CONTAINER_PATH = "META-INF/container.xml"
COVER_IDS = {"cover", "cover-image", "coverimage"}
DEFAULT_MIMETYPE = "image/jpeg"
MIMETYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# Markup found in the wild is often sloppy; recover instead of failing,
# and never touch the network or expand entities.
_PARSER = etree.XMLParser(recover=True, resolve_entities=False, no_network=True, huge_tree=False)


class MalformedEpubError(ValueError):
    """Archive, container.xml or OPF document could not be read."""


@dataclass(frozen=True)
class EmbeddedCover:
    data: bytes
    mimetype: str
    path: str


def guess_mimetype(path: str) -> str:
    return MIMETYPES.get(posixpath.splitext(path)[1].lower(), DEFAULT_MIMETYPE)


def _parse(raw: bytes, what: str):
    try:
        root = etree.fromstring(raw, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise MalformedEpubError(f"unparseable {what}: {exc}") from exc
    if root is None:
        raise MalformedEpubError(f"empty {what}")
    return root


def _read_member(archive: zipfile.ZipFile, name: str) -> Optional[bytes]:
    try:
        return archive.read(name)
    except KeyError:
        return None


def _find_rootfile(archive: zipfile.ZipFile) -> str:
    raw = _read_member(archive, CONTAINER_PATH)
    if raw is None:
        raise MalformedEpubError("no container.xml")
    root = _parse(raw, "container.xml")
    for node in root.xpath("//*[local-name()='rootfile'][@full-path]"):
        full_path = (node.get("full-path") or "").strip()
        if full_path:
            return full_path
    raise MalformedEpubError("no rootfile")


def _manifest_items(opf):
    return opf.xpath("//*[local-name()='manifest']/*[local-name()='item']")


def find_cover_href(opf) -> Optional[str]:
    """Return the manifest href of the cover image, or None."""
    items = [item for item in _manifest_items(opf) if item.get("href")]

    for item in items:
        if "cover-image" in (item.get("properties") or "").split():
            return item.get("href")

    for meta in opf.xpath("//*[local-name()='meta'][@name='cover']"):
        cover_id = meta.get("content")
        if not cover_id:
            continue
        for item in items:
            if item.get("id") == cover_id:
                return item.get("href")

    for item in items:
        if (item.get("id") or "").lower() in COVER_IDS:
            return item.get("href")
    return None


def resolve_href(opf_path: str, href: str) -> str:
    """Join ``href`` onto the OPF directory the way archive member names are stored."""
    opf_dir = opf_path[: opf_path.rfind("/") + 1]
    joined = opf_dir + href.strip()
    while joined.startswith("./"):
        joined = joined[2:]
    normalized = posixpath.normpath(joined) if joined else joined
    return normalized.lstrip("/")


def locate(file_bytes: bytes) -> Optional[EmbeddedCover]:
    """Extract the embedded cover from raw EPUB bytes."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(file_bytes))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as exc:
        raise MalformedEpubError(f"not a zip archive: {exc}") from exc

    with archive:
        opf_path = _find_rootfile(archive)
        raw_opf = _read_member(archive, opf_path)
        if raw_opf is None:
            raise MalformedEpubError(f"OPF not found path={opf_path}")
        opf = _parse(raw_opf, "OPF")

        href = find_cover_href(opf)
        if not href:
            LOG.debug("no cover reference in OPF path=%s", opf_path)
            return None

        cover_path = resolve_href(opf_path, href)
        candidates = [cover_path]
        unquoted = unquote(cover_path)
        if unquoted != cover_path:
            candidates.append(unquoted)
        for candidate in candidates:
            data = _read_member(archive, candidate)
            if data is not None:
                return EmbeddedCover(data=data, mimetype=guess_mimetype(candidate), path=candidate)

    LOG.debug("cover href missing from archive href=%s path=%s", href, cover_path)
    return None


__all__ = [
    "MalformedEpubError",
    "EmbeddedCover",
    "find_cover_href",
    "resolve_href",
    "guess_mimetype",
    "locate",
]
