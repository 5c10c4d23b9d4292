"""Shared fixtures: in-memory EPUB builder, image bytes, fake Open Library client."""
from __future__ import annotations

import io
import zipfile
from typing import Dict, List, Optional

import pytest
from PIL import Image

CONTAINER_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">'
    "<rootfiles>"
    '<rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>'
    "</rootfiles>"
    "</container>"
)


def opf_document(manifest: str, metadata: str = "") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid">'
        '<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">'
        "<dc:title>Sample</dc:title>"
        f"{metadata}"
        "</metadata>"
        f"<manifest>{manifest}</manifest>"
        '<spine><itemref idref="text"/></spine>'
        "</package>"
    )


def build_epub(
    opf: Optional[str],
    files: Optional[Dict[str, bytes]] = None,
    *,
    opf_path: str = "OEBPS/content.opf",
    container: Optional[str] = None,
) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        if container is None:
            container = CONTAINER_XML.format(opf_path=opf_path)
        if container:
            zf.writestr("META-INF/container.xml", container)
        if opf is not None:
            zf.writestr(opf_path, opf)
        for name, data in (files or {}).items():
            zf.writestr(name, data)
    return buf.getvalue()


def image_bytes(width: int = 60, height: int = 90, fmt: str = "JPEG", color=(120, 30, 200)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format=fmt)
    return out.getvalue()


class FakeOpenLibraryClient:
    """Records calls; returns canned docs/image or raises the configured errors."""

    def __init__(
        self,
        docs: Optional[List[dict]] = None,
        image: Optional[bytes] = None,
        search_error: Optional[Exception] = None,
        fetch_error: Optional[Exception] = None,
    ):
        self.docs = docs or []
        self.image = image if image is not None else image_bytes(800, 1200)
        self.search_error = search_error
        self.fetch_error = fetch_error
        self.search_calls: List[tuple] = []
        self.fetch_calls: List[tuple] = []

    def search(self, query: str, limit: int = 5) -> List[dict]:
        self.search_calls.append((query, limit))
        if self.search_error is not None:
            raise self.search_error
        return list(self.docs)

    def fetch_image(self, cover_id: int, size: str = "M") -> bytes:
        self.fetch_calls.append((cover_id, size))
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.image


@pytest.fixture
def epub_factory():
    return build_epub


@pytest.fixture
def opf_factory():
    return opf_document


@pytest.fixture
def image_factory():
    return image_bytes


@pytest.fixture
def fake_client():
    return FakeOpenLibraryClient
