"""Tests for embedded EPUB cover extraction."""
from __future__ import annotations

import pytest

from lectio.services import epub_cover
from lectio.services.epub_cover import MalformedEpubError


def test_properties_cover_image_wins_over_meta_and_id(epub_factory, opf_factory):
    opf = opf_factory(
        manifest=(
            '<item id="cover" href="images/by-id.jpg" media-type="image/jpeg"/>'
            '<item id="meta-target" href="images/by-meta.jpg" media-type="image/jpeg"/>'
            '<item id="art" href="images/by-properties.jpg" media-type="image/jpeg" properties="cover-image"/>'
        ),
        metadata='<meta name="cover" content="meta-target"/>',
    )
    data = epub_factory(
        opf,
        {
            "OEBPS/images/by-id.jpg": b"id",
            "OEBPS/images/by-meta.jpg": b"meta",
            "OEBPS/images/by-properties.jpg": b"properties",
        },
    )

    found = epub_cover.locate(data)

    assert found is not None
    assert found.data == b"properties"
    assert found.path == "OEBPS/images/by-properties.jpg"
    assert found.mimetype == "image/jpeg"


def test_properties_token_list_is_matched(epub_factory, opf_factory):
    opf = opf_factory(
        manifest='<item id="x1" href="c.png" media-type="image/png" properties="svg cover-image"/>'
    )
    found = epub_cover.locate(epub_factory(opf, {"OEBPS/c.png": b"png"}))

    assert found is not None
    assert found.data == b"png"
    assert found.mimetype == "image/png"


def test_meta_cover_resolves_through_manifest_id(epub_factory, opf_factory):
    opf = opf_factory(
        manifest=(
            '<item id="cover" href="wrong.jpg" media-type="image/jpeg"/>'
            '<item id="img-main" href="front.gif" media-type="image/gif"/>'
        ),
        metadata='<meta name="cover" content="img-main"/>',
    )
    data = epub_factory(opf, {"OEBPS/front.gif": b"gif", "OEBPS/wrong.jpg": b"wrong"})

    found = epub_cover.locate(data)

    assert found is not None
    assert found.data == b"gif"
    assert found.mimetype == "image/gif"


def test_id_fallback_used_without_hints(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="cover-image" href="cover.webp" media-type="image/webp"/>')

    found = epub_cover.locate(epub_factory(opf, {"OEBPS/cover.webp": b"webp"}))

    assert found is not None
    assert found.data == b"webp"
    assert found.mimetype == "image/webp"


@pytest.mark.parametrize("item_id", ["Cover", "COVERIMAGE", "cover"])
def test_id_fallback_is_case_insensitive(epub_factory, opf_factory, item_id):
    opf = opf_factory(manifest=f'<item id="{item_id}" href="c.jpg" media-type="image/jpeg"/>')

    found = epub_cover.locate(epub_factory(opf, {"OEBPS/c.jpg": b"jpg"}))

    assert found is not None
    assert found.data == b"jpg"


def test_id_fallback_ignores_lookalike_ids(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="cover-page" href="cover.xhtml" media-type="application/xhtml+xml"/>')

    assert epub_cover.locate(epub_factory(opf, {"OEBPS/cover.xhtml": b"<html/>"})) is None


def test_missing_cover_file_is_not_found(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="c" href="missing.jpg" media-type="image/jpeg" properties="cover-image"/>')

    assert epub_cover.locate(epub_factory(opf)) is None


def test_no_cover_reference_is_not_found(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="text" href="text.xhtml" media-type="application/xhtml+xml"/>')

    assert epub_cover.locate(epub_factory(opf, {"OEBPS/text.xhtml": b"<html/>"})) is None


def test_relative_href_segments_are_resolved(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="c" href="../images/cover.png" media-type="image/png" properties="cover-image"/>')

    found = epub_cover.locate(epub_factory(opf, {"images/cover.png": b"png"}))

    assert found is not None
    assert found.path == "images/cover.png"
    assert found.mimetype == "image/png"


def test_root_level_opf_and_dot_slash_href(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="cover" href="./cover.jpg" media-type="image/jpeg"/>')

    found = epub_cover.locate(epub_factory(opf, {"cover.jpg": b"root"}, opf_path="content.opf"))

    assert found is not None
    assert found.data == b"root"


def test_percent_encoded_href_matches_archive_name(epub_factory, opf_factory):
    opf = opf_factory(manifest='<item id="cover" href="my%20cover.jpg" media-type="image/jpeg"/>')

    found = epub_cover.locate(epub_factory(opf, {"OEBPS/my cover.jpg": b"spaced"}))

    assert found is not None
    assert found.data == b"spaced"


def test_not_a_zip_is_malformed():
    with pytest.raises(MalformedEpubError):
        epub_cover.locate(b"definitely not a zip archive")


def test_missing_container_is_malformed(epub_factory, opf_factory):
    data = epub_factory(opf_factory(manifest=""), container="")

    with pytest.raises(MalformedEpubError, match="container"):
        epub_cover.locate(data)


def test_container_without_rootfile_is_malformed(epub_factory, opf_factory):
    container = '<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container"><rootfiles/></container>'
    data = epub_factory(opf_factory(manifest=""), container=container)

    with pytest.raises(MalformedEpubError, match="rootfile"):
        epub_cover.locate(data)


def test_missing_opf_is_malformed(epub_factory):
    with pytest.raises(MalformedEpubError, match="OPF"):
        epub_cover.locate(epub_factory(None))


def test_resolve_href_strips_leading_dot_slash():
    assert epub_cover.resolve_href("OPS/package.opf", "./img/c.jpg") == "OPS/img/c.jpg"
    assert epub_cover.resolve_href("package.opf", "./c.jpg") == "c.jpg"


def test_guess_mimetype_defaults_to_jpeg():
    assert epub_cover.guess_mimetype("a/b.PNG") == "image/png"
    assert epub_cover.guess_mimetype("a/b.jpeg") == "image/jpeg"
    assert epub_cover.guess_mimetype("a/b") == "image/jpeg"
