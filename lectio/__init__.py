"""Lectio cover service package root.

Serves EPUB cover images for stored documents: covers embedded in the
archive first, then Open Library lookups backed by a disk cache, then a
generated placeholder.
"""

__all__ = [
]
