"""Repository helpers for stored documents."""
from __future__ import annotations

from typing import Optional

from lectio.db import app_session
from lectio.db.models import Document
from lectio.utils.logging import get_logger

LOG = get_logger("lectio.documents_repo")


def get_document(document_id: str) -> Optional[Document]:
    """Fetch a document by id, returning None when missing."""
    if not document_id:
        return None
    with app_session() as session:
        return session.get(Document, document_id)


def add_document(
    *,
    title: str,
    filepath: str,
    author: Optional[str] = None,
    owner_id: Optional[str] = None,
    group_id: Optional[str] = None,
    is_public: bool = False,
    document_id: Optional[str] = None,
) -> Document:
    """Insert a document row and return it (detached, attributes loaded)."""
    record = Document(
        title=title,
        author=author,
        filepath=filepath,
        owner_id=owner_id,
        group_id=group_id,
        is_public=is_public,
    )
    if document_id:
        record.id = document_id
    with app_session() as session:
        session.add(record)
        session.flush()
        LOG.debug("document added id=%s title=%s", record.id, title)
        return record


__all__ = ["get_document", "add_document"]
