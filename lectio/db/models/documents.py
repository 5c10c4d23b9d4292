"""ORM models for uploaded documents."""
from __future__ import annotations

import datetime
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


class Document(Base):
    """Uploaded EPUB document.

    ``filepath`` is stored relative to the working directory and must stay
    inside the uploads directory; the cover route re-validates it on every
    request.
    """

    __tablename__ = "documents"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    author = Column(Text, nullable=True)
    filepath = Column(Text, nullable=False)
    owner_id = Column(String(64), nullable=True, index=True)
    group_id = Column(String(64), nullable=True, index=True)
    is_public = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "filepath": self.filepath,
            "owner_id": self.owner_id,
            "group_id": self.group_id,
            "is_public": bool(self.is_public),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return "<Document id={0} title={1!r} author={2!r}>".format(self.id, self.title, self.author)


__all__ = ["Base", "Document"]
