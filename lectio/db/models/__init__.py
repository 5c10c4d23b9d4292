"""ORM models aggregate exports."""
from .documents import (  # noqa: F401
	Base,
	Document,
)

__all__ = [
	"Base",
	"Document",
]
