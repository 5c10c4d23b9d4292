"""Route registration, called from startup wiring."""
from __future__ import annotations
from typing import Any

from .covers import register_covers
from .health import register_health


def register_all(app: Any) -> None:
    register_covers(app)
    register_health(app)


__all__ = ["register_all"]
