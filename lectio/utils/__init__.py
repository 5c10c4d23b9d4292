"""Utility helpers."""
from .paths import validate_file_path

__all__ = [
    "validate_file_path",
]
