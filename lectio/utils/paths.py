"""Path traversal guard for stored document file paths."""
from __future__ import annotations

import os
from typing import Optional

from lectio import config as app_config
from lectio.utils.logging import get_logger

LOG = get_logger("lectio.paths")


def validate_file_path(filepath: str, allowed_dir: Optional[str] = None) -> Optional[str]:
    """Return the absolute path for ``filepath`` or None if it escapes ``allowed_dir``.

    Relative paths resolve against the working directory, the same way the
    upload handler stores them.
    """
    if not filepath:
        return None
    base = os.path.realpath(allowed_dir or app_config.uploads_dir())
    resolved = os.path.realpath(os.path.join(os.getcwd(), filepath))
    if resolved != base and not resolved.startswith(base + os.sep):
        LOG.warning("path traversal guard triggered path=%s", filepath)
        return None
    return resolved


__all__ = ["validate_file_path"]
