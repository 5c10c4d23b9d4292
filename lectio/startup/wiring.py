"""Application initialization / wiring.

Orchestrates: DB init, covers directory, route registration.
"""
from __future__ import annotations
import os
from typing import Any, Optional

from flask import Flask

from lectio import config
from lectio.db import init_engine_once
from lectio.routes.inject import register_all as register_routes
from lectio.utils.logging import get_logger

LOG = get_logger("lectio.startup")


def _ensure_covers_dir() -> None:
    covers_dir = config.covers_dir()
    try:
        os.makedirs(covers_dir, exist_ok=True)
    except OSError:
        LOG.exception("Failed creating covers directory %s", covers_dir)


def init_app(app: Any) -> None:
    LOG.debug("init_app starting")
    init_engine_once()
    LOG.debug("DB engine initialized")
    _ensure_covers_dir()
    register_routes(app)
    LOG.info("App startup wiring complete config=%s", config.summarize_runtime_config())


def create_app(settings: Optional[dict] = None) -> Flask:
    app = Flask("lectio")
    if settings:
        app.config.update(settings)
    init_app(app)
    return app


__all__ = ["init_app", "create_app"]
