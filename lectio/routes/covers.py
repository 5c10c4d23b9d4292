"""Cover image endpoints.

``GET /api/cover/<document_id>`` always answers 200 with an image once the
document, its stored path and its file check out: embedded cover, Open
Library cover, or the SVG placeholder.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional

from flask import Blueprint, Response, g, jsonify, request

from lectio import config
from lectio.db.models import Document
from lectio.db.repositories import documents_repo
from lectio.services import cover_service
from lectio.services.cover_service import ORIGIN_EMBEDDED
from lectio.services.rate_limit import FixedWindowRateLimiter, client_key
from lectio.utils.logging import get_logger
from lectio.utils.paths import validate_file_path

LOG = get_logger("lectio.routes.covers")

bp = Blueprint("covers", __name__, url_prefix="/api/cover")

_LIMITER: Optional[FixedWindowRateLimiter] = None
_LIMITER_LOCK = threading.Lock()


def get_limiter() -> FixedWindowRateLimiter:
    global _LIMITER
    if _LIMITER is not None:
        return _LIMITER
    with _LIMITER_LOCK:
        if _LIMITER is None:
            _LIMITER = FixedWindowRateLimiter(config.api_rate_limit(), config.api_rate_window())
        return _LIMITER


def set_limiter(limiter: Optional[FixedWindowRateLimiter]) -> None:
    global _LIMITER
    with _LIMITER_LOCK:
        _LIMITER = limiter


def _is_access_allowed(document: Document) -> bool:
    # ACL hook; permission checks live with the auth layer.
    return True


@bp.before_request
def _rate_limit():
    decision = get_limiter().hit(client_key(request.headers, request.remote_addr, request.path))
    g.cover_rate_limit = decision
    if not decision.allowed:
        resp = jsonify({"error": "too_many_requests"})
        resp.status_code = 429
        return resp
    return None


@bp.after_request
def _rate_limit_headers(response: Response) -> Response:
    decision = getattr(g, "cover_rate_limit", None)
    if decision is not None:
        response.headers.update(decision.headers())
    return response


@bp.route("/stats", methods=["GET"])
def get_cover_stats():
    return jsonify(cover_service.cover_stats())


@bp.route("/<document_id>", methods=["GET"])
def get_cover(document_id: str):
    document = documents_repo.get_document(document_id)
    if document is None:
        return jsonify({"error": "document_not_found"}), 404
    if not _is_access_allowed(document):
        return jsonify({"error": "forbidden"}), 403

    filepath = validate_file_path(document.filepath)
    if not filepath:
        return jsonify({"error": "invalid_file_path"}), 400
    target = Path(filepath)
    if not target.is_file():
        return jsonify({"error": "file_not_found"}), 404
    try:
        file_bytes = target.read_bytes()
    except OSError as exc:
        LOG.error("document read failed id=%s path=%s err=%s", document_id, filepath, exc)
        return jsonify({"error": "read_failed"}), 500

    cover = cover_service.resolve_cover(file_bytes, document.title, document.author)
    LOG.debug("cover served id=%s origin=%s", document_id, cover.origin)

    resp = Response(cover.data, status=200, mimetype=cover.mimetype)
    resp.headers["Cache-Control"] = cover.cache_control
    origin = config.cors_origin()
    if cover.origin == ORIGIN_EMBEDDED and origin:
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Credentials"] = "true"
    return resp


def register_covers(app: Any) -> None:
    if getattr(app, "_lectio_covers_bp", None):  # idempotent
        return
    app.register_blueprint(bp)
    setattr(app, "_lectio_covers_bp", bp)
    LOG.debug("covers blueprint registered")


__all__ = ["register_covers", "bp", "get_limiter", "set_limiter"]
