"""Database engine & session management."""
from __future__ import annotations

import os, threading
try:  # POSIX file locking for gunicorn multi-worker safety
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - non-POSIX fallback
    fcntl = None  # type: ignore
from contextlib import contextmanager
from typing import Optional, Iterator, Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, scoped_session, Session as SASession
from sqlalchemy.pool import StaticPool

from lectio.utils.logging import get_logger
from lectio.db.models import Base
from lectio import config as app_config

_engine: Optional[Engine] = None
_SessionFactory: Optional[Callable[[], SASession]] = None
_scoped: Optional[scoped_session] = None
_LOCK = threading.Lock()

LOG = get_logger("lectio.db")


def init_engine_once() -> None:
    global _engine, _SessionFactory, _scoped
    if _engine is not None:
        return
    with _LOCK:
        if _engine is not None:
            return
        db_path = app_config.get_db_path()
        LOG.info("Initializing lectio database engine at %s", db_path)
        if db_path == ":memory:":
            # One shared connection so every session sees the same in-memory DB.
            _engine = create_engine(
                "sqlite://",
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            _bind_sessions()
            _safe_create_schema()
            return
        parent_dir = os.path.dirname(os.path.abspath(db_path)) or "."
        os.makedirs(parent_dir, exist_ok=True)
        if not os.access(parent_dir, os.W_OK):
            raise RuntimeError(f"lectio DB directory not writable: {parent_dir}")
        _engine = create_engine(f"sqlite:///{db_path}", future=True)
        _bind_sessions()
        # Cross-process lock so parallel workers don't race on schema creation.
        lock_path = os.path.join(parent_dir, ".lectio_schema.lock")
        if fcntl is not None:
            with open(lock_path, "w") as lf:
                try:
                    fcntl.flock(lf, fcntl.LOCK_EX)
                    _safe_create_schema()
                finally:
                    try:
                        fcntl.flock(lf, fcntl.LOCK_UN)
                    except OSError:  # pragma: no cover
                        pass
        else:  # Fallback without file lock (best effort)
            _safe_create_schema()
        LOG.debug("lectio schema ready")


def _bind_sessions() -> None:
    global _SessionFactory, _scoped
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False, class_=SASession)
    _scoped = scoped_session(_SessionFactory)


def _safe_create_schema():
    """Run metadata.create_all tolerating the 'already exists' race.

    With several workers starting at once SQLite may raise OperationalError
    between checkfirst and DDL; unexpected errors still surface.
    """
    from sqlalchemy.exc import OperationalError  # local import, lightweight
    if _engine is None:
        return
    try:
        Base.metadata.create_all(_engine)  # type: ignore[arg-type]
    except OperationalError as e:  # pragma: no cover - concurrency edge
        if "already exists" in str(e).lower():
            LOG.warning("Schema create encountered existing tables (benign race)")
        else:
            raise


def get_engine() -> Engine:
    if _engine is None:
        init_engine_once()
    return _engine  # type: ignore[return-value]


def get_scoped_session() -> scoped_session:
    if _scoped is None:
        init_engine_once()
    if _scoped is None:
        raise RuntimeError("Scoped session could not be initialized.")
    return _scoped  # type: ignore[return-value]


@contextmanager
def app_session() -> Iterator[SASession]:
    scoped = get_scoped_session()
    sess = scoped()
    try:
        yield sess
        sess.commit()
    except Exception:
        sess.rollback()
        raise
    finally:
        sess.close()


def reset_for_tests(drop: bool = False) -> None:
    global _engine, _SessionFactory, _scoped
    with _LOCK:
        if _scoped is not None:
            _scoped.remove()
        if _engine is not None and drop:
            try:
                Base.metadata.drop_all(_engine)
            except Exception:
                LOG.warning("Failed dropping tables during reset", exc_info=True)
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _SessionFactory = None
        _scoped = None


__all__ = [
    "init_engine_once",
    "get_engine",
    "get_scoped_session",
    "app_session",
    "reset_for_tests",
]
