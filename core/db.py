"""
Engine, session factory and schema-revision checks for the content store.

Services open sessions through ``DB.SessionLocal``; the engine is built once
by ``init_db`` during app startup and released by ``dispose_db``.
"""

from __future__ import annotations

import os
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import core.config as config

ALEMBIC_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class DB:
    """Process-wide engine and session factory."""

    engine = None
    SessionLocal = None


def _alembic_config():
    try:
        from alembic.config import Config
    except ImportError as exc:
        raise RuntimeError("Alembic is required for schema management") from exc

    cfg = Config(os.path.join(ALEMBIC_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(ALEMBIC_DIR, "alembic"))
    cfg.set_main_option("sqlalchemy.url", config.DATABASE_URL)
    return cfg


def _get_schema_revisions(engine) -> tuple[Optional[str], Optional[str]]:
    """Return ``(current, head)`` alembic revisions for ``engine``."""
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    head = ScriptDirectory.from_config(_alembic_config()).get_current_head()
    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()
    return current, head


def _upgrade_or_fail(engine) -> None:
    current, head = _get_schema_revisions(engine)
    if current == head:
        config.logger.info("schema_current", extra={"revision": head})
        return

    if not config.AUTO_MIGRATE_ON_STARTUP:
        raise RuntimeError(
            f"Content schema is at {current}, expected {head}. "
            "Run 'alembic upgrade head' or set AUTO_MIGRATE_ON_STARTUP=true."
        )

    from alembic import command

    command.upgrade(_alembic_config(), "head")
    upgraded, _ = _get_schema_revisions(engine)
    if upgraded != head:
        raise RuntimeError(f"Schema upgrade stopped at {upgraded}, expected {head}")
    config.logger.info("schema_upgraded", extra={"from_revision": current, "to_revision": head})


def _enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str):
    """Create an engine for ``url`` with backend-specific connection options."""
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        _enable_sqlite_foreign_keys(engine)
        return engine
    return create_engine(url, pool_pre_ping=True)


def init_db() -> None:
    config.validate_and_prepare_config()

    DB.engine = build_engine(config.DATABASE_URL)
    DB.SessionLocal = sessionmaker(bind=DB.engine)
    config.logger.info("db_connected", extra={"backend": config.DB_BACKEND})

    _upgrade_or_fail(DB.engine)


def dispose_db() -> None:
    if DB.engine is not None:
        DB.engine.dispose()
        config.logger.info("db_disposed")
    DB.engine = None
    DB.SessionLocal = None
