from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, inspect as sa_inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dare.config import get_settings
from dare.enums import DISTRICTS, DISTRICT_SUFFIX
from dare.models import Base
from dare.utils import normalize_string_list

log = logging.getLogger(__name__)

_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal = None


def make_engine(url: str) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""
    kwargs: dict = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_fks)
    return engine


def _enable_sqlite_fks(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(url: str | None = None, *, migrate: bool = True) -> Engine:
    """Create the engine and tables, then seed roles.

    Pass ``migrate=False`` to leave older databases untouched so the caller
    can run :func:`migrate_existing_db` itself and keep its report.
    """
    global _engine, _SessionLocal
    with _lock:
        if _engine is not None:
            _engine.dispose()
        if url is None:
            settings = get_settings()
            if not settings.database_url:
                settings.ensure_directories()
            url = settings.resolved_database_url
        _engine = make_engine(url)
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        if migrate:
            migrate_existing_db(_engine)
        _seed_access_control(_engine)
        log.info("Database ready at %s", _engine.url.render_as_string(hide_password=True))
        return _engine


# Columns added since the first release, with the DDL used to backfill them.
_ADDED_COLUMNS = {
    "mentors": {
        "assigned_districts_json": "TEXT NOT NULL DEFAULT '[]'",
    },
    "business_profiles": {
        "youth_refugee_count": "INTEGER NOT NULL DEFAULT 0",
        "youth_idp_count": "INTEGER NOT NULL DEFAULT 0",
        "youth_plwd_count": "INTEGER NOT NULL DEFAULT 0",
    },
}
LEGACY_MENTOR_COLUMNS = ("assigned_district", "assigned_districts")


def migrate_existing_db(engine: Engine) -> dict:
    """Bring databases created by older releases up to the current layout.

    Returns the columns added, the legacy mentor columns found and the
    number of mentors whose districts were folded.
    """
    inspector = sa_inspect(engine)
    added: list[str] = []
    for table, new_columns in _ADDED_COLUMNS.items():
        if not inspector.has_table(table):
            continue
        existing = {col["name"] for col in inspector.get_columns(table)}
        for name, ddl in new_columns.items():
            if name in existing:
                continue
            with engine.begin() as conn:
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
            added.append(f"{table}.{name}")
            log.info("Added column %s.%s", table, name)

    legacy: list[str] = []
    if inspector.has_table("mentors"):
        columns = {col["name"] for col in inspector.get_columns("mentors")}
        legacy = [c for c in LEGACY_MENTOR_COLUMNS if c in columns]
    migrated = fold_legacy_mentor_districts(engine, legacy) if legacy else 0
    return {"added_columns": added, "legacy_columns": legacy, "mentors_migrated": migrated}


def fold_legacy_mentor_districts(engine: Engine, legacy_columns: list[str]) -> int:
    """Merge the old single/multi district columns into ``assigned_districts_json``.

    Legacy columns are nulled once folded so a second run is a no-op.
    Returns the number of mentors rewritten.
    """
    select_cols = ", ".join(["id", "assigned_districts_json", *legacy_columns])
    migrated = 0
    with engine.begin() as conn:
        rows = conn.execute(text(f"SELECT {select_cols} FROM mentors")).mappings().all()
        for row in rows:
            legacy_values = [row[c] for c in legacy_columns if row[c]]
            if not legacy_values:
                continue
            merged: list[str] = []
            for raw in [row["assigned_districts_json"], *legacy_values]:
                for district in normalize_string_list(raw):
                    district = district.removesuffix(DISTRICT_SUFFIX).strip()
                    if district not in DISTRICTS:
                        log.warning("Mentor %s: dropping unknown district %r", row["id"], district)
                        continue
                    if district not in merged:
                        merged.append(district)
            assignments = ", ".join(f"{c} = NULL" for c in legacy_columns)
            conn.execute(
                text(f"UPDATE mentors SET assigned_districts_json = :districts, {assignments} WHERE id = :id"),
                {"districts": json.dumps(merged), "id": row["id"]},
            )
            migrated += 1
    if migrated:
        log.info("Folded legacy district columns for %d mentor(s)", migrated)
    return migrated


def _seed_access_control(engine: Engine) -> None:
    from dare.permissions import seed_defaults
    with Session(engine) as session:
        seed_defaults(session)
        session.commit()


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()  # type: ignore[misc]


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager providing a transactional session scope.

    Usage (CLI commands, scripts, etc.)::

        with session_scope() as session:
            ...
            session.commit()
    """
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def session_generator() -> Generator[Session, None, None]:
    """Generator-based session suitable for FastAPI ``Depends()``."""
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
