"""
Shared SQLAlchemy base and helpers.
"""
from datetime import datetime, date, UTC

from sqlalchemy import Numeric
from sqlalchemy.orm import declarative_base

# PostgreSQL-only types need a SQLite rendering when the test database is used.
from .. import sqlite_compiler_shims  # noqa: F401


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(UTC)


def today_utc() -> date:
    return now_utc().date()


def Money():
    """NUMERIC(12, 2) column type that round-trips as float."""
    return Numeric(12, 2, asdecimal=False)


Base = declarative_base()


def ensure_aware(value):
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
