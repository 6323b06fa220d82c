"""SQLite compilation shims for PostgreSQL-specific SQLAlchemy types.

Registers a compiler for JSONB when the active dialect is SQLite so that
`Base.metadata.create_all()` succeeds for the in-memory database used by the
test suite. JSONB operators are not emulated; the column is stored as JSON.

Usage: imported for side-effects by taskbill.db.models.
"""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(element, compiler, **kw):  # pragma: no cover - trivial
    return "JSON"
