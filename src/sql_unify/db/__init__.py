"""Embedded relational engines.

Sources and the unified database are both held by an embedded engine. The
rest of the package only talks to the narrow capability interface in
``sql_unify.db.engine`` (open / create / query / execute) so the backend can
be swapped.

Backends supported:
  - SQLite : stdlib sqlite3, in-memory images (default)
  - DuckDB : duckdb, database files opened read-only from a temp copy
"""
