from __future__ import annotations

import os
import re
import tempfile
from typing import Any, Optional, Sequence

import duckdb

from sql_unify.db.engine import CatalogDialect, EmbeddedConnection, EmbeddedEngine, QueryOutput
from sql_unify.db.utils import DUCKDB
from sql_unify.exceptions.errors import EngineError
from sql_unify.logging.logger import get_logger

log = get_logger("db.duckdb")

DUCKDB_CATALOG = CatalogDialect(
    sql=DUCKDB,
    tables_sql=(
        "SELECT table_name, sql FROM duckdb_tables() "
        "WHERE NOT internal AND NOT temporary "
        "AND database_name = current_database() AND schema_name = current_schema() "
        "ORDER BY table_oid"
    ),
    columns_sql=(
        "SELECT column_name, data_type FROM duckdb_columns() "
        "WHERE database_name = current_database() AND schema_name = current_schema() "
        "AND table_name = ? ORDER BY column_index"
    ),
    table_exists_sql=(
        "SELECT 1 FROM duckdb_tables() "
        "WHERE database_name = current_database() AND schema_name = current_schema() "
        "AND lower(table_name) = lower(?)"
    ),
)

# DuckDB reports a one-column "Count" result for DML and DDL; that is not a result set.
_DML_RE = re.compile(r"^\s*(INSERT|UPDATE|DELETE|CREATE|DROP|ALTER)\b", re.IGNORECASE)


class DuckDBConnection(EmbeddedConnection):
    catalog = DUCKDB_CATALOG

    def __init__(self, con: duckdb.DuckDBPyConnection, backing_file: Optional[str] = None):
        self._con = con
        self._backing_file = backing_file

    def query(self, sql: str, params: Sequence[Any] = ()) -> QueryOutput:
        try:
            self._con.execute(sql, list(params))
            desc = self._con.description
            if desc is None:
                return QueryOutput()
            columns = [d[0] for d in desc]
            rows = self._con.fetchall()
        except duckdb.Error as e:
            raise EngineError(str(e)) from e
        if columns == ["Count"] and _DML_RE.match(sql) and "returning" not in sql.lower():
            return QueryOutput()
        return QueryOutput(columns=columns, rows=rows)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        try:
            self._con.execute(sql, list(params))
        except duckdb.Error as e:
            raise EngineError(str(e)) from e

    def close(self) -> None:
        self._con.close()
        if self._backing_file:
            try:
                os.remove(self._backing_file)
            except OSError:
                log.warning("Could not remove temp database copy", extra={"path": self._backing_file})
            self._backing_file = None


class DuckDBEngine(EmbeddedEngine):
    """DuckDB-backed engine.

    DuckDB cannot open a database from memory, so source images are written
    to a temp file and attached read-only for the lifetime of the connection.
    """

    name = "duckdb"

    def create(self) -> DuckDBConnection:
        return DuckDBConnection(duckdb.connect(database=":memory:"))

    def open(self, raw_bytes: bytes) -> DuckDBConnection:
        if not raw_bytes:
            return self.create()
        fd, path = tempfile.mkstemp(suffix=".duckdb")
        with os.fdopen(fd, "wb") as fh:
            fh.write(raw_bytes)
        try:
            con = duckdb.connect(database=path, read_only=True)
        except duckdb.Error as e:
            os.remove(path)
            raise EngineError(f"Not a valid DuckDB database image: {e}") from e
        return DuckDBConnection(con, backing_file=path)
