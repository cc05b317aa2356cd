from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

from sql_unify.db.utils import SqlDialect
from sql_unify.exceptions.errors import ConfigError


@dataclass
class QueryOutput:
    """Raw output of one statement. columns is empty when there was no result set."""

    columns: List[str] = field(default_factory=list)
    rows: List[Tuple[Any, ...]] = field(default_factory=list)

    @property
    def has_result_set(self) -> bool:
        return bool(self.columns)


@dataclass(frozen=True)
class CatalogDialect:
    """Catalog queries of one engine.

    tables_sql yields (table_name, create_statement) for user tables only.
    columns_sql takes the table name as its single parameter and yields
    (column_name, declared_type) in column order.
    table_exists_sql takes the table name and yields a row when it exists.
    """

    sql: SqlDialect
    tables_sql: str
    columns_sql: str
    table_exists_sql: str


class EmbeddedConnection(ABC):
    """Handle on one open database of an embedded engine."""

    catalog: CatalogDialect

    @abstractmethod
    def query(self, sql: str, params: Sequence[Any] = ()) -> QueryOutput:
        """Run a single statement and return its result set (if any)."""

    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        """Run a single statement, discarding any result set."""

    @abstractmethod
    def close(self) -> None:
        pass

    @property
    def dialect(self) -> SqlDialect:
        return self.catalog.sql

    def table_exists(self, name: str) -> bool:
        return bool(self.query(self.catalog.table_exists_sql, (name,)).rows)

    def insert_or_ignore(self, table: str, columns: Sequence[str], row: Sequence[Any]) -> None:
        d = self.dialect
        placeholders = ", ".join("?" for _ in columns)
        self.execute(
            f"INSERT OR IGNORE INTO {d.ident(table)} ({d.column_list(columns)}) VALUES ({placeholders})",
            tuple(row),
        )

    def count_rows(self, table: str) -> int:
        out = self.query(f"SELECT COUNT(*) FROM {self.dialect.ident(table)}")
        return int(out.rows[0][0]) if out.rows else 0


class EmbeddedEngine(ABC):
    """Factory for connections of one embedded engine."""

    name: str

    @abstractmethod
    def open(self, raw_bytes: bytes) -> EmbeddedConnection:
        """Open a database image. Raises EngineError when the bytes are not one."""

    @abstractmethod
    def create(self) -> EmbeddedConnection:
        """Create a fresh, empty in-memory database."""


def engine_for(engine_type: str) -> EmbeddedEngine:
    t = (engine_type or "sqlite").strip().lower()
    if t == "sqlite":
        from sql_unify.db.sqlite_engine import SqliteEngine

        return SqliteEngine()
    if t == "duckdb":
        from sql_unify.db.duckdb_engine import DuckDBEngine

        return DuckDBEngine()
    raise ConfigError(f"Unknown engine type: {engine_type}")
