from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from sql_unify.db.engine import EmbeddedConnection
from sql_unify.exceptions.errors import EngineError, SchemaReadError
from sql_unify.logging.logger import get_logger
from sql_unify.sources.registry import SourceDatabase

log = get_logger("schema.extractor")


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    declared_type: str


@dataclass(frozen=True)
class ExtractedTable:
    name: str
    create_statement: str
    columns: List[ColumnDescriptor] = field(default_factory=list)


@dataclass(frozen=True)
class TableDescriptor:
    """One table of the unified schema snapshot, with its provenance."""

    id: str
    name: str
    source_name: str
    source_index: int
    columns: List[ColumnDescriptor] = field(default_factory=list)


def read_columns(con: EmbeddedConnection, table: str) -> List[ColumnDescriptor]:
    out = con.query(con.catalog.columns_sql, (table,))
    return [ColumnDescriptor(name=str(r[0]), declared_type=str(r[1] or "")) for r in out.rows]


def list_tables(con: EmbeddedConnection) -> List[ExtractedTable]:
    """Read every user table of one database. EngineError propagates."""
    tables: List[ExtractedTable] = []
    for name, create_sql in con.query(con.catalog.tables_sql).rows:
        if not create_sql:
            log.warning("Table has no definition statement; skipped", extra={"table": name})
            continue
        tables.append(
            ExtractedTable(name=str(name), create_statement=str(create_sql), columns=read_columns(con, str(name)))
        )
    return tables


def extract_schema(source: SourceDatabase) -> List[ExtractedTable]:
    try:
        tables = list_tables(source.handle)
    except EngineError as e:
        log.error("Catalog read failed", extra={"source": source.name, "index": source.index, "error": e.message})
        raise SchemaReadError(f"{source.name}: {e.message}") from e
    log.info("Schema extracted", extra={"source": source.name, "tables": len(tables)})
    return tables
