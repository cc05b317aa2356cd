from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from sql_unify.db.engine import EmbeddedConnection, EmbeddedEngine, engine_for
from sql_unify.exceptions.errors import EngineError, MergeError, SchemaReadError
from sql_unify.logging.logger import get_logger
from sql_unify.schema.extractor import ExtractedTable, TableDescriptor, extract_schema, read_columns
from sql_unify.sources.registry import SourceDatabase
from sql_unify.unify.policies import CollisionPolicy, ProvenancePolicy

log = get_logger("unify.engine")

UNKNOWN_SOURCE = "Unknown"


@dataclass
class SourceReport:
    """What one source contributed to the unified database."""

    index: int
    name: str
    schema_error: Optional[str] = None
    tables_created: List[str] = field(default_factory=list)
    tables_reused: List[str] = field(default_factory=list)
    tables_renamed: Dict[str, str] = field(default_factory=dict)
    tables_failed: Dict[str, str] = field(default_factory=dict)
    rows_read: int = 0
    rows_inserted: int = 0
    rows_ignored: int = 0
    rows_failed: int = 0


@dataclass
class UnificationReport:
    sources: List[SourceReport] = field(default_factory=list)

    @property
    def rows_inserted(self) -> int:
        return sum(s.rows_inserted for s in self.sources)

    @property
    def rows_ignored(self) -> int:
        return sum(s.rows_ignored for s in self.sources)

    @property
    def rows_failed(self) -> int:
        return sum(s.rows_failed for s in self.sources)

    @property
    def failed_sources(self) -> List[SourceReport]:
        return [s for s in self.sources if s.schema_error]


@dataclass
class UnifiedDatabase:
    """The merged target database plus the schema snapshot taken after the merge."""

    connection: EmbeddedConnection
    schema: List[TableDescriptor] = field(default_factory=list)
    report: UnificationReport = field(default_factory=UnificationReport)

    def table_names(self) -> List[str]:
        return [t.name for t in self.schema]

    def table(self, name: str) -> TableDescriptor:
        for t in self.schema:
            if t.name.lower() == name.lower():
                return t
        raise KeyError(name)

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> "UnifiedDatabase":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def rename_table_ddl(create_statement: str, new_name: str, dialect: str) -> str:
    """Rewrite a CREATE TABLE statement so it creates new_name instead."""
    tree = sqlglot.parse_one(create_statement, read=dialect)
    if not isinstance(tree, exp.Create):
        raise MergeError(f"Not a CREATE statement: {create_statement[:80]}")
    table = tree.find(exp.Table)
    if table is None:
        raise MergeError(f"No table name in: {create_statement[:80]}")
    table.set("this", exp.to_identifier(new_name, quoted=True))
    return tree.sql(dialect=dialect)


class _Merger:
    def __init__(
        self,
        target: EmbeddedConnection,
        collision_policy: CollisionPolicy,
        provenance_policy: ProvenancePolicy,
    ):
        self.target = target
        self.collision_policy = collision_policy
        self.provenance_policy = provenance_policy
        self.report = UnificationReport()
        # (source, lower-cased table names it declares), registration order
        self.declared: List[Tuple[SourceDatabase, Set[str]]] = []
        # lower-cased physical name -> source that created it
        self.creators: Dict[str, SourceDatabase] = {}
        self.renamed: Dict[str, SourceDatabase] = {}

    def _target_has(self, name: str) -> bool:
        try:
            return self.target.table_exists(name)
        except EngineError as e:
            raise MergeError(f"Target catalog query failed: {e.message}") from e

    def _target_count(self, name: str) -> int:
        try:
            return self.target.count_rows(name)
        except EngineError as e:
            raise MergeError(f"Target row count failed for {name}: {e.message}") from e

    def merge_source(self, src: SourceDatabase) -> None:
        rep = SourceReport(index=src.index, name=src.name)
        self.report.sources.append(rep)
        try:
            tables = extract_schema(src)
        except SchemaReadError as e:
            rep.schema_error = e.message
            log.warning("Source skipped; schema unreadable", extra={"source": src.name, "error": e.message})
            return

        self.declared.append((src, {t.name.lower() for t in tables}))
        for t in tables:
            target_name = self._create_table(src, t, rep)
            if target_name is not None:
                self._copy_rows(src, t, target_name, rep)

        log.info(
            "Source merged",
            extra={
                "source": src.name,
                "index": src.index,
                "tables_created": len(rep.tables_created),
                "tables_reused": len(rep.tables_reused),
                "rows_inserted": rep.rows_inserted,
                "rows_ignored": rep.rows_ignored,
                "rows_failed": rep.rows_failed,
            },
        )

    def _free_name(self, base: str) -> str:
        candidate = base
        n = 2
        while self._target_has(candidate):
            candidate = f"{base}_{n}"
            n += 1
        return candidate

    def _create_table(self, src: SourceDatabase, t: ExtractedTable, rep: SourceReport) -> Optional[str]:
        ddl = t.create_statement
        target_name = t.name

        if self._target_has(t.name):
            owner = self.creators.get(t.name.lower())
            owner_name = owner.name if owner else UNKNOWN_SOURCE
            if self.collision_policy == CollisionPolicy.SKIP:
                rep.tables_reused.append(t.name)
                log.info("Table exists; reusing", extra={"table": t.name, "source": src.name, "owner": owner_name})
                return t.name
            if self.collision_policy == CollisionPolicy.ERROR:
                raise MergeError(f"Table '{t.name}' from {src.name} collides with the one from {owner_name}")

            target_name = self._free_name(f"{t.name}_{src.index}")
            try:
                ddl = rename_table_ddl(t.create_statement, target_name, self.target.dialect.name)
            except (SqlglotError, MergeError) as e:
                rep.tables_failed[t.name] = str(e)
                log.warning("Could not rewrite table definition", extra={"table": t.name, "source": src.name})
                return None

        try:
            self.target.execute(ddl)
        except EngineError as e:
            rep.tables_failed[t.name] = e.message
            log.warning("Create table failed", extra={"table": t.name, "source": src.name, "error": e.message})
            return None

        self.creators[target_name.lower()] = src
        if target_name != t.name:
            self.renamed[target_name.lower()] = src
            rep.tables_renamed[t.name] = target_name
        else:
            rep.tables_created.append(t.name)
        return target_name

    def _copy_rows(self, src: SourceDatabase, t: ExtractedTable, target_name: str, rep: SourceReport) -> None:
        try:
            data = src.handle.query(f"SELECT * FROM {src.handle.dialect.ident(t.name)}")
        except EngineError as e:
            rep.tables_failed[t.name] = e.message
            log.warning("Source table unreadable", extra={"table": t.name, "source": src.name, "error": e.message})
            return
        if not data.rows:
            return

        before = self._target_count(target_name)
        failed = 0
        for row in data.rows:
            try:
                self.target.insert_or_ignore(target_name, data.columns, row)
            except EngineError as e:
                failed += 1
                log.warning(
                    "Row insert failed; row dropped",
                    extra={"table": target_name, "source": src.name, "error": e.message},
                )
        inserted = self._target_count(target_name) - before

        rep.rows_read += len(data.rows)
        rep.rows_inserted += inserted
        rep.rows_failed += failed
        rep.rows_ignored += len(data.rows) - inserted - failed

    def _provenance(self, name: str) -> Optional[SourceDatabase]:
        key = name.lower()
        if key in self.renamed:
            return self.renamed[key]
        declaring = [src for src, names in self.declared if key in names]
        if not declaring:
            return None
        return declaring[0] if self.provenance_policy == ProvenancePolicy.FIRST else declaring[-1]

    def snapshot(self) -> List[TableDescriptor]:
        try:
            names = [str(r[0]) for r in self.target.query(self.target.catalog.tables_sql).rows]
            columns = {n: read_columns(self.target, n) for n in names}
        except EngineError as e:
            raise MergeError(f"Target catalog query failed: {e.message}") from e

        out: List[TableDescriptor] = []
        for name in names:
            src = self._provenance(name)
            idx = src.index if src else -1
            out.append(
                TableDescriptor(
                    id=f"{idx}-{name}",
                    name=name,
                    source_name=src.name if src else UNKNOWN_SOURCE,
                    source_index=idx,
                    columns=columns[name],
                )
            )
        return out


def unify(
    sources: Sequence[SourceDatabase],
    engine: Optional[EmbeddedEngine] = None,
    collision_policy: CollisionPolicy = CollisionPolicy.SKIP,
    provenance_policy: ProvenancePolicy = ProvenancePolicy.FIRST,
) -> UnifiedDatabase:
    """Merge sources, in order, into one fresh in-memory database.

    Per-source schema failures and per-table / per-row failures are logged and
    recorded in the report; only a failing target database (or a collision
    under CollisionPolicy.ERROR) raises MergeError.
    """
    engine = engine or engine_for("sqlite")
    try:
        target = engine.create()
    except EngineError as e:
        raise MergeError(f"Could not create unified database: {e.message}") from e

    merger = _Merger(target, CollisionPolicy(collision_policy), ProvenancePolicy(provenance_policy))
    try:
        for src in sources:
            merger.merge_source(src)
        schema = merger.snapshot()
    except MergeError:
        target.close()
        raise

    log.info(
        "Unification complete",
        extra={
            "sources": len(sources),
            "tables": len(schema),
            "rows_inserted": merger.report.rows_inserted,
            "rows_ignored": merger.report.rows_ignored,
            "rows_failed": merger.report.rows_failed,
        },
    )
    return UnifiedDatabase(connection=target, schema=schema, report=merger.report)
