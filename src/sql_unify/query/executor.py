from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pandas as pd

from sql_unify.db.utils import normalize_value
from sql_unify.exceptions.errors import EngineError, ExecutionError
from sql_unify.logging.logger import get_logger
from sql_unify.query.splitter import split_statements
from sql_unify.unify.engine import UnifiedDatabase
from sql_unify.unify.policies import StatementSplitter

log = get_logger("query.executor")


@dataclass
class ResultSet:
    """Rows accumulated over every statement of a batch.

    Rows keep the keys of the statement that produced them, so rows from
    different statements can have different keys. columns is the union in
    first-seen order, which is what a tabular view needs.
    """

    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    statement_count: int = 0
    elapsed: float = 0.0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [[row.get(c) for c in self.columns] for row in self.rows],
            columns=self.columns,
            dtype=object,
        )


def _add_columns(acc: List[str], columns: List[str]) -> None:
    for c in columns:
        if c not in acc:
            acc.append(c)


def execute(
    db: UnifiedDatabase,
    sql_text: str,
    splitter: StatementSplitter = StatementSplitter.TOKENIZED,
) -> ResultSet:
    """Run every statement of sql_text, in order, against the unified database.

    The first failing statement aborts the batch with ExecutionError; rows
    gathered so far are discarded, side effects of earlier statements stay.
    """
    con = db.connection
    statements = split_statements(sql_text, splitter=splitter, dialect=con.dialect.name)

    started = time.perf_counter()
    columns: List[str] = []
    rows: List[Dict[str, Any]] = []
    for i, stmt in enumerate(statements, start=1):
        log.info("Executing statement", extra={"position": i, "total": len(statements), "sql_head": stmt[:300]})
        try:
            out = con.query(stmt)
        except EngineError as e:
            log.error("Statement failed; batch aborted", extra={"position": i, "error": e.message})
            raise ExecutionError(e.message, statement=stmt) from e
        if not out.has_result_set:
            continue
        _add_columns(columns, out.columns)
        for raw in out.rows:
            rows.append({c: normalize_value(v) for c, v in zip(out.columns, raw)})

    elapsed = time.perf_counter() - started
    log.info("Batch executed", extra={"statements": len(statements), "rows": len(rows), "elapsed": elapsed})
    return ResultSet(columns=columns, rows=rows, statement_count=len(statements), elapsed=elapsed)
