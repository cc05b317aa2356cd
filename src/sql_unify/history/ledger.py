from __future__ import annotations

import itertools
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterator, List

import pandas as pd

from sql_unify.logging.logger import get_logger

log = get_logger("history.ledger")


@dataclass(frozen=True)
class QueryRecord:
    id: int
    timestamp: datetime
    sql_text: str
    elapsed: float
    row_count: int


class HistoryLedger:
    """Append-only list of executed queries. Never consulted by execution."""

    def __init__(self) -> None:
        self._records: List[QueryRecord] = []
        # ids keep increasing across clear()
        self._ids = itertools.count(1)

    def record(self, sql_text: str, row_count: int, elapsed: float) -> QueryRecord:
        rec = QueryRecord(
            id=next(self._ids),
            timestamp=datetime.now(),
            sql_text=sql_text,
            elapsed=float(elapsed),
            row_count=int(row_count),
        )
        self._records.append(rec)
        log.info("Query recorded", extra={"query_id": rec.id, "rows": rec.row_count, "elapsed": rec.elapsed})
        return rec

    def clear(self) -> None:
        self._records.clear()
        log.info("History cleared")

    def list(self) -> List[QueryRecord]:
        return list(self._records)

    def __iter__(self) -> Iterator[QueryRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def to_frame(self) -> pd.DataFrame:
        cols = ["id", "timestamp", "sql_text", "elapsed", "row_count"]
        return pd.DataFrame([asdict(r) for r in self._records], columns=cols)
