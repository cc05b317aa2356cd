from __future__ import annotations

import os
import sqlite3
import tempfile
from typing import Any, Sequence

from sql_unify.db.engine import CatalogDialect, EmbeddedConnection, EmbeddedEngine, QueryOutput
from sql_unify.db.utils import SQLITE
from sql_unify.exceptions.errors import EngineError
from sql_unify.logging.logger import get_logger

log = get_logger("db.sqlite")

SQLITE_CATALOG = CatalogDialect(
    sql=SQLITE,
    tables_sql="SELECT name, sql FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'",
    columns_sql="SELECT name, type FROM pragma_table_info(?) ORDER BY cid",
    table_exists_sql="SELECT 1 FROM sqlite_master WHERE type='table' AND lower(name) = lower(?)",
)


def _rollback_journal_image(raw_bytes: bytes) -> bytes:
    """Mark a WAL-mode image as rollback-journal so it can live in memory.

    Header bytes 18/19 are the file format read/write versions: 2 means WAL,
    which an in-memory database cannot open. The page content is the same.
    """
    image = bytearray(raw_bytes)
    if image[:16] == b"SQLite format 3\x00" and image[18:20] == b"\x02\x02":
        image[18:20] = b"\x01\x01"
    return bytes(image)


class SqliteConnection(EmbeddedConnection):
    catalog = SQLITE_CATALOG

    def __init__(self, con: sqlite3.Connection):
        self._con = con

    def query(self, sql: str, params: Sequence[Any] = ()) -> QueryOutput:
        try:
            cur = self._con.execute(sql, tuple(params))
            if cur.description is None:
                return QueryOutput()
            columns = [d[0] for d in cur.description]
            return QueryOutput(columns=columns, rows=cur.fetchall())
        except sqlite3.Error as e:
            raise EngineError(str(e)) from e

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        try:
            self._con.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise EngineError(str(e)) from e

    def close(self) -> None:
        self._con.close()


class SqliteEngine(EmbeddedEngine):
    name = "sqlite"

    def _connect(self) -> sqlite3.Connection:
        # Autocommit: statements take effect as they run, nothing is held open.
        return sqlite3.connect(":memory:", isolation_level=None)

    def create(self) -> SqliteConnection:
        return SqliteConnection(self._connect())

    def open(self, raw_bytes: bytes) -> SqliteConnection:
        con = self._connect()
        if not raw_bytes:
            return SqliteConnection(con)
        try:
            if hasattr(con, "deserialize"):
                con.deserialize(_rollback_journal_image(raw_bytes))
            else:
                self._restore_from_file(con, raw_bytes)
            # deserialize accepts anything; the first catalog read validates the image
            con.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
        except (sqlite3.Error, OverflowError) as e:
            con.close()
            raise EngineError(f"Not a valid SQLite database image: {e}") from e
        return SqliteConnection(con)

    @staticmethod
    def _restore_from_file(con: sqlite3.Connection, raw_bytes: bytes) -> None:
        fd, path = tempfile.mkstemp(suffix=".sqlite")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(raw_bytes)
            src = sqlite3.connect(path)
            try:
                src.backup(con)
            finally:
                src.close()
        finally:
            try:
                os.remove(path)
            except OSError:
                log.warning("Could not remove temp database copy", extra={"path": path})
