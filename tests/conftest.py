import sqlite3
from typing import Any, Sequence

import pytest

from sql_unify.db.engine import EmbeddedConnection, QueryOutput
from sql_unify.db.sqlite_engine import SQLITE_CATALOG, SqliteEngine
from sql_unify.exceptions.errors import EngineError
from sql_unify.sources.registry import SourceRegistry


@pytest.fixture
def sqlite_image(tmp_path):
    """Build a SQLite database file from a script and return its bytes."""
    counter = {"n": 0}

    def _make(script: str) -> bytes:
        counter["n"] += 1
        path = tmp_path / f"src_{counter['n']}.db"
        con = sqlite3.connect(path)
        try:
            con.executescript(script)
            con.commit()
        finally:
            con.close()
        return path.read_bytes()

    return _make


@pytest.fixture
def registry():
    reg = SourceRegistry(SqliteEngine())
    yield reg
    reg.remove_all_sources()


USERS_A = """
CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
INSERT INTO users VALUES (1, 'ada'), (2, 'grace');
CREATE TABLE orders (order_id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, total REAL);
INSERT INTO orders (user_id, total) VALUES (1, 9.5), (2, 12.0), (2, 3.25);
"""

USERS_B = """
CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
INSERT INTO users VALUES (2, 'linus'), (3, 'barbara');
"""

PRODUCTS = """
CREATE TABLE products (sku TEXT PRIMARY KEY, price DECIMAL(10,2), image BLOB);
INSERT INTO products VALUES ('p-1', 4.99, x'cafe'), ('p-2', 10, NULL);
"""


class BrokenConnection(EmbeddedConnection):
    """A handle whose every query fails, like a corrupt source."""

    catalog = SQLITE_CATALOG

    def query(self, sql: str, params: Sequence[Any] = ()) -> QueryOutput:
        raise EngineError("database disk image is malformed")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        raise EngineError("database disk image is malformed")

    def close(self) -> None:
        pass
