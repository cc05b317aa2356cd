import pytest

from conftest import USERS_A, USERS_B
from sql_unify.exceptions.errors import LoadError


def test_add_source_assigns_indices_in_order(registry, sqlite_image):
    a = registry.add_source("a.db", sqlite_image(USERS_A))
    b = registry.add_source("b.db", sqlite_image(USERS_B))

    assert (a.index, b.index) == (0, 1)
    assert [s.name for s in registry.list_sources()] == ["a.db", "b.db"]


def test_invalid_bytes_raise_load_error_and_are_not_added(registry):
    with pytest.raises(LoadError) as err:
        registry.add_source("notes.txt", b"this is not a database, just text" * 20)

    assert "notes.txt" in str(err.value)
    assert str(err.value).startswith("load failed")
    assert registry.list_sources() == []


def test_empty_bytes_open_an_empty_database(registry):
    src = registry.add_source("empty.db", b"")
    assert src.handle.query(src.handle.catalog.tables_sql).rows == []


def test_indices_stay_stable_after_removal(registry, sqlite_image):
    registry.add_source("a.db", sqlite_image(USERS_A))
    registry.add_source("b.db", sqlite_image(USERS_B))
    registry.remove_source(0)
    c = registry.add_source("c.db", sqlite_image(USERS_B))

    assert [s.index for s in registry.list_sources()] == [1, 2]
    assert c.index == 2


def test_duplicate_names_are_allowed(registry, sqlite_image):
    registry.add_source("same.db", sqlite_image(USERS_A))
    registry.add_source("same.db", sqlite_image(USERS_B))
    assert len(registry) == 2


def test_remove_all_sources(registry, sqlite_image):
    registry.add_source("a.db", sqlite_image(USERS_A))
    registry.remove_all_sources()
    assert registry.list_sources() == []


def test_remove_unknown_source_raises(registry):
    with pytest.raises(KeyError):
        registry.remove_source(42)


def test_wal_mode_file_is_accepted(registry, sqlite_image):
    raw = sqlite_image("PRAGMA journal_mode=WAL;\n" + USERS_A)
    assert raw[18:20] == b"\x02\x02"

    src = registry.add_source("wal.db", raw)

    assert src.handle.query("SELECT name FROM users ORDER BY id").rows == [("ada",), ("grace",)]
