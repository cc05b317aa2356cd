import pytest

from conftest import USERS_A, PRODUCTS, BrokenConnection
from sql_unify.exceptions.errors import SchemaReadError
from sql_unify.schema.extractor import ColumnDescriptor, extract_schema
from sql_unify.sources.registry import SourceDatabase


def test_extracts_tables_statements_and_columns(registry, sqlite_image):
    src = registry.add_source("a.db", sqlite_image(USERS_A))

    tables = extract_schema(src)

    # sqlite_sequence (created by AUTOINCREMENT) is an engine table and is excluded
    assert [t.name for t in tables] == ["users", "orders"]
    users = tables[0]
    assert users.create_statement.startswith("CREATE TABLE users")
    assert users.columns == [
        ColumnDescriptor(name="id", declared_type="INTEGER"),
        ColumnDescriptor(name="name", declared_type="TEXT"),
    ]


def test_declared_types_are_kept_raw(registry, sqlite_image):
    src = registry.add_source("p.db", sqlite_image(PRODUCTS))

    (products,) = extract_schema(src)

    assert [c.declared_type for c in products.columns] == ["TEXT", "DECIMAL(10,2)", "BLOB"]


def test_unreadable_catalog_raises_schema_read_error():
    src = SourceDatabase(index=3, name="corrupt.db", handle=BrokenConnection())

    with pytest.raises(SchemaReadError) as err:
        extract_schema(src)

    assert "corrupt.db" in str(err.value)
    assert err.value.stage == "schema read"
