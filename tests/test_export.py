import json

import pytest

from sql_unify.exceptions.errors import ExportError
from sql_unify.export.exporter import ExportFormat, export, export_to_file
from sql_unify.query.executor import ResultSet


def test_csv_quotes_embedded_commas():
    result = ResultSet(columns=["a", "b"], rows=[{"a": 1, "b": "x,y"}])
    assert export(result, "csv") == 'a,b\n1,"x,y"\n'


def test_csv_escapes_quotes_and_blanks_nulls():
    result = ResultSet(columns=["q", "n"], rows=[{"q": 'say "hi"', "n": None}])
    assert export(result, ExportFormat.CSV) == 'q,n\n"say ""hi""",\n'


def test_csv_with_header_and_no_rows_is_valid():
    assert export(ResultSet(columns=["a", "b"]), "csv") == "a,b\n"


def test_csv_fills_missing_keys_of_heterogeneous_rows():
    result = ResultSet(columns=["x", "y"], rows=[{"x": 1}, {"y": 2.5}])
    assert export(result, "csv") == "x,y\n1,\n,2.5\n"


def test_header_is_derived_from_rows_when_columns_missing():
    result = ResultSet(rows=[{"k": "v"}])
    assert export(result, "csv") == "k\nv\n"


@pytest.mark.parametrize("fmt", ["csv", "json", "sql"])
def test_nothing_to_export_raises(fmt):
    with pytest.raises(ExportError) as err:
        export(ResultSet(), fmt)
    assert err.value.stage == "export"


def test_json_uses_native_values():
    result = ResultSet(
        columns=["i", "f", "s", "n"],
        rows=[{"i": 1, "f": 2.5, "s": "t", "n": None}, {"i": 2, "f": float("inf"), "s": "ü", "n": None}],
    )
    parsed = json.loads(export(result, "json"))
    assert parsed == [{"i": 1, "f": 2.5, "s": "t", "n": None}, {"i": 2, "f": None, "s": "ü", "n": None}]


def test_sql_script_types_everything_as_text():
    result = ResultSet(columns=["id", "name"], rows=[{"id": 1, "name": "O'Brien"}, {"id": 2, "name": None}])

    script = export(result, "sql")

    assert script == (
        'CREATE TABLE "query_results" (\n'
        '  "id" TEXT,\n'
        '  "name" TEXT\n'
        ");\n"
        "\n"
        "INSERT INTO \"query_results\" (\"id\", \"name\") VALUES ('1', 'O''Brien');\n"
        "INSERT INTO \"query_results\" (\"id\", \"name\") VALUES ('2', NULL);\n"
    )


def test_sql_script_table_name_is_configurable():
    script = export(ResultSet(columns=["a"], rows=[{"a": 1}]), "sql", sql_table_name="snapshot")
    assert script.startswith('CREATE TABLE "snapshot"')


def test_unknown_format_raises():
    with pytest.raises(ExportError):
        export(ResultSet(columns=["a"], rows=[{"a": 1}]), "xlsx")


def test_export_to_file_writes_named_file(tmp_path):
    path = export_to_file(ResultSet(columns=["a"], rows=[{"a": 1}]), "json", str(tmp_path / "out"))
    assert path.name == "query_result.json"
    assert json.loads(path.read_text(encoding="utf-8")) == [{"a": 1}]
