from __future__ import annotations
import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union

from sql_unify.db.utils import SqlDialect, SQLITE, json_safe
from sql_unify.exceptions.errors import ExportError
from sql_unify.logging.logger import get_logger
from sql_unify.query.executor import ResultSet

log = get_logger("export.exporter")

DEFAULT_SQL_TABLE = "query_results"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    SQL = "sql"


def _header(result: ResultSet) -> List[str]:
    if result.columns:
        return list(result.columns)
    cols: List[str] = []
    for row in result.rows:
        for k in row:
            if k not in cols:
                cols.append(k)
    if not cols:
        raise ExportError("Nothing to export: the result has no columns")
    return cols


def to_csv(result: ResultSet) -> str:
    cols = _header(result)
    frame = ResultSet(columns=cols, rows=result.rows).to_frame()
    return frame.to_csv(index=False, lineterminator="\n")


def to_json(result: ResultSet) -> str:
    _header(result)
    rows: List[Dict[str, Any]] = [{k: json_safe(v) for k, v in row.items()} for row in result.rows]
    return json.dumps(rows, indent=2, ensure_ascii=False)


def _sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    return "'" + str(value).replace("'", "''") + "'"


def to_sql(result: ResultSet, table_name: str = DEFAULT_SQL_TABLE, dialect: SqlDialect = SQLITE) -> str:
    """CREATE TABLE with every column typed TEXT, then one INSERT per row."""
    cols = _header(result)
    table = dialect.ident(table_name)
    col_list = dialect.column_list(cols)

    lines = [f"CREATE TABLE {table} ("]
    lines.append(",\n".join(f"  {dialect.ident(c)} TEXT" for c in cols))
    lines.append(");")
    out = "\n".join(lines) + "\n"

    inserts = []
    for row in result.rows:
        values = ", ".join(_sql_literal(row.get(c)) for c in cols)
        inserts.append(f"INSERT INTO {table} ({col_list}) VALUES ({values});")
    if inserts:
        out += "\n" + "\n".join(inserts) + "\n"
    return out


def export(result: ResultSet, fmt: Union[str, ExportFormat], sql_table_name: str = DEFAULT_SQL_TABLE) -> str:
    try:
        fmt = ExportFormat(str(getattr(fmt, "value", fmt)).lower())
    except ValueError as e:
        raise ExportError(f"Unsupported export format: {fmt}") from e

    if fmt == ExportFormat.CSV:
        text = to_csv(result)
    elif fmt == ExportFormat.JSON:
        text = to_json(result)
    else:
        text = to_sql(result, table_name=sql_table_name)
    log.info("Exported result", extra={"format": fmt.value, "rows": result.row_count, "chars": len(text)})
    return text


def export_to_file(
    result: ResultSet,
    fmt: Union[str, ExportFormat],
    out_dir: str,
    base_name: str = "query_result",
    sql_table_name: str = DEFAULT_SQL_TABLE,
) -> Path:
    text = export(result, fmt, sql_table_name=sql_table_name)
    suffix = ExportFormat(str(getattr(fmt, "value", fmt)).lower()).value
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    path = Path(out_dir) / f"{base_name}.{suffix}"
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        log.exception("Export write failed")
        raise ExportError(f"Could not write {path}") from e
    log.info("Exported file", extra={"path": str(path)})
    return path
