from __future__ import annotations

import datetime as _dt
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence


@dataclass(frozen=True)
class SqlDialect:
    """Identifier quoting and the dialect name sqlglot knows the engine by."""

    name: str
    ident_quote: str = '"'

    def ident(self, name: str) -> str:
        q = self.ident_quote
        return q + name.replace(q, q + q) + q

    def column_list(self, names: Sequence[str]) -> str:
        return ", ".join(self.ident(n) for n in names)


SQLITE = SqlDialect(name="sqlite")
DUCKDB = SqlDialect(name="duckdb")


def normalize_value(value: Any) -> Any:
    """Map an engine value onto the result value set: None, int, float, str.

    Blobs become lowercase hex text; dates and times their ISO form.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, str)):
        return value
    if isinstance(value, float):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    return str(value)


def json_safe(value: Any) -> Any:
    """Non-finite floats have no JSON literal; emit null for them."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value
