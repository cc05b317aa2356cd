from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from sql_unify.schema.extractor import TableDescriptor


@dataclass(frozen=True)
class SchemaContext:
    tables: List[Dict[str, Any]]

    def to_json(self) -> str:
        return json.dumps({"tables": self.tables}, ensure_ascii=False)


def build_schema_context(schema: Sequence[TableDescriptor]) -> SchemaContext:
    """Build the compact schema description handed to the SQL generator.

    The table name comes first in each entry and the source database is kept
    so the model can tell same-named tables apart.
    """
    tables = [
        {
            "name": t.name,
            "id": t.id,
            "database": t.source_name,
            "columns": [{"name": c.name, "type": c.declared_type} for c in t.columns],
        }
        for t in schema
    ]
    return SchemaContext(tables=tables)
