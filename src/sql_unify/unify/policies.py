from __future__ import annotations

from enum import Enum


class CollisionPolicy(str, Enum):
    """What unification does when a table name already exists in the target."""

    SKIP = "skip"      # reuse the existing table, copy rows into it
    ERROR = "error"    # abort unification with MergeError
    RENAME = "rename"  # create <name>_<source_index> instead


class ProvenancePolicy(str, Enum):
    """Which declaring source a shared table is attributed to."""

    FIRST = "first"
    LAST = "last"


class StatementSplitter(str, Enum):
    TOKENIZED = "tokenized"
    NAIVE = "naive"
