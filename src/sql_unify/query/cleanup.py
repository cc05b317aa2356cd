from __future__ import annotations

import re

_FENCE_RE = re.compile(r"```(?:sql)?", re.IGNORECASE)
_NOTE_RE = re.compile(r"Note:.*", re.IGNORECASE)
_LINE_COMMENT_RE = re.compile(r"--.*")
_WS_RE = re.compile(r"\s+")
_TRAILING_LIMIT_RE = re.compile(r"\s*LIMIT\s+\d+(\s+OFFSET\s+\d+)?\s*;?\s*$", re.IGNORECASE)


def clean_generated_sql(text: str, strip_limit: bool = True) -> str:
    """Normalize model output into one line of SQL.

    Drops code fences, "Note:" lines and -- comments, collapses whitespace
    and, by default, removes a trailing LIMIT so the full result comes back.
    Comment stripping is textual: a literal containing "--" is cut as well.
    """
    sql = _FENCE_RE.sub("", text or "")
    sql = _NOTE_RE.sub("", sql)
    sql = _LINE_COMMENT_RE.sub("", sql)
    sql = _WS_RE.sub(" ", sql).strip()
    if strip_limit:
        sql = _TRAILING_LIMIT_RE.sub("", sql).strip()
    return sql
