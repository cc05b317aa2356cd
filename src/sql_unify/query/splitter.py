from __future__ import annotations

import sqlite3
from typing import List

import sqlglot
from sqlglot.errors import SqlglotError
from sqlglot.tokens import TokenType

from sql_unify.exceptions.errors import ExecutionError
from sql_unify.unify.policies import StatementSplitter


def split_naive(sql_text: str) -> List[str]:
    """Split on every ';'. Breaks on literals, comments and trigger bodies that contain one."""
    return [s.strip() for s in (sql_text or "").split(";") if s.strip()]


def _ends_statement(chunk: str, dialect: str) -> bool:
    # A ';' inside CREATE TRIGGER ... BEGIN ... END does not end the statement.
    if dialect == "sqlite":
        return sqlite3.complete_statement(chunk + ";")
    return True


def split_tokenized(sql_text: str, dialect: str = "sqlite") -> List[str]:
    """Split on ';' tokens only, keeping each statement's original text.

    Chunks holding no tokens (blank or comment-only) are dropped. For SQLite,
    a ';' inside a trigger body is kept within its CREATE TRIGGER statement.
    """
    text = sql_text or ""
    try:
        tokens = sqlglot.tokenize(text, read=dialect)
    except SqlglotError as e:
        raise ExecutionError(f"Could not tokenize SQL: {e}", statement=text.strip()) from e

    statements: List[str] = []
    start = 0
    seen_token = False
    for tok in tokens:
        if tok.token_type == TokenType.SEMICOLON:
            if not seen_token:
                start = tok.end + 1
                continue
            chunk = text[start:tok.start]
            if _ends_statement(chunk, dialect):
                statements.append(chunk.strip())
                start = tok.end + 1
                seen_token = False
        else:
            seen_token = True
    if seen_token:
        statements.append(text[start:].strip())
    return statements


def split_statements(sql_text: str, splitter: StatementSplitter = StatementSplitter.TOKENIZED,
                     dialect: str = "sqlite") -> List[str]:
    if StatementSplitter(splitter) == StatementSplitter.NAIVE:
        return split_naive(sql_text)
    return split_tokenized(sql_text, dialect=dialect)
