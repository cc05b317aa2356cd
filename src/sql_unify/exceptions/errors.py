from __future__ import annotations

from typing import Optional


class WorkbenchError(Exception):
    """Base exception for sql_unify.

    Every subclass names the stage that failed so a caller can report
    "load failed: ..." versus "execute failed: ..." without inspecting types.
    """

    stage = "workbench"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.stage} failed: {self.message}"


class LoadError(WorkbenchError):
    stage = "load"


class SchemaReadError(WorkbenchError):
    stage = "schema read"


class MergeError(WorkbenchError):
    stage = "merge"


class ExecutionError(WorkbenchError):
    stage = "execute"

    def __init__(self, message: str, statement: Optional[str] = None):
        super().__init__(message)
        self.statement = statement

    def __str__(self) -> str:
        base = super().__str__()
        if self.statement:
            return f"{base} (statement: {self.statement})"
        return base


class ExportError(WorkbenchError):
    stage = "export"


class EngineError(WorkbenchError):
    stage = "engine"


class GenerationError(WorkbenchError):
    stage = "generate"


class StorageError(WorkbenchError):
    stage = "storage"


class ConfigError(WorkbenchError):
    stage = "config"
