from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sql_unify.db.engine import EmbeddedConnection, EmbeddedEngine, engine_for
from sql_unify.exceptions.errors import EngineError, LoadError
from sql_unify.logging.logger import get_logger

log = get_logger("sources.registry")


@dataclass(frozen=True)
class SourceDatabase:
    index: int
    name: str
    handle: EmbeddedConnection = field(repr=False, compare=False)
    raw_bytes: bytes = field(default=b"", repr=False, compare=False)


class SourceRegistry:
    """Ordered set of loaded source databases.

    Indices are handed out from a counter and never reused while the registry
    lives, so table ids built from them stay stable when a source is removed.
    Names are display-only and may repeat.
    """

    def __init__(self, engine: Optional[EmbeddedEngine] = None):
        self.engine = engine or engine_for("sqlite")
        self._sources: Dict[int, SourceDatabase] = {}
        self._next_index = 0

    def add_source(self, name: str, raw_bytes: bytes) -> SourceDatabase:
        try:
            handle = self.engine.open(raw_bytes)
        except EngineError as e:
            log.error("Source rejected", extra={"source": name, "error": e.message})
            raise LoadError(f"{name}: {e.message}") from e

        src = SourceDatabase(index=self._next_index, name=name, handle=handle, raw_bytes=bytes(raw_bytes))
        self._sources[src.index] = src
        self._next_index += 1
        log.info("Source added", extra={"source": name, "index": src.index, "size": len(raw_bytes)})
        return src

    def remove_source(self, index: int) -> None:
        src = self._sources.pop(index, None)
        if src is None:
            raise KeyError(f"No source with index {index}")
        src.handle.close()
        log.info("Source removed", extra={"source": src.name, "index": index})

    def remove_all_sources(self) -> None:
        for src in self._sources.values():
            src.handle.close()
        count = len(self._sources)
        self._sources.clear()
        log.info("All sources removed", extra={"count": count})

    def list_sources(self) -> List[SourceDatabase]:
        # dicts keep insertion order
        return list(self._sources.values())

    def get(self, index: int) -> SourceDatabase:
        return self._sources[index]

    def __len__(self) -> int:
        return len(self._sources)
