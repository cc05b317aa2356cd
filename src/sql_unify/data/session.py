from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from sql_unify.agents.sql_assistant import SqlAssistant
from sql_unify.config.settings import Settings
from sql_unify.db.engine import engine_for
from sql_unify.exceptions.errors import GenerationError, LoadError, MergeError, StorageError
from sql_unify.export.exporter import ExportFormat, export, export_to_file
from sql_unify.history.ledger import HistoryLedger
from sql_unify.logging.logger import get_logger, init_logging
from sql_unify.query.executor import ResultSet, execute
from sql_unify.schema.extractor import TableDescriptor
from sql_unify.sources.registry import SourceDatabase, SourceRegistry
from sql_unify.storage.source_store import NullSourceStore, SourceStore, source_store_for
from sql_unify.unify.engine import UnifiedDatabase, unify

log = get_logger("data.session")


@dataclass
class WorkbenchSession:
    """One user's working set: sources, the unified database built from them, and history.

    Key points:
      - The unified database is rebuilt from scratch on every source-set change and
        swapped in only once the rebuild has finished; the previous one is closed.
      - Source bytes go to the configured SourceStore after every change so a new
        session can call restore() and get the same unified database back.
      - Query history is observational and survives rebuilds; reset() clears it.
    """

    settings: Settings = field(default_factory=Settings)
    store: SourceStore = field(default_factory=NullSourceStore)
    assistant: Optional[SqlAssistant] = None
    registry: SourceRegistry = field(init=False)
    history: HistoryLedger = field(default_factory=HistoryLedger)
    database: UnifiedDatabase = field(init=False)

    def __post_init__(self) -> None:
        self.engine = engine_for(self.settings.engine_type)
        self.registry = SourceRegistry(self.engine)
        self.database = self._build()

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkbenchSession":
        init_logging(settings.log_level, settings.log_file)
        return cls(
            settings=settings,
            store=source_store_for(settings),
            assistant=SqlAssistant.from_settings(settings),
        )

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    @property
    def schema(self) -> List[TableDescriptor]:
        return self.database.schema

    def sources(self) -> List[SourceDatabase]:
        return self.registry.list_sources()

    def add_source(self, name: str, raw_bytes: bytes) -> SourceDatabase:
        return self.add_sources([(name, raw_bytes)])[0]

    def add_sources(self, pairs: Sequence[Tuple[str, bytes]]) -> List[SourceDatabase]:
        """Add an upload batch. If any file fails to load or merge, none of the batch is kept."""
        added: List[SourceDatabase] = []
        try:
            for name, raw in pairs:
                added.append(self.registry.add_source(name, raw))
            self.rebuild()
        except (LoadError, MergeError):
            self._discard(added)
            raise
        self._persist()
        return added

    def remove_source(self, index: int) -> None:
        """Drop a source. The registry only changes once the smaller merge succeeded."""
        self.registry.get(index)
        remaining = [s for s in self.registry.list_sources() if s.index != index]
        self._swap(self._build(remaining))
        self.registry.remove_source(index)
        self._persist()

    def restore(self) -> int:
        """Reload sources saved by an earlier session. A broken store is cleared.

        Sources that load but cannot be merged (e.g. under the error collision
        policy) are dropped again and the store is left as it was.
        """
        restored: List[SourceDatabase] = []
        try:
            pairs = self.store.load_sources()
            for name, raw in pairs:
                restored.append(self.registry.add_source(name, raw))
        except (StorageError, LoadError):
            log.exception("Stored sources unusable; clearing store")
            self.registry.remove_all_sources()
            self.store.clear()
            self.rebuild()
            raise
        try:
            self.rebuild()
        except MergeError:
            log.exception("Stored sources could not be merged")
            self._discard(restored)
            raise
        log.info("Sources restored", extra={"count": len(pairs), "tables": len(self.schema)})
        return len(pairs)

    def rebuild(self) -> UnifiedDatabase:
        return self._swap(self._build())

    def reset(self) -> None:
        self.registry.remove_all_sources()
        self.history.clear()
        self.store.clear()
        self.rebuild()
        log.info("Session reset")

    def _build(self, sources: Optional[Sequence[SourceDatabase]] = None) -> UnifiedDatabase:
        return unify(
            self.registry.list_sources() if sources is None else sources,
            engine=self.engine,
            collision_policy=self.settings.collision_policy,
            provenance_policy=self.settings.provenance_policy,
        )

    def _swap(self, fresh: UnifiedDatabase) -> UnifiedDatabase:
        old, self.database = self.database, fresh
        old.close()
        return fresh

    def _discard(self, sources: Sequence[SourceDatabase]) -> None:
        for src in sources:
            self.registry.remove_source(src.index)

    def _persist(self) -> None:
        self.store.save_sources([(s.name, s.raw_bytes) for s in self.registry.list_sources()])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def run(self, sql_text: str) -> ResultSet:
        """Execute a batch and record it. Failed batches are not recorded."""
        result = execute(self.database, sql_text, splitter=self.settings.statement_splitter)
        self.history.record(sql_text, row_count=result.row_count, elapsed=result.elapsed)
        return result

    def generate_sql(self, prompt: str) -> str:
        if self.assistant is None:
            raise GenerationError("No SQL assistant is configured for this session.")
        return self.assistant.generate_sql(prompt, self.schema)

    def export(self, result: ResultSet, fmt: Union[str, ExportFormat]) -> str:
        return export(result, fmt, sql_table_name=self.settings.export_sql_table_name)

    def export_to_file(self, result: ResultSet, fmt: Union[str, ExportFormat], base_name: str = "query_result") -> Path:
        return export_to_file(
            result,
            fmt,
            self.settings.export_dir,
            base_name=base_name,
            sql_table_name=self.settings.export_sql_table_name,
        )

    def close(self) -> None:
        self.database.close()
        self.registry.remove_all_sources()
