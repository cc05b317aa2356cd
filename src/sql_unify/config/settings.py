from __future__ import annotations
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar
import yaml
from dotenv import load_dotenv

from sql_unify.exceptions.errors import ConfigError
from sql_unify.unify.policies import CollisionPolicy, ProvenancePolicy, StatementSplitter

load_dotenv()

E = TypeVar("E", bound=Enum)

ENGINE_TYPES = ("sqlite", "duckdb")
STORAGE_BACKENDS = ("none", "local", "s3")


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)

def _env_bool(key: str, default: bool = False) -> bool:
    val = os.environ.get(key)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "y", "on")

def _enum(enum_cls: Type[E], raw: Optional[str], key: str) -> E:
    value = (raw or "").strip().lower()
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{key}={raw!r} is not one of: {allowed}") from e

def _choice(raw: Optional[str], allowed: tuple, key: str) -> str:
    value = (raw or "").strip().lower()
    if value not in allowed:
        raise ConfigError(f"{key}={raw!r} is not one of: {', '.join(allowed)}")
    return value


@dataclass(frozen=True)
class Settings:
    env: str = "dev"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Embedded engine backing both the sources and the unified database
    engine_type: str = "sqlite"

    # Merge policies
    collision_policy: CollisionPolicy = CollisionPolicy.SKIP
    provenance_policy: ProvenancePolicy = ProvenancePolicy.FIRST

    # Query execution
    statement_splitter: StatementSplitter = StatementSplitter.TOKENIZED

    export_dir: str = "exports"
    export_sql_table_name: str = "query_results"

    # Source byte persistence (none / local / s3)
    storage_backend: str = "none"
    storage_local_dir: str = "data/sources"
    storage_s3_bucket: str = ""
    storage_s3_prefix: str = "sql-unify/sources"

    use_mock_bedrock: bool = False
    aws_region: str = "us-east-1"
    bedrock_chat_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 800


def load_settings(path: Optional[str] = None) -> Settings:
    app_env = _env("APP_ENV", "dev")
    cfg_path = Path(path) if path else Path("config") / f"{app_env}.yaml"
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    cfg: Dict[str, Any] = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    defaults = Settings()

    app_cfg = cfg.get("app") or {}
    log_level = _env("LOG_LEVEL", str(app_cfg.get("log_level", defaults.log_level)))
    log_file = _env("LOG_FILE", app_cfg.get("log_file")) or None

    engine_cfg = cfg.get("engine") or {}
    engine_type = _choice(
        _env("ENGINE_TYPE", str(engine_cfg.get("type", defaults.engine_type))), ENGINE_TYPES, "engine.type"
    )

    unify_cfg = cfg.get("unify") or {}
    collision_policy = _enum(
        CollisionPolicy,
        _env("COLLISION_POLICY", str(unify_cfg.get("collision_policy", defaults.collision_policy.value))),
        "unify.collision_policy",
    )
    provenance_policy = _enum(
        ProvenancePolicy,
        _env("PROVENANCE_POLICY", str(unify_cfg.get("provenance_policy", defaults.provenance_policy.value))),
        "unify.provenance_policy",
    )

    query_cfg = cfg.get("query") or {}
    statement_splitter = _enum(
        StatementSplitter,
        _env("STATEMENT_SPLITTER", str(query_cfg.get("splitter", defaults.statement_splitter.value))),
        "query.splitter",
    )

    export_cfg = cfg.get("export") or {}
    export_dir = _env("EXPORT_DIR", str(export_cfg.get("export_dir", defaults.export_dir)))
    export_sql_table_name = str(export_cfg.get("sql_table_name", defaults.export_sql_table_name))

    # ------------------------------ Storage ------------------------------
    st_cfg = cfg.get("storage") or {}
    storage_backend = _choice(
        _env("STORAGE_BACKEND", str(st_cfg.get("backend", defaults.storage_backend))),
        STORAGE_BACKENDS,
        "storage.backend",
    )
    storage_local_dir = _env("STORAGE_LOCAL_DIR", str(st_cfg.get("local_dir", defaults.storage_local_dir)))
    storage_s3_bucket = _env("STORAGE_S3_BUCKET", str(st_cfg.get("s3_bucket", ""))) or ""
    storage_s3_prefix = _env("STORAGE_S3_PREFIX", str(st_cfg.get("s3_prefix", defaults.storage_s3_prefix)))

    models_cfg = cfg.get("models") or {}
    aws_region = _env("AWS_REGION", str(models_cfg.get("region", defaults.aws_region)))
    bedrock_chat_model_id = _env(
        "BEDROCK_CHAT_MODEL_ID", str(models_cfg.get("chat_model_id", defaults.bedrock_chat_model_id))
    )
    llm_temperature = float(_env("LLM_TEMPERATURE", str(models_cfg.get("temperature", defaults.llm_temperature))))
    llm_max_tokens = int(_env("LLM_MAX_TOKENS", str(models_cfg.get("max_tokens", defaults.llm_max_tokens))))

    return Settings(
        env=app_env,
        log_level=log_level,
        log_file=log_file,
        engine_type=engine_type,
        collision_policy=collision_policy,
        provenance_policy=provenance_policy,
        statement_splitter=statement_splitter,
        export_dir=export_dir,
        export_sql_table_name=export_sql_table_name,
        storage_backend=storage_backend,
        storage_local_dir=storage_local_dir,
        storage_s3_bucket=storage_s3_bucket,
        storage_s3_prefix=storage_s3_prefix,
        use_mock_bedrock=_env_bool("USE_MOCK_BEDROCK", bool(models_cfg.get("use_mock", False))),
        aws_region=aws_region,
        bedrock_chat_model_id=bedrock_chat_model_id,
        llm_temperature=llm_temperature,
        llm_max_tokens=llm_max_tokens,
    )
