import pytest

from sql_unify.config.settings import load_settings
from sql_unify.exceptions.errors import ConfigError
from sql_unify.unify.policies import CollisionPolicy, ProvenancePolicy, StatementSplitter

CONFIG = """
app:
  log_level: DEBUG
engine:
  type: duckdb
unify:
  collision_policy: rename
  provenance_policy: last
query:
  splitter: naive
storage:
  backend: s3
  s3_bucket: my-bucket
models:
  use_mock: true
"""

ENV_KEYS = [
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_FILE",
    "ENGINE_TYPE",
    "COLLISION_POLICY",
    "PROVENANCE_POLICY",
    "STATEMENT_SPLITTER",
    "EXPORT_DIR",
    "STORAGE_BACKEND",
    "STORAGE_LOCAL_DIR",
    "STORAGE_S3_BUCKET",
    "STORAGE_S3_PREFIX",
    "USE_MOCK_BEDROCK",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "test.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


def test_yaml_values_are_loaded(config_file):
    s = load_settings(str(config_file))

    assert s.log_level == "DEBUG"
    assert s.engine_type == "duckdb"
    assert s.collision_policy is CollisionPolicy.RENAME
    assert s.provenance_policy is ProvenancePolicy.LAST
    assert s.statement_splitter is StatementSplitter.NAIVE
    assert s.storage_backend == "s3"
    assert s.storage_s3_bucket == "my-bucket"
    assert s.use_mock_bedrock is True
    assert s.export_sql_table_name == "query_results"


def test_environment_overrides_yaml(config_file, monkeypatch):
    monkeypatch.setenv("COLLISION_POLICY", "ERROR")
    monkeypatch.setenv("ENGINE_TYPE", "sqlite")
    monkeypatch.setenv("USE_MOCK_BEDROCK", "false")
    monkeypatch.setenv("LLM_MAX_TOKENS", "256")

    s = load_settings(str(config_file))

    assert s.collision_policy is CollisionPolicy.ERROR
    assert s.engine_type == "sqlite"
    assert s.use_mock_bedrock is False
    assert s.llm_max_tokens == 256


@pytest.mark.parametrize("key", ["COLLISION_POLICY", "STATEMENT_SPLITTER", "ENGINE_TYPE", "STORAGE_BACKEND"])
def test_invalid_choice_raises_config_error(config_file, monkeypatch, key):
    monkeypatch.setenv(key, "bogus")
    with pytest.raises(ConfigError) as err:
        load_settings(str(config_file))
    assert "bogus" in str(err.value)


def test_missing_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APP_ENV", "nowhere")
    with pytest.raises(FileNotFoundError):
        load_settings()
