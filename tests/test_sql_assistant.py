import io
import json
from unittest.mock import MagicMock

import pytest

from sql_unify.agents.sql_assistant import SqlAssistant, build_system_prompt
from sql_unify.bedrock.client import BedrockClient, BedrockConfig
from sql_unify.exceptions.errors import GenerationError
from sql_unify.schema.extractor import ColumnDescriptor, TableDescriptor

SCHEMA = [
    TableDescriptor(
        id="0-users",
        name="users",
        source_name="a.db",
        source_index=0,
        columns=[ColumnDescriptor("id", "INTEGER"), ColumnDescriptor("name", "TEXT")],
    )
]


def _response(text: str) -> dict:
    payload = {"content": [{"type": "text", "text": text}]}
    return {"body": io.BytesIO(json.dumps(payload).encode("utf-8"))}


def _client(runtime) -> BedrockClient:
    return BedrockClient(BedrockConfig(region="us-east-1", chat_model_id="test-model"), runtime=runtime)


def test_generated_sql_is_cleaned():
    runtime = MagicMock()
    runtime.invoke_model.return_value = _response("```sql\nSELECT COUNT(*) FROM users\nLIMIT 10\n```")

    sql = SqlAssistant(_client(runtime)).generate_sql("how many users?", SCHEMA)

    assert sql == "SELECT COUNT(*) FROM users"
    body = json.loads(runtime.invoke_model.call_args.kwargs["body"])
    assert '"name": "users"' in body["system"]
    assert "how many users?" in body["messages"][0]["content"]


def test_failures_are_retried_then_raised(monkeypatch):
    monkeypatch.setattr("sql_unify.bedrock.client._sleep_backoff", lambda attempt: None)
    runtime = MagicMock()
    runtime.invoke_model.side_effect = RuntimeError("throttled")

    with pytest.raises(GenerationError):
        SqlAssistant(_client(runtime)).generate_sql("anything", SCHEMA)

    assert runtime.invoke_model.call_count == 3


def test_empty_prompt_is_rejected():
    with pytest.raises(GenerationError):
        SqlAssistant(_client(MagicMock())).generate_sql("   ")


def test_mock_mode_works_offline():
    client = BedrockClient(BedrockConfig(region="us-east-1", chat_model_id="m", use_mock=True))
    assert SqlAssistant(client).generate_sql("show users", SCHEMA) == "SELECT * FROM users"


def test_prompt_without_schema():
    assert "schema" not in build_system_prompt(None)
