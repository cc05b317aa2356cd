from __future__ import annotations
from typing import Optional, Sequence

from sql_unify.bedrock.client import BedrockClient, BedrockConfig
from sql_unify.config.settings import Settings
from sql_unify.exceptions.errors import GenerationError
from sql_unify.logging.logger import get_logger
from sql_unify.query.cleanup import clean_generated_sql
from sql_unify.schema.context import build_schema_context
from sql_unify.schema.extractor import TableDescriptor

log = get_logger("agents.sql_assistant")

STYLE_INSTRUCTION = (
    "SQL keywords in UPPERCASE, table and column names in lowercase, use aliases where helpful, "
    "format as a single-line SQL query with clear spacing."
)


def build_system_prompt(schema: Optional[Sequence[TableDescriptor]]) -> str:
    base = "You are a SQL expert. Convert this natural language request into a clean, one-line SQLite query"
    if schema:
        return f"{base} for the following schema: {build_schema_context(schema).to_json()}. {STYLE_INSTRUCTION}"
    return f"{base}. {STYLE_INSTRUCTION}"


class SqlAssistant:
    """Natural language to SQL through the chat model, followed by cleanup."""

    def __init__(self, client: BedrockClient, strip_limit: bool = True):
        self.client = client
        self.strip_limit = strip_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlAssistant":
        return cls(
            BedrockClient(
                BedrockConfig(
                    region=settings.aws_region,
                    chat_model_id=settings.bedrock_chat_model_id,
                    max_tokens=settings.llm_max_tokens,
                    temperature=settings.llm_temperature,
                    use_mock=settings.use_mock_bedrock,
                )
            )
        )

    def generate_sql(self, prompt: str, schema: Optional[Sequence[TableDescriptor]] = None) -> str:
        if not (prompt or "").strip():
            raise GenerationError("Prompt is empty.")
        user = f"Convert this to SQL (return only the SQL query, no explanations):\n\n{prompt}"
        raw = self.client.chat_text(build_system_prompt(schema), user)
        sql = clean_generated_sql(raw, strip_limit=self.strip_limit)
        if not sql:
            raise GenerationError("Model returned no SQL.")
        log.info("SQL generated", extra={"prompt_head": prompt[:120], "sql_head": sql[:300]})
        return sql
