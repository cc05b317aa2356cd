from __future__ import annotations

import json
import random
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sql_unify.bedrock.circuit import CircuitBreaker
from sql_unify.exceptions.errors import GenerationError
from sql_unify.logging.logger import get_logger

log = get_logger("bedrock.client")

MAX_ATTEMPTS = 3
ANTHROPIC_VERSION = "bedrock-2023-05-31"


def _sleep_backoff(attempt: int) -> None:
    delay = 0.5 * (2 ** (attempt - 1)) + random.uniform(0.0, 0.2)
    time.sleep(min(6.0, delay))


# First table entry of the JSON schema context embedded in the system prompt.
_SCHEMA_TABLE_RE = re.compile(r'"name":\s*"([^"]+)"')


@dataclass
class BedrockConfig:
    region: str
    chat_model_id: str
    max_tokens: int = 800
    temperature: float = 0.1
    use_mock: bool = False


class BedrockClient:
    """Thin wrapper over bedrock-runtime for one-shot text completions."""

    def __init__(self, cfg: BedrockConfig, runtime: Any = None):
        self.cfg = cfg
        self.cb = CircuitBreaker()
        self.runtime = runtime
        if self.runtime is None and not cfg.use_mock:
            import boto3

            self.runtime = boto3.client("bedrock-runtime", region_name=cfg.region)

    def chat_text(self, system: str, user: str) -> str:
        """
        Send one system + user exchange to the chat model and return its text.

        - Up to MAX_ATTEMPTS calls with exponential backoff between them.
        - While the circuit breaker is open no call is made at all.
        """
        if self.cfg.use_mock:
            return self._mock_sql(system)
        if not self.cb.allow():
            raise GenerationError("Bedrock circuit breaker is open (chat).")
        if self.runtime is None:
            raise GenerationError("Bedrock runtime client is not initialized.")

        body = json.dumps(self._request_body(system, user)).encode("utf-8")
        last_err: Optional[Exception] = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                text = self._invoke_once(body)
            except Exception as e:
                last_err = e
                self.cb.record_failure()
                log.warning(
                    "Bedrock chat failed",
                    extra={"attempt": attempt, "error": str(e), "model_id": self.cfg.chat_model_id},
                    exc_info=True,
                )
                if attempt < MAX_ATTEMPTS:
                    _sleep_backoff(attempt)
                continue
            self.cb.record_success()
            log.info("Model text head: %r", text[:300])
            return text

        raise GenerationError(f"Bedrock chat call failed after {MAX_ATTEMPTS} attempts.") from last_err

    def _request_body(self, system: str, user: str) -> Dict[str, Any]:
        return {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": self.cfg.max_tokens,
            "temperature": self.cfg.temperature,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }

    def _invoke_once(self, body: bytes) -> str:
        resp = self.runtime.invoke_model(
            modelId=self.cfg.chat_model_id,
            contentType="application/json",
            accept="application/json",
            body=body,
        )
        # StreamingBody can only be read once
        raw = resp["body"].read()
        if not raw:
            raise GenerationError("Empty Bedrock response body.")
        text = self._extract_text(json.loads(raw.decode("utf-8")))
        if not text:
            raise GenerationError("Bedrock returned no text.")
        return text

    @staticmethod
    def _extract_text(payload: Any) -> str:
        if not isinstance(payload, dict):
            return ""
        if "content" in payload:
            # Messages API: {"content": [{"type": "text", "text": "..."}]}
            parts: List[str] = [
                c.get("text", "") for c in payload.get("content") or [] if isinstance(c, dict) and c.get("type") == "text"
            ]
            return "".join(parts).strip()
        for key in ("completion", "generation", "outputText"):
            if payload.get(key):
                return str(payload[key]).strip()
        return ""

    @staticmethod
    def _mock_sql(system: str) -> str:
        m = _SCHEMA_TABLE_RE.search(system or "")
        if not m:
            return "```sql\nSELECT 1;\n```"
        return f"```sql\nSELECT * FROM {m.group(1)} LIMIT 100;\n```"
