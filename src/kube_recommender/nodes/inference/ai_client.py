"""AI completion client seam and its Anthropic-backed implementation."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from kube_recommender.config import INFERENCE_CONFIG
from kube_recommender.errors import AIInferenceFailed, AIResponseInvalid

if TYPE_CHECKING:
    import anthropic

logger = logging.getLogger(__name__)


@runtime_checkable
class AIInferenceClient(Protocol):
    """Structured-completion collaborator.

    Implementations return the decoded JSON object, raise
    :class:`AIInferenceFailed` when the call itself fails and
    :class:`AIResponseInvalid` when the reply is not a JSON object.
    """

    def infer(self, prompt: str, response_schema: dict[str, Any]) -> dict[str, Any]: ...


CAPABILITY_ANALYZER_PROMPT = """You are a Kubernetes platform engineer classifying resource types.

Given a resource type's kind, API group and a schema excerpt, describe what the
resource lets a user build. Use ONLY capability tags from the allowed list you
are given; omit anything that does not fit. Providers must come from the allowed
provider list. Abstractions are short lower-kebab-case concepts.

Complexity tier:
- low: a handful of obvious inputs
- medium: several required inputs or one nested block
- high: many required inputs, deep nesting or cross-resource wiring

Output JSON only, no markdown formatting, matching the response schema."""


def strip_code_fences(response_text: str) -> str:
    """Remove a surrounding markdown code block, if present."""
    text = response_text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_json_object(response_text: str) -> dict[str, Any]:
    """Decode an AI reply into a dict or raise :class:`AIResponseInvalid`."""
    text = strip_code_fences(response_text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIResponseInvalid(f"not JSON ({e.msg})", raw=response_text) from e
    if not isinstance(data, dict):
        raise AIResponseInvalid(f"expected object, got {type(data).__name__}", raw=response_text)
    return data


@dataclass
class AnthropicInferenceClient:
    """Calls Claude for structured inference.

    Usage:
        client = AnthropicInferenceClient()
        if client.is_available:
            data = client.infer(prompt, CAPABILITY_RESPONSE_SCHEMA)
    """

    model: str = INFERENCE_CONFIG.ai_model
    max_tokens: int = INFERENCE_CONFIG.ai_max_tokens
    timeout: float = INFERENCE_CONFIG.ai_timeout_seconds
    system_prompt: str = CAPABILITY_ANALYZER_PROMPT
    _client: anthropic.Anthropic | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Initialize Anthropic client if API key available."""
        if self._client is not None:
            return
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if api_key:
            import anthropic

            self._client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout)
        else:
            logger.info("ANTHROPIC_API_KEY not set, AI-assisted inference disabled")

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def infer(self, prompt: str, response_schema: dict[str, Any]) -> dict[str, Any]:
        if self._client is None:
            msg = "AI client not configured"
            raise AIInferenceFailed(msg)

        user_prompt = (
            f"{prompt}\n\nReturn a JSON object matching this schema:\n"
            f"{json.dumps(response_schema, indent=2)}"
        )
        import anthropic

        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=self.system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            raise AIInferenceFailed(f"Anthropic call failed: {e}") from e

        texts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        if not texts:
            msg = "response contained no text"
            raise AIResponseInvalid(msg)
        return parse_json_object("".join(texts))
