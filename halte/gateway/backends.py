"""
Oracle clients — one round trip per call to a generative model.

Supported backends (selected via GatewayConfig.backend):
  • "anthropic"  — Claude models via the anthropic SDK
  • "openai"     — GPT models via the openai SDK
  • "stub"       — deterministic no-network stub for tests and offline use

Every client exposes the same coroutine::

    raw_text = await client.send(prompt, schema=None, media=None)

and raises on transport failure. Retries are disabled in the SDKs: whether
to re-generate is the caller's decision.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from halte.exceptions import TransportError

from .models import Media

__all__ = ["GatewayConfig", "OracleClient", "build_client", "BACKENDS"]

logger = logging.getLogger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────────

@dataclass
class GatewayConfig:
    """Runtime configuration for the generation gateway."""
    backend:     str   = "anthropic"      # "anthropic" | "openai" | "stub"
    model:       str   = ""               # empty = use backend default
    api_key:     str   = ""               # empty = SDK reads its own env var
    max_tokens:  int   = 2048
    temperature: float = 0.7
    timeout:     float = 60.0             # per-request timeout in seconds

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Build a config from HALTE_BACKEND / HALTE_MODEL / HALTE_API_KEY."""
        return cls(
            backend=os.environ.get("HALTE_BACKEND", "anthropic"),
            model=os.environ.get("HALTE_MODEL", ""),
            api_key=os.environ.get("HALTE_API_KEY", ""),
        )

    @property
    def resolved_model(self) -> str:
        return self.model or _DEFAULT_MODELS.get(self.backend, "")


_DEFAULT_MODELS = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai":    "gpt-4o",
    "stub":      "stub-v1",
}


class OracleClient(Protocol):
    async def send(
        self,
        prompt: str,
        schema: Optional[dict[str, Any]] = None,
        media: Optional[Media] = None,
    ) -> str: ...


def _json_instruction(schema: dict[str, Any]) -> str:
    return (
        "\n\nRespond with a single JSON object that satisfies this JSON schema. "
        "Output only the JSON, no prose and no markdown fences.\n"
        + json.dumps(schema, ensure_ascii=False)
    )


# ── Backend adapters ──────────────────────────────────────────────────────────

class _AnthropicBackend:
    def __init__(self, config: GatewayConfig) -> None:
        try:
            import anthropic  # type: ignore
        except ImportError as exc:
            raise ImportError(
                "anthropic package not installed. Run: pip install anthropic"
            ) from exc
        kwargs: dict = {"max_retries": 0, "timeout": config.timeout}
        if config.api_key:
            kwargs["api_key"] = config.api_key
        try:
            self._client = anthropic.AsyncAnthropic(**kwargs)
        except anthropic.AnthropicError as exc:
            raise TransportError(f"Cannot configure the anthropic client: {exc}") from exc
        self._config = config

    async def send(self, prompt, schema=None, media=None) -> str:
        content: list[dict[str, Any]] = []
        if media is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media.mime_type,
                    "data": base64.b64encode(media.data).decode("ascii"),
                },
            })
        text = prompt + (_json_instruction(schema) if schema else "")
        content.append({"type": "text", "text": text})

        resp = await self._client.messages.create(
            model=self._config.resolved_model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            messages=[{"role": "user", "content": content}],
        )
        logger.debug(
            "anthropic tokens: in=%d out=%d", resp.usage.input_tokens, resp.usage.output_tokens
        )
        return "".join(
            block.text for block in resp.content if getattr(block, "type", "") == "text"
        )


class _OpenAIBackend:
    def __init__(self, config: GatewayConfig) -> None:
        try:
            import openai  # type: ignore
        except ImportError as exc:
            raise ImportError(
                "openai package not installed. Run: pip install openai"
            ) from exc
        kwargs: dict = {"max_retries": 0, "timeout": config.timeout}
        if config.api_key:
            kwargs["api_key"] = config.api_key
        try:
            self._client = openai.AsyncOpenAI(**kwargs)
        except openai.OpenAIError as exc:
            raise TransportError(f"Cannot configure the openai client: {exc}") from exc
        self._config = config

    async def send(self, prompt, schema=None, media=None) -> str:
        text = prompt + (_json_instruction(schema) if schema else "")
        if media is not None:
            b64 = base64.b64encode(media.data).decode("ascii")
            content: Any = [
                {"type": "image_url", "image_url": {"url": f"data:{media.mime_type};base64,{b64}"}},
                {"type": "text", "text": text},
            ]
        else:
            content = text

        kwargs: dict = {}
        if schema:
            kwargs["response_format"] = {"type": "json_object"}
        resp = await self._client.chat.completions.create(
            model=self._config.resolved_model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            messages=[{"role": "user", "content": content}],
            **kwargs,
        )
        usage = resp.usage
        if usage:
            logger.debug(
                "openai tokens: in=%d out=%d", usage.prompt_tokens, usage.completion_tokens
            )
        return resp.choices[0].message.content or ""


class _StubBackend:
    """Deterministic stub — no network. Fills JSON schemas with placeholder values."""

    def __init__(self, config: GatewayConfig) -> None:
        pass  # config not used

    async def send(self, prompt, schema=None, media=None) -> str:
        if schema:
            return json.dumps(_example_for(schema, "stub"), ensure_ascii=False)
        first_line = prompt.strip().splitlines()[0][:80]
        return f"Stub response for: {first_line}"


def _example_for(schema: dict[str, Any], name: str) -> Any:
    """Smallest instance satisfying the common subset of JSON schema used here."""
    if "enum" in schema:
        return schema["enum"][0]
    kind = schema.get("type", "object")
    if kind == "object":
        props = schema.get("properties", {})
        return {key: _example_for(sub, key) for key, sub in props.items()}
    if kind == "array":
        count = max(schema.get("minItems", 1), 1)
        return [_example_for(schema.get("items", {"type": "string"}), name) for _ in range(count)]
    if kind == "integer":
        return schema.get("minimum", 1)
    if kind == "number":
        return float(schema.get("minimum", 1))
    if kind == "boolean":
        return False
    return f"{name} (stub)"


BACKENDS = {
    "anthropic": _AnthropicBackend,
    "openai":    _OpenAIBackend,
    "stub":      _StubBackend,
}


def build_client(config: GatewayConfig) -> OracleClient:
    """Instantiate the client for config.backend."""
    backend_cls = BACKENDS.get(config.backend)
    if backend_cls is None:
        raise ValueError(
            f"Unknown oracle backend: {config.backend!r}. "
            f"Choose from: {list(BACKENDS)}"
        )
    return backend_cls(config)
