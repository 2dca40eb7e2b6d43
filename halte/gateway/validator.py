"""
ResponseValidator — turns raw oracle text into a checked JSON value.

Checks performed (in order):
  1. non_empty     — the reply has non-whitespace content
  2. unfenced      — markdown ```json fences and surrounding prose are dropped
  3. json_parse    — the remaining text decodes as JSON
  4. schema        — the value satisfies the request's JSON schema (Draft 7)

Any failed check raises MalformedResponseError; values are never coerced.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from halte.exceptions import MalformedResponseError

__all__ = ["ResponseValidator"]

logger = logging.getLogger(__name__)


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def _first_json_block(text: str) -> str:
    """Best-effort extraction of the outermost {...} or [...] block."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    end = text.rfind("}" if text[start] == "{" else "]")
    return text[start:end + 1] if end > start else text


class ResponseValidator:
    """Parses and validates JSON replies; compiled validators are cached per schema."""

    def __init__(self) -> None:
        self._compiled: dict[str, Draft7Validator] = {}

    def _validator_for(self, schema: dict[str, Any]) -> Draft7Validator:
        key = json.dumps(schema, sort_keys=True)
        validator = self._compiled.get(key)
        if validator is None:
            try:
                Draft7Validator.check_schema(schema)
            except SchemaError as exc:
                raise ValueError(f"Invalid response schema: {exc.message}") from exc
            validator = Draft7Validator(schema)
            self._compiled[key] = validator
        return validator

    def parse_text(self, raw: Optional[str]) -> str:
        text = (raw or "").strip()
        if not text:
            raise MalformedResponseError("Oracle returned an empty response")
        return text

    def parse_json(self, raw: Optional[str], schema: Optional[dict[str, Any]] = None) -> Any:
        """
        Decode *raw* as JSON and validate it against *schema*.

        Raises:
            MalformedResponseError: empty, undecodable, or schema-violating reply.
            ValueError: *schema* itself is not a valid JSON schema.
        """
        text = _strip_fences(self.parse_text(raw))
        try:
            value = json.loads(text)
        except ValueError:
            try:
                value = json.loads(_first_json_block(text))
            except ValueError as exc:
                raise MalformedResponseError(
                    f"Response is not valid JSON ({exc}). "
                    f"Raw response (first 200 chars): {text[:200]!r}"
                ) from exc

        if schema:
            errors = sorted(self._validator_for(schema).iter_errors(value), key=lambda e: list(e.path))
            if errors:
                first = errors[0]
                where = "/".join(str(p) for p in first.path) or "<root>"
                raise MalformedResponseError(
                    f"Response violates schema at {where}: {first.message} "
                    f"({len(errors)} error(s))"
                )
        return value
