"""
GenerationGateway — the single chokepoint for every call to the oracle.

Every call is one request/response round trip: no streaming, no
conversation state, no automatic retry. Failures come back as
GenerationResult.failed(...) values, never as exceptions:

  TRANSPORT_ERROR     — the client raised (network, auth, rate limit, non-2xx)
  MALFORMED_RESPONSE  — the reply was empty, not JSON, or violated the schema
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from halte.exceptions import MalformedResponseError

from .backends import GatewayConfig, OracleClient, build_client
from .models import ErrorKind, GenerationRequest, GenerationResult, Media
from .validator import ResponseValidator

__all__ = ["GenerationGateway"]

logger = logging.getLogger(__name__)


class GenerationGateway:
    """
    Sends GenerationRequests to the oracle and normalises the outcome.

    Parameters
    ----------
    config : GatewayConfig (or None → defaults); selects the backend
    client : optional pre-built OracleClient, bypassing config.backend

    Usage::
        gateway = GenerationGateway(GatewayConfig(backend="anthropic"))
        result = await gateway.generate_json(
            GenerationRequest(prompt, response_schema=schema, modality=Modality.JSON)
        )
        if result.ok:
            show(result.value)
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        client: Optional[OracleClient] = None,
    ) -> None:
        self._config = config or GatewayConfig()
        self._client = client if client is not None else build_client(self._config)
        self._validator = ResponseValidator()

    @property
    def model(self) -> str:
        return self._config.resolved_model

    @property
    def is_stub(self) -> bool:
        """True when replies are placeholder content from the offline stub."""
        return self._config.backend == "stub"

    async def _round_trip(
        self,
        request: GenerationRequest,
        media: Optional[Media] = None,
    ) -> tuple[Optional[str], Optional[GenerationResult[Any]]]:
        """Return (raw_text, None) on success or (None, failed_result)."""
        logger.info("Oracle call  model=%s  %s", self.model, request)
        started = time.monotonic()
        try:
            raw = await self._client.send(
                request.prompt, schema=request.response_schema, media=media
            )
        except Exception as exc:
            logger.warning("Oracle transport error: %s: %s", type(exc).__name__, exc)
            return None, GenerationResult.failed(ErrorKind.TRANSPORT_ERROR, str(exc))
        logger.debug("Oracle replied in %.2f s (%d chars)", time.monotonic() - started, len(raw or ""))
        return raw, None

    def _decode(self, raw: Optional[str], schema: Optional[dict[str, Any]]) -> GenerationResult[Any]:
        try:
            return GenerationResult.success(self._validator.parse_json(raw, schema))
        except MalformedResponseError as exc:
            logger.warning("Malformed oracle response: %s", exc)
            return GenerationResult.failed(ErrorKind.MALFORMED_RESPONSE, str(exc))

    # ── Public API ────────────────────────────────────────────────────────

    async def generate_text(self, request: GenerationRequest) -> GenerationResult[str]:
        """Free-text reply, stripped. An empty reply is MALFORMED_RESPONSE."""
        raw, failure = await self._round_trip(request)
        if failure is not None:
            return failure
        try:
            return GenerationResult.success(self._validator.parse_text(raw))
        except MalformedResponseError as exc:
            logger.warning("Malformed oracle response: %s", exc)
            return GenerationResult.failed(ErrorKind.MALFORMED_RESPONSE, str(exc))

    async def generate_json(self, request: GenerationRequest) -> GenerationResult[Any]:
        """JSON reply validated against request.response_schema."""
        raw, failure = await self._round_trip(request)
        if failure is not None:
            return failure
        return self._decode(raw, request.response_schema)

    async def generate_from_image(
        self,
        request: GenerationRequest,
        image: Media,
    ) -> GenerationResult[Any]:
        """
        Image + prompt. With a response_schema the reply is decoded as JSON,
        otherwise it is returned as text.
        """
        raw, failure = await self._round_trip(request, media=image)
        if failure is not None:
            return failure
        if request.response_schema:
            return self._decode(raw, request.response_schema)
        try:
            return GenerationResult.success(self._validator.parse_text(raw))
        except MalformedResponseError as exc:
            return GenerationResult.failed(ErrorKind.MALFORMED_RESPONSE, str(exc))
