"""Generation gateway — one chokepoint for oracle calls, with typed results."""

from .backends import GatewayConfig, build_client
from .llm_gateway import GenerationGateway
from .models import ErrorKind, GenerationRequest, GenerationResult, Media, Modality
from .validator import ResponseValidator

__all__ = [
    "GenerationGateway",
    "GatewayConfig",
    "build_client",
    "ResponseValidator",
    "ErrorKind",
    "GenerationRequest",
    "GenerationResult",
    "Media",
    "Modality",
]
