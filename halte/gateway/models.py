"""Data models for the generation gateway."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

__all__ = [
    "Modality",
    "ErrorKind",
    "Media",
    "GenerationRequest",
    "GenerationResult",
]

T = TypeVar("T")
U = TypeVar("U")


class Modality(str, Enum):
    """What the oracle is asked to consume / produce."""
    TEXT       = "text"
    JSON       = "json"
    IMAGE_TEXT = "image+text"


class ErrorKind(str, Enum):
    """Why a generation call failed."""
    TRANSPORT_ERROR    = "transport_error"      # unreachable, rejected, rate-limited
    MALFORMED_RESPONSE = "malformed_response"   # replied, but not in the expected shape


@dataclass(frozen=True)
class Media:
    """Binary attachment for image+text requests (e.g. a drawing or body-map PNG)."""
    data:      bytes
    mime_type: str = "image/png"

    def __post_init__(self):
        if not self.data:
            raise ValueError("Media.data must not be empty")


@dataclass
class GenerationRequest:
    """
    One prompt sent to the oracle.

    prompt           — full prompt text, context already inlined
    response_schema  — JSON schema the reply must satisfy (JSON / image requests)
    modality         — TEXT | JSON | IMAGE_TEXT
    """
    prompt:          str
    response_schema: Optional[dict[str, Any]] = None
    modality:        Modality                 = Modality.TEXT

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise ValueError("GenerationRequest.prompt must not be empty")

    def __str__(self) -> str:
        return f"GenerationRequest<{self.modality.value}> ({len(self.prompt)} chars)"


@dataclass
class GenerationResult(Generic[T]):
    """
    Discriminated outcome of a generation call: Ok(value) or Failed(error).

    Build with GenerationResult.success(...) / GenerationResult.failed(...).
    """
    value:  Optional[T]         = None
    error:  Optional[ErrorKind] = None
    detail: str                 = field(default="", compare=False)

    @classmethod
    def success(cls, value: T) -> "GenerationResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, error: ErrorKind, detail: str = "") -> "GenerationResult[T]":
        return cls(error=error, detail=detail)

    @property
    def ok(self) -> bool:
        return self.error is None

    def map(self, fn: Callable[[T], U]) -> "GenerationResult[U]":
        """Transform the value of an Ok result; Failed results pass through."""
        if not self.ok:
            return GenerationResult(error=self.error, detail=self.detail)
        return GenerationResult(value=fn(self.value))

    def __str__(self) -> str:
        if self.ok:
            return "Ok"
        return f"Failed({self.error.value}: {self.detail})" if self.detail else f"Failed({self.error.value})"
