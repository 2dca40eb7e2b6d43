"""
StateCell — a typed, persisted value bound to one store namespace.

The cell reads through the store on first access and writes on every
mutation, so the in-memory value and the stored value always agree once a
mutation call returns.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from halte.store.db import PersistentStore

__all__ = ["Codec", "JSON_CODEC", "StateCell"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Codec(Generic[T]):
    """
    Conversion between a feature's value type and its JSON payload.

    encode — value → JSON-serializable payload
    decode — payload → value; may raise on bad shape (the cell falls back
             to its default)
    """
    encode: Callable[[T], Any]
    decode: Callable[[Any], T]


JSON_CODEC: Codec[Any] = Codec(encode=lambda v: v, decode=lambda p: p)

_UNSET = object()


class StateCell(Generic[T]):
    """
    Binding of (namespace_key, default, codec) to a PersistentStore.

    Usage::

        prefs = StateCell(store, "appSettings", {"theme": "dark"})
        prefs.update(lambda p: {**p, "theme": "light"})
    """

    def __init__(
        self,
        store: PersistentStore,
        namespace_key: str,
        default: T,
        codec: Codec[T] = JSON_CODEC,
        schema_version: int = 1,
    ) -> None:
        self._store = store
        self._key = namespace_key
        self._default = default
        self._codec = codec
        self._schema_version = schema_version
        self._value: Any = _UNSET

    @property
    def namespace_key(self) -> str:
        return self._key

    def _fresh_default(self) -> T:
        # Mutable defaults must not be shared between cells or resets.
        return copy.deepcopy(self._default)

    @property
    def value(self) -> T:
        """Current value; loaded from the store on first access."""
        if self._value is _UNSET:
            payload = self._store.read(self._key, _UNSET)
            if payload is _UNSET:
                self._value = self._fresh_default()
            else:
                try:
                    self._value = self._codec.decode(payload)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning(
                        "Cannot decode namespace %r, using default: %s", self._key, exc
                    )
                    self._value = self._fresh_default()
        return self._value

    def set(self, value: T) -> None:
        """
        Replace the value and persist it.

        Raises StorageError if the write fails; the in-memory value is then
        left unchanged.
        """
        self._store.write(self._key, self._codec.encode(value), self._schema_version)
        self._value = value

    def update(self, fn: Callable[[T], T]) -> T:
        """Apply *fn* to the current value, persist and return the result."""
        new_value = fn(self.value)
        self.set(new_value)
        return new_value

    def reset(self) -> None:
        """Restore the default value (persisted as such)."""
        self.set(self._fresh_default())

    def reload(self) -> T:
        """Drop the in-memory copy and re-read from the store (e.g. after an import)."""
        self._value = _UNSET
        return self.value
