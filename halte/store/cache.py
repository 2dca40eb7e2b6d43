"""
KeyedContentCache — memoizes generated content per item key.

One generic cache serves every catalog feature (herbarium, crystals,
arboretum, bestiary, rhythm advice): the namespace and the value codec are
the only things that differ between them.

Invariants
──────────
• At most one successful generation per key: a hit never calls the generator.
• A failed generation stores nothing, so the next request retries.
• Entries never expire; they disappear only through remove(), clear() or a
  full store wipe.
• Concurrent requests for the same missing key share one in-flight
  generator call.
• get_or_generate never raises for a generator failure: an exception from
  the generator comes back as a TRANSPORT_ERROR result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Iterator, Optional, TypeVar

from halte.gateway.models import ErrorKind, GenerationResult
from halte.store.cell import JSON_CODEC, Codec, StateCell
from halte.store.db import PersistentStore

__all__ = ["CacheEntry", "KeyedContentCache"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

Generator = Callable[[], Awaitable[GenerationResult[T]]]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """
    One memoized item.

    item_key    — case-sensitive canonical item name, e.g. "Lavande"
    value       — decoded content record
    written_at  — when it was generated (None for entries imported from
                  pre-timestamp backups)
    """
    item_key:   str
    value:      T
    written_at: Optional[datetime] = None


def _unwrap(raw: Any) -> tuple[Any, Optional[datetime]]:
    """Split a stored entry into (payload, written_at); accepts legacy bare values."""
    if isinstance(raw, dict) and set(raw) == {"value", "writtenAt"}:
        written = None
        if isinstance(raw["writtenAt"], str):
            try:
                written = datetime.fromisoformat(raw["writtenAt"].replace("Z", "+00:00"))
            except ValueError:
                logger.debug("Unparseable writtenAt %r", raw["writtenAt"])
        return raw["value"], written
    return raw, None


class KeyedContentCache(Generic[T]):
    """
    Persistent map item_key → generated content, built on a StateCell.

    Usage::

        herbs = KeyedContentCache(store, "herbariumCache")
        result = await herbs.get_or_generate(
            "Lavande", lambda: gateway.generate_json(request)
        )
    """

    def __init__(
        self,
        store: PersistentStore,
        namespace_key: str,
        codec: Codec[T] = JSON_CODEC,
    ) -> None:
        self._cell: StateCell[dict[str, Any]] = StateCell(store, namespace_key, {})
        self._codec = codec
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def namespace_key(self) -> str:
        return self._cell.namespace_key

    # ── Read ──────────────────────────────────────────────────────────────

    def entry(self, item_key: str) -> Optional[CacheEntry[T]]:
        """Return the full CacheEntry for *item_key*, or None on a miss."""
        entries = self._cell.value
        if not isinstance(entries, dict) or item_key not in entries:
            return None
        payload, written_at = _unwrap(entries[item_key])
        try:
            value = self._codec.decode(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Undecodable cache entry %s / %r treated as a miss: %s",
                self.namespace_key, item_key, exc,
            )
            return None
        return CacheEntry(item_key=item_key, value=value, written_at=written_at)

    def get(self, item_key: str) -> Optional[T]:
        """Return the cached value for *item_key*, or None on a miss."""
        found = self.entry(item_key)
        return found.value if found else None

    def keys(self) -> list[str]:
        entries = self._cell.value
        return list(entries) if isinstance(entries, dict) else []

    def __contains__(self, item_key: object) -> bool:
        return isinstance(item_key, str) and self.entry(item_key) is not None

    def __iter__(self) -> Iterator[CacheEntry[T]]:
        for key in self.keys():
            found = self.entry(key)
            if found is not None:
                yield found

    def __len__(self) -> int:
        return len(self.keys())

    # ── Write ─────────────────────────────────────────────────────────────

    def put(self, item_key: str, value: T) -> None:
        """Insert or overwrite *item_key*. Raises StorageError if persisting fails."""
        stamped = {
            "value": self._codec.encode(value),
            "writtenAt": datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        self._cell.update(lambda entries: {**(entries if isinstance(entries, dict) else {}), item_key: stamped})

    def remove(self, item_key: str) -> bool:
        """Delete one entry. Returns True if it existed."""
        if item_key not in self.keys():
            return False
        self._cell.update(lambda entries: {k: v for k, v in entries.items() if k != item_key})
        return True

    def clear(self) -> None:
        """Drop every entry in this namespace."""
        self._cell.reset()

    def reload(self) -> None:
        """Re-read the namespace from the store (after an import or wipe)."""
        self._cell.reload()

    # ── Generate ──────────────────────────────────────────────────────────

    async def get_or_generate(
        self,
        item_key: str,
        generator: Generator[T],
    ) -> GenerationResult[T]:
        """
        Return the cached value for *item_key*, generating it on a miss.

        A hit returns immediately without calling *generator*. On a miss the
        generator is awaited once; an Ok result is stored before being
        returned, a Failed result is returned and nothing is stored.

        The generation runs as a shielded task: a caller that stops waiting
        does not cancel it, and the value is still cached when it arrives.
        """
        found = self.entry(item_key)
        if found is not None:
            logger.info("Cache hit: %s / %r", self.namespace_key, item_key)
            return GenerationResult.success(found.value)

        task = self._in_flight.get(item_key)
        if task is None:
            logger.info("Cache miss: %s / %r, generating", self.namespace_key, item_key)
            task = asyncio.ensure_future(self._resolve(item_key, generator))
            self._in_flight[item_key] = task
        else:
            logger.debug("Joining in-flight generation for %s / %r", self.namespace_key, item_key)
        return await asyncio.shield(task)

    async def _resolve(self, item_key: str, generator: Generator[T]) -> GenerationResult[T]:
        try:
            try:
                result = await generator()
            except Exception as exc:
                logger.warning(
                    "Generator raised for %s / %r: %s: %s",
                    self.namespace_key, item_key, type(exc).__name__, exc,
                )
                return GenerationResult.failed(ErrorKind.TRANSPORT_ERROR, str(exc))
            if result.ok:
                self.put(item_key, result.value)
            else:
                logger.warning(
                    "Generation failed for %s / %r: %s", self.namespace_key, item_key, result
                )
            return result
        finally:
            self._in_flight.pop(item_key, None)
