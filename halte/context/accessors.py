"""
Store-backed module accessors — each projects one feature's stored entries
into ModuleEntry items for the ContextAggregator.

Stored shapes are the ones the feature screens write; malformed records are
skipped rather than failing the whole module.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator

from halte import namespaces
from halte.store.db import PersistentStore

from .models import ModuleAccessor, ModuleEntry

__all__ = ["default_accessors"]

logger = logging.getLogger(__name__)


def _records(store: PersistentStore, namespace_key: str) -> list[dict[str, Any]]:
    payload = store.read(namespace_key, [])
    if not isinstance(payload, list):
        logger.warning("Namespace %r is not a list; ignoring", namespace_key)
        return []
    return [r for r in payload if isinstance(r, dict)]


def _project(
    records: Iterable[dict[str, Any]],
    build: Callable[[dict[str, Any]], ModuleEntry],
) -> Iterator[ModuleEntry]:
    for record in records:
        try:
            yield build(record)
        except (KeyError, TypeError) as exc:
            logger.debug("Skipping malformed record %r: %s", record.get("id"), exc)


# ── Per-module projections ────────────────────────────────────────────────────

def _journal(store: PersistentStore) -> Iterator[ModuleEntry]:
    return _project(_records(store, namespaces.JOURNAL), lambda r: ModuleEntry(
        id=r["id"], title=r.get("title", ""), date=r["date"], content=r.get("content", ""),
    ))


def _dreams(store: PersistentStore) -> Iterator[ModuleEntry]:
    return _project(_records(store, namespaces.DREAM_JOURNAL), lambda r: ModuleEntry(
        id=r["id"], title=r.get("title", ""), date=r["date"], content=r.get("content", ""),
    ))


def _thought_court(store: PersistentStore) -> Iterator[ModuleEntry]:
    return _project(_records(store, namespaces.THOUGHT_COURT), lambda r: ModuleEntry(
        id=r["id"],
        title=r["negativeThought"],
        date=r["date"],
        content=(
            f"Evidence against: {r.get('evidenceAgainst', '')}\n"
            f"Balanced thought: {r.get('balancedThought', '')}"
        ),
    ))


def _unsent_letters(store: PersistentStore) -> Iterator[ModuleEntry]:
    return _project(_records(store, namespaces.UNSENT_LETTERS), lambda r: ModuleEntry(
        id=r["id"],
        title=r.get("subject", ""),
        date=r["date"],
        content=f"To: {r.get('recipient', '')}. Content: {r.get('content', '')}",
    ))


def _gratitude(store: PersistentStore) -> Iterator[ModuleEntry]:
    return _project(_records(store, namespaces.GRATITUDE), lambda r: ModuleEntry(
        id=r["date"],
        title=f"Gratitude {r['date']}",
        date=r["date"],
        content="; ".join(i["text"] for i in r.get("items", []) if isinstance(i, dict) and "text" in i),
    ))


def _rituals(store: PersistentStore) -> Iterator[ModuleEntry]:
    data = store.read(namespaces.RITUALS, {})
    if not isinstance(data, dict):
        return iter(())
    rituals = [r for r in data.get("rituals", []) if isinstance(r, dict)]
    total = sum(len(r.get("tasks", [])) for r in rituals)
    names = ", ".join(r.get("name", "") for r in rituals)
    completions = data.get("completions", {})
    if not total or not isinstance(completions, dict):
        return iter(())
    return iter([
        ModuleEntry(
            id=day,
            title=f"Rituals on {day}",
            date=day,
            content=f"Completed {len(done)} of {total} ritual task(s) ({names}).",
        )
        for day, done in completions.items()
        if isinstance(done, list)
    ])


def _values(store: PersistentStore) -> Iterator[ModuleEntry]:
    data = store.read(namespaces.VALUES, {})
    values = data.get("prioritizedValues", []) if isinstance(data, dict) else []
    if not values:
        return iter(())
    # Current state rather than a dated entry: stamped "now".
    return iter([ModuleEntry(
        id="values",
        title="Core values",
        date=datetime.now(tz=timezone.utc),
        content="Prioritized values: " + ", ".join(str(v) for v in values),
    )])


def _goals(store: PersistentStore) -> Iterator[ModuleEntry]:
    def build(goal: dict[str, Any]) -> ModuleEntry:
        steps = [s for s in goal.get("steps", []) if isinstance(s, dict)]
        pending = next((s["title"] for s in steps if not s.get("completed")), None)
        content = f"Next step: {pending}" if pending else "All steps completed."
        return ModuleEntry(
            id=goal["id"],
            title=goal["title"],
            date=datetime.now(tz=timezone.utc),
            content=content,
        )
    return _project(_records(store, namespaces.GOALS), build)


_PROJECTIONS: dict[str, Callable[[PersistentStore], Iterable[ModuleEntry]]] = {
    "journal":        _journal,
    "dream-journal":  _dreams,
    "thought-court":  _thought_court,
    "unsent-letters": _unsent_letters,
    "gratitude":      _gratitude,
    "ritual":         _rituals,
    "values":         _values,
    "goals":          _goals,
}


def default_accessors(store: PersistentStore) -> dict[str, ModuleAccessor]:
    """Return module id → accessor reading that module's namespace from *store*."""
    return {
        module_id: (lambda fn=fn: list(fn(store)))
        for module_id, fn in _PROJECTIONS.items()
    }
