"""
ContextAggregator — assembles a bounded, permissioned context block for prompts.

Pipeline per request:
  1. keep candidate modules the PermissionRegistry allows (others: silent no-op)
  2. fetch each module's entries through its accessor, project to ContextItem
  3. optional date window, then optional theme filter (case-insensitive)
  4. newest first, truncated to max_items
  5. render to flat text, or return a sentinel explaining why there is none

The aggregator never raises: a failing accessor is logged and skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Mapping, Optional, Union

from .models import (
    ContextItem,
    ContextResult,
    ContextStatus,
    ModuleAccessor,
    ModuleId,
    module_key,
    parse_date,
)
from .permissions import PermissionRegistry

__all__ = ["ContextAggregator", "DEFAULT_MAX_ITEMS", "DEFAULT_SNIPPET_CHARS"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS     = 20
DEFAULT_SNIPPET_CHARS = 300

_SENTINELS = {
    ContextStatus.SHARING_DISABLED:
        "No context available: the user has not enabled data sharing for these modules.",
    ContextStatus.NO_ENTRIES:
        "No context available: the user has no recorded entries in the shared modules yet.",
    ContextStatus.NO_RELEVANT_ENTRIES:
        "No relevant entries found for the theme {theme!r}.",
}


class ContextAggregator:
    """
    Builds the context block injected into generation prompts.

    Parameters
    ----------
    registry      : PermissionRegistry consulted for every candidate module
    accessors     : module id → zero-argument callable returning ModuleEntry items
    max_items     : cap on rendered items (prompt size / cost control)
    snippet_chars : per-item content truncation
    """

    def __init__(
        self,
        registry: PermissionRegistry,
        accessors: Mapping[str, ModuleAccessor],
        max_items: int = DEFAULT_MAX_ITEMS,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> None:
        if max_items < 1:
            raise ValueError("max_items must be at least 1")
        self._registry = registry
        self._accessors = {module_key(k): v for k, v in accessors.items()}
        self._max_items = max_items
        self._snippet_chars = snippet_chars

    def register(self, module_id: Union[str, ModuleId], accessor: ModuleAccessor) -> None:
        """Add or replace the accessor for *module_id*."""
        self._accessors[module_key(module_id)] = accessor

    # ── Collection ────────────────────────────────────────────────────────

    def _collect(self, module_id: str) -> list[ContextItem]:
        accessor = self._accessors.get(module_id)
        if accessor is None:
            logger.warning("No accessor registered for module %r; skipping", module_id)
            return []
        try:
            return [ContextItem.from_entry(module_id, e) for e in accessor()]
        except Exception as exc:
            logger.warning("Accessor for module %r failed; skipping: %s", module_id, exc)
            return []

    def collect_items(
        self,
        candidate_modules: Iterable[Union[str, ModuleId]],
    ) -> tuple[list[str], list[ContextItem]]:
        """
        Return (allowed module ids, their items) without filtering or sorting.
        """
        allowed: list[str] = []
        items: list[ContextItem] = []
        for candidate in candidate_modules:
            module_id = module_key(candidate)
            if module_id in allowed:
                continue
            if not self._registry.is_allowed(module_id):
                logger.debug("Sharing disabled for %r; excluded from context", module_id)
                continue
            allowed.append(module_id)
            items.extend(self._collect(module_id))
        return allowed, items

    # ── Public API ────────────────────────────────────────────────────────

    def build_context(
        self,
        candidate_modules: Iterable[Union[str, ModuleId]],
        theme: Optional[str] = None,
        window: Optional[tuple[datetime, datetime]] = None,
    ) -> ContextResult:
        """
        Build the context block for *candidate_modules*.

        Parameters
        ----------
        candidate_modules : modules the calling feature would like to draw on
        theme             : optional substring every kept item must contain
        window            : optional inclusive (start, end) date range;
                            naive datetimes are taken as UTC

        Returns
        -------
        ContextResult — status AVAILABLE with rendered text, or one of
        SHARING_DISABLED / NO_ENTRIES / NO_RELEVANT_ENTRIES with a sentinel.
        """
        theme = theme.strip() if theme and theme.strip() else None
        allowed, items = self.collect_items(candidate_modules)

        if not allowed:
            return self._sentinel(ContextStatus.SHARING_DISABLED, theme)

        if window is not None:
            start, end = (parse_date(d) for d in window)
            items = [i for i in items if start <= i.date <= end]

        if theme is not None:
            items = [i for i in items if i.matches(theme)]
            if not items:
                return self._sentinel(ContextStatus.NO_RELEVANT_ENTRIES, theme)
        elif not items:
            return self._sentinel(ContextStatus.NO_ENTRIES, theme)

        items.sort(key=lambda i: i.date, reverse=True)
        items = items[: self._max_items]
        logger.info(
            "Context built from %d item(s) across %s (theme=%r)", len(items), allowed, theme
        )
        return ContextResult(
            status=ContextStatus.AVAILABLE,
            text=self.render(items),
            items=items,
            theme=theme,
        )

    def render(self, items: Iterable[ContextItem]) -> str:
        """Render items as delimited blocks, newest first as given."""
        blocks = []
        for item in items:
            snippet = item.snippet
            if len(snippet) > self._snippet_chars:
                snippet = snippet[: self._snippet_chars].rstrip() + "..."
            blocks.append(
                "---\n"
                f"Module: {item.module_id}\n"
                f"ID: {item.id}\n"
                f"Date: {item.date.date().isoformat()}\n"
                f'Title: "{item.title}"\n'
                f'Content: "{snippet}"\n'
                "---"
            )
        return "\n".join(blocks)

    @staticmethod
    def _sentinel(status: ContextStatus, theme: Optional[str]) -> ContextResult:
        logger.info("No context available: %s", status.value)
        return ContextResult(
            status=status,
            text=_SENTINELS[status].format(theme=theme),
            theme=theme,
        )
