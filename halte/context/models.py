"""Data models for the context module."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Union

__all__ = [
    "ModuleId",
    "SHARABLE_MODULES",
    "module_key",
    "ModuleEntry",
    "ModuleAccessor",
    "parse_date",
    "ContextItem",
    "ContextStatus",
    "ContextResult",
]


# ── Module taxonomy ───────────────────────────────────────────────────────────

class ModuleId(str, Enum):
    """Feature areas that own user data."""
    JOURNAL              = "journal"
    GRATITUDE            = "gratitude"
    THOUGHT_COURT        = "thought-court"
    RITUAL               = "ritual"
    VALUES               = "values"
    GOALS                = "goals"
    ASSESSMENT           = "assessment"
    WOUNDS               = "wounds"
    RHYTHM               = "rhythm"
    RELATIONAL_ECOSYSTEM = "relational-ecosystem"
    BODY_MAP             = "body-map"
    UNSENT_LETTERS       = "unsent-letters"
    FEAR_SETTING         = "fear-setting"
    ORACLE               = "oracle"
    DREAM_JOURNAL        = "dream-journal"
    NARRATIVE_ARC        = "narrative-arc"
    # Not sharable: these consume context but own no private entries.
    CALM_SPACE           = "calm-space"
    WEEKLY_REVIEW        = "weekly-review"
    SYNTHESIS            = "synthesis"


# Modules whose data the user may choose to share with the oracle
SHARABLE_MODULES: tuple[str, ...] = (
    "journal", "gratitude", "thought-court", "ritual", "values", "goals",
    "assessment", "wounds", "rhythm", "relational-ecosystem", "body-map",
    "unsent-letters", "fear-setting", "oracle", "dream-journal", "narrative-arc",
)


def module_key(module_id: Union[str, ModuleId]) -> str:
    """Normalise a ModuleId or plain string to the stored string key."""
    return module_id.value if isinstance(module_id, ModuleId) else str(module_id)


# ── Entries and items ─────────────────────────────────────────────────────────

@dataclass
class ModuleEntry:
    """
    Raw entry as returned by a module accessor.

    date — ISO-8601 string or datetime; naive values are taken as UTC
    """
    id:      str
    title:   str
    date:    Union[str, datetime]
    content: str = ""


# Accessor contract: called with no arguments, returns the module's entries.
ModuleAccessor = Callable[[], Iterable[ModuleEntry]]


def parse_date(value: Union[str, datetime, None]) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.min.replace(tzinfo=timezone.utc)
    else:
        return datetime.min.replace(tzinfo=timezone.utc)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# Stored payloads are never validated: titles may be numbers or null.
def _text(value: object) -> str:
    return "" if value is None else str(value)


@dataclass
class ContextItem:
    """
    Normalised projection of a module entry, built per request and never stored.
    """
    id:        str
    title:     str
    module_id: str
    date:      datetime
    snippet:   str = ""

    @classmethod
    def from_entry(cls, module_id: str, entry: ModuleEntry) -> "ContextItem":
        return cls(
            id=str(entry.id),
            title=_text(entry.title),
            module_id=module_id,
            date=parse_date(entry.date),
            snippet=_text(entry.content),
        )

    def matches(self, theme: str) -> bool:
        """Case-insensitive substring match against title or snippet."""
        needle = theme.casefold()
        return needle in self.title.casefold() or needle in self.snippet.casefold()

    def __str__(self) -> str:
        return f"{self.module_id}:{self.id} {self.title!r}"


# ── Aggregation result ────────────────────────────────────────────────────────

class ContextStatus(str, Enum):
    """Why a context block does or does not carry user data."""
    AVAILABLE           = "available"
    SHARING_DISABLED    = "sharing_disabled"     # no candidate module is allowed
    NO_ENTRIES          = "no_entries"           # allowed modules hold nothing
    NO_RELEVANT_ENTRIES = "no_relevant_entries"  # theme given, nothing matched


@dataclass
class ContextResult:
    """
    Output of ContextAggregator.build_context().

    text   — rendered context block, or a sentinel sentence (never empty)
    items  — the ContextItems that were rendered (empty unless AVAILABLE)
    theme  — the theme filter that was applied, if any
    """
    status: ContextStatus
    text:   str
    items:  list[ContextItem] = field(default_factory=list)
    theme:  Optional[str]     = None

    @property
    def available(self) -> bool:
        return self.status is ContextStatus.AVAILABLE

    def __str__(self) -> str:
        return self.text
