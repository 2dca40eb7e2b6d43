"""
Weekly review — one generated retrospective per ISO week.

Reviews are keyed by ISO week id ("2025-W03"). Asking again for a week that
already has a review returns the stored one without calling the oracle,
unless force=True.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from halte import namespaces
from halte.context.aggregator import ContextAggregator
from halte.gateway.llm_gateway import GenerationGateway
from halte.gateway.models import GenerationRequest, GenerationResult, Modality
from halte.store.cell import Codec, StateCell
from halte.store.db import PersistentStore

from . import prompts

__all__ = ["REVIEW_MODULES", "week_id", "week_window", "WeeklyReview", "WeeklyReviewWorkflow"]

logger = logging.getLogger(__name__)

REVIEW_MODULES = ("journal", "ritual", "values")


def week_id(day: date) -> str:
    """ISO week id, e.g. date(2025, 1, 15) → "2025-W03"."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def week_window(day: date) -> tuple[datetime, datetime]:
    """Inclusive UTC bounds of the ISO week containing *day* (Monday..Sunday)."""
    monday = day - timedelta(days=day.weekday())
    start = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    end = datetime.combine(monday + timedelta(days=6), time.max, tzinfo=timezone.utc)
    return start, end


@dataclass
class WeeklyReview:
    week_id:             str
    summary:             str
    highlights:          list[str] = field(default_factory=list)
    challenges:          list[str] = field(default_factory=list)
    ritual_consistency:  str = ""
    reflection_question: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekId": self.week_id,
            "summary": self.summary,
            "highlights": list(self.highlights),
            "challenges": list(self.challenges),
            "ritualConsistency": self.ritual_consistency,
            "reflectionQuestion": self.reflection_question,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "WeeklyReview":
        return cls(
            week_id=d["weekId"],
            summary=d["summary"],
            highlights=list(d.get("highlights", [])),
            challenges=list(d.get("challenges", [])),
            ritual_consistency=d.get("ritualConsistency", ""),
            reflection_question=d.get("reflectionQuestion", ""),
        )


def _decode_reviews(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise TypeError(f"Expected a week map, got {type(payload).__name__}")
    return payload


class WeeklyReviewWorkflow:
    def __init__(
        self,
        store: PersistentStore,
        gateway: GenerationGateway,
        aggregator: ContextAggregator,
    ) -> None:
        self._reviews: StateCell[dict[str, Any]] = StateCell(
            store, namespaces.WEEKLY_REVIEWS, {}, codec=Codec(encode=dict, decode=_decode_reviews)
        )
        self._gateway = gateway
        self._aggregator = aggregator

    def get(self, week: str) -> Optional[WeeklyReview]:
        raw = self._reviews.value.get(week)
        if raw is None:
            return None
        try:
            return WeeklyReview.from_dict(raw)
        except (KeyError, TypeError) as exc:
            logger.warning("Stored review for %s is unreadable: %s", week, exc)
            return None

    def weeks(self) -> list[str]:
        return sorted(self._reviews.value, reverse=True)

    async def review(
        self,
        day: Optional[date] = None,
        force: bool = False,
    ) -> GenerationResult[WeeklyReview]:
        """Return the review for the week containing *day* (default: today)."""
        day = day or date.today()
        week = week_id(day)
        existing = self.get(week)
        if existing is not None and not force:
            logger.info("Weekly review %s already exists", week)
            return GenerationResult.success(existing)

        context = self._aggregator.build_context(REVIEW_MODULES, window=week_window(day))
        result = await self._gateway.generate_json(GenerationRequest(
            prompt=prompts.weekly_review_prompt(week, context.text),
            response_schema=prompts.WEEKLY_REVIEW_SCHEMA,
            modality=Modality.JSON,
        ))
        if not result.ok:
            return result

        review = WeeklyReview.from_dict({**result.value, "weekId": week})
        self._reviews.update(lambda reviews: {**reviews, week: review.to_dict()})
        logger.info("Weekly review %s generated (context: %s)", week, context.status.value)
        return GenerationResult.success(review)
