"""
Guided journey — a generated 5-day programme followed one day at a time.

State machine
─────────────
  IDLE       no journey stored
  ACTIVE     journey stored, at least one day still open
  COMPLETED  every day has a recorded response

start() moves IDLE → ACTIVE; complete_day() advances through the days in
order; abandon() returns to IDLE from either other state.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from halte import namespaces
from halte.exceptions import InvalidStateError
from halte.gateway.llm_gateway import GenerationGateway
from halte.gateway.models import GenerationRequest, GenerationResult, Modality
from halte.store.cell import Codec, StateCell
from halte.store.db import PersistentStore

from . import prompts

__all__ = [
    "JOURNEY_DAYS",
    "JourneyStatus",
    "JourneyDay",
    "DayState",
    "JourneyState",
    "GuidedJourneyWorkflow",
]

logger = logging.getLogger(__name__)

JOURNEY_DAYS = 5


class JourneyStatus(str, Enum):
    IDLE      = "idle"
    ACTIVE    = "active"
    COMPLETED = "completed"


@dataclass
class JourneyDay:
    day:   int
    title: str
    task:  str


@dataclass
class DayState:
    completed: bool = False
    response:  str  = ""


@dataclass
class JourneyState:
    """
    Persisted journey progress.

    journey_id  — random id of this run
    topic       — what the user asked the journey to be about
    start_date  — ISO-8601 UTC timestamp of start()
    day_states  — one DayState per day, same order as days
    """
    journey_id:  str
    topic:       str
    title:       str
    description: str
    days:        list[JourneyDay]
    start_date:  str
    day_states:  list[DayState] = field(default_factory=list)

    @property
    def current_day(self) -> Optional[int]:
        """Index of the first open day, or None when all are completed."""
        return next((i for i, s in enumerate(self.day_states) if not s.completed), None)

    @property
    def status(self) -> JourneyStatus:
        return JourneyStatus.ACTIVE if self.current_day is not None else JourneyStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "journey": {
                "id": self.journey_id,
                "topic": self.topic,
                "title": self.title,
                "description": self.description,
                "days": [{"day": d.day, "title": d.title, "task": d.task} for d in self.days],
            },
            "startDate": self.start_date,
            "dayStates": [{"completed": s.completed, "response": s.response} for s in self.day_states],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "JourneyState":
        journey = d["journey"]
        days = [JourneyDay(day=x["day"], title=x["title"], task=x["task"]) for x in journey["days"]]
        states = [DayState(completed=bool(s["completed"]), response=s.get("response", "")) for s in d["dayStates"]]
        if len(states) != len(days):
            raise ValueError("dayStates does not match the number of days")
        return cls(
            journey_id=journey["id"],
            topic=journey.get("topic", ""),
            title=journey["title"],
            description=journey.get("description", ""),
            days=days,
            start_date=d["startDate"],
            day_states=states,
        )


def _encode(state: Optional[JourneyState]) -> Any:
    return state.to_dict() if state is not None else None


def _decode(payload: Any) -> Optional[JourneyState]:
    return JourneyState.from_dict(payload) if payload is not None else None


_JOURNEY_CODEC: Codec[Optional[JourneyState]] = Codec(encode=_encode, decode=_decode)


class GuidedJourneyWorkflow:
    def __init__(self, store: PersistentStore, gateway: GenerationGateway) -> None:
        self._cell: StateCell[Optional[JourneyState]] = StateCell(
            store, namespaces.GUIDED_JOURNEY, None, codec=_JOURNEY_CODEC
        )
        self._gateway = gateway

    @property
    def state(self) -> Optional[JourneyState]:
        return self._cell.value

    @property
    def status(self) -> JourneyStatus:
        state = self.state
        return state.status if state is not None else JourneyStatus.IDLE

    async def start(self, topic: str) -> GenerationResult[JourneyState]:
        """
        Generate a journey for *topic* and make it the active one.

        Replies with fewer than JOURNEY_DAYS days fail schema validation
        (MALFORMED_RESPONSE); extra days are dropped. Raises
        InvalidStateError while another journey is still active.
        """
        topic = topic.strip()
        if not topic:
            raise ValueError("Journey topic must not be empty")
        if self.status is JourneyStatus.ACTIVE:
            raise InvalidStateError("A journey is already in progress; abandon it first")

        result = await self._gateway.generate_json(GenerationRequest(
            prompt=prompts.journey_prompt(topic),
            response_schema=prompts.JOURNEY_SCHEMA,
            modality=Modality.JSON,
        ))
        if not result.ok:
            return result

        raw_days = result.value["days"]
        state = JourneyState(
            journey_id=uuid.uuid4().hex,
            topic=topic,
            title=result.value["title"],
            description=result.value["description"],
            days=[
                JourneyDay(day=i + 1, title=d["title"], task=d["task"])
                for i, d in enumerate(raw_days[:JOURNEY_DAYS])
            ],
            start_date=datetime.now(tz=timezone.utc).isoformat(),
            day_states=[DayState() for _ in range(JOURNEY_DAYS)],
        )
        self._cell.set(state)
        logger.info("Started journey %r (%s)", state.title, state.journey_id)
        return GenerationResult.success(state)

    def complete_day(self, response: str, day_index: Optional[int] = None) -> JourneyState:
        """
        Record *response* for the current day and advance.

        *day_index*, when given, must name the current day: days are
        completed strictly in order.
        """
        state = self.state
        if state is None or state.current_day is None:
            raise InvalidStateError("No active journey day to complete")
        current = state.current_day
        if day_index is not None and day_index != current:
            raise InvalidStateError(f"Day {day_index + 1} is not the current day ({current + 1})")
        if not response.strip():
            raise ValueError("A response is required to complete the day")

        day_states = list(state.day_states)
        day_states[current] = DayState(completed=True, response=response.strip())
        updated = replace(state, day_states=day_states)
        self._cell.set(updated)
        logger.info("Journey day %d/%d completed", current + 1, len(updated.days))
        return updated

    def abandon(self) -> None:
        self._cell.set(None)
