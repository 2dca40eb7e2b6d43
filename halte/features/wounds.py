"""
Core wounds — a short quiz, then generated writing exercises.

The quiz yields one primary wound; exercises generated for it are saved
with the user's response, newest first.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from halte import namespaces
from halte.exceptions import InvalidStateError
from halte.gateway.llm_gateway import GenerationGateway
from halte.gateway.models import GenerationRequest, GenerationResult, Modality
from halte.store.cell import Codec, StateCell
from halte.store.db import PersistentStore

from . import prompts

__all__ = [
    "CORE_WOUNDS",
    "UNDETERMINED",
    "QUIZ_QUESTIONS",
    "score_quiz",
    "ExercisePrompt",
    "WoundExercise",
    "WoundsData",
    "WoundsWorkflow",
]

logger = logging.getLogger(__name__)

CORE_WOUNDS = ("Rejection", "Abandonment", "Humiliation", "Betrayal", "Injustice")
UNDETERMINED = "Undetermined"

# (question, {wound: answer text})
QUIZ_QUESTIONS: tuple[tuple[str, dict[str, str]], ...] = (
    ("When you are stressed, your main reaction is to:", {
        "Rejection":   "Feel inadequate and want to disappear.",
        "Abandonment": "Urgently look for help and comfort.",
        "Humiliation": "Take care of everyone else and forget your own needs.",
        "Betrayal":    "Become suspicious and want to control everything.",
        "Injustice":   "Get frustrated by imperfection and criticise.",
    }),
    ("Your greatest fear in relationships is:", {
        "Rejection":   "Being excluded or not having your place.",
        "Abandonment": "Being left alone or forgotten.",
        "Humiliation": "Having your 'flaws' discovered and feeling ashamed.",
        "Betrayal":    "Being betrayed, manipulated or lied to.",
        "Injustice":   "Not being respected or being treated unfairly.",
    }),
    ("Which criticism hurts you the most?", {
        "Rejection":   "'You are nothing, you are useless.'",
        "Abandonment": "'You can't manage without me.'",
        "Humiliation": "'You are selfish, you only think of yourself.'",
        "Betrayal":    "'You are unreliable, I can't trust you.'",
        "Injustice":   "'What you did is not right, you are insensitive.'",
    }),
)


def score_quiz(answers: Iterable[str]) -> str:
    """
    Return the most frequent wound among *answers*.

    Ties go to the wound counted later (first-seen order); no answers give
    UNDETERMINED.
    """
    answers = list(answers)
    unknown = [a for a in answers if a not in CORE_WOUNDS]
    if unknown:
        raise ValueError(f"Unknown wound(s) in answers: {unknown}")
    counts = Counter(answers)
    primary = UNDETERMINED
    for wound, count in counts.items():
        if primary == UNDETERMINED or count >= counts[primary]:
            primary = wound
    return primary


@dataclass(frozen=True)
class ExercisePrompt:
    title:  str
    prompt: str


@dataclass
class WoundExercise:
    id:           str
    date:         str
    prompt_title: str
    prompt:       str
    response:     str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "promptTitle": self.prompt_title,
            "prompt": self.prompt,
            "response": self.response,
        }


@dataclass
class WoundsData:
    primary_wound: str
    exercises:     list[WoundExercise] = field(default_factory=list)


def _encode(data: Optional[WoundsData]) -> Any:
    if data is None:
        return None
    return {
        "primaryWound": data.primary_wound,
        "exercises": [e.to_dict() for e in data.exercises],
    }


def _decode(payload: Any) -> Optional[WoundsData]:
    if payload is None:
        return None
    return WoundsData(
        primary_wound=payload["primaryWound"],
        exercises=[
            WoundExercise(
                id=e["id"], date=e["date"], prompt_title=e["promptTitle"],
                prompt=e["prompt"], response=e["response"],
            )
            for e in payload.get("exercises", [])
        ],
    )


class WoundsWorkflow:
    def __init__(self, store: PersistentStore, gateway: GenerationGateway) -> None:
        self._cell: StateCell[Optional[WoundsData]] = StateCell(
            store, namespaces.WOUNDS, None, codec=Codec(encode=_encode, decode=_decode)
        )
        self._gateway = gateway

    @property
    def data(self) -> Optional[WoundsData]:
        return self._cell.value

    def record_quiz(self, answers: Iterable[str]) -> WoundsData:
        """Score the quiz and start over with no saved exercises."""
        data = WoundsData(primary_wound=score_quiz(answers))
        self._cell.set(data)
        logger.info("Primary wound: %s", data.primary_wound)
        return data

    async def generate_exercise(self) -> GenerationResult[ExercisePrompt]:
        data = self.data
        if data is None:
            raise InvalidStateError("Take the quiz before generating an exercise")
        result = await self._gateway.generate_json(GenerationRequest(
            prompt=prompts.wound_exercise_prompt(data.primary_wound),
            response_schema=prompts.WOUND_EXERCISE_SCHEMA,
            modality=Modality.JSON,
        ))
        return result.map(lambda v: ExercisePrompt(title=v["title"], prompt=v["prompt"]))

    def save_exercise(self, exercise: ExercisePrompt, response: str) -> WoundExercise:
        data = self.data
        if data is None:
            raise InvalidStateError("Take the quiz before saving an exercise")
        if not response.strip():
            raise ValueError("Response must not be empty")
        saved = WoundExercise(
            id=uuid.uuid4().hex,
            date=datetime.now(tz=timezone.utc).isoformat(),
            prompt_title=exercise.title,
            prompt=exercise.prompt,
            response=response.strip(),
        )
        self._cell.set(WoundsData(data.primary_wound, [saved, *data.exercises]))
        return saved

    def reset(self) -> None:
        self._cell.set(None)
