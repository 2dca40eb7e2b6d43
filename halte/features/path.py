"""
Personalized path — a 5 to 7 step plan toward a user goal.

The prompt is personalised with context from every module the user shares;
without any permission the path is still generated, from the goal alone.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Optional

from halte import namespaces
from halte.context.aggregator import ContextAggregator
from halte.context.models import SHARABLE_MODULES
from halte.exceptions import InvalidStateError
from halte.gateway.llm_gateway import GenerationGateway
from halte.gateway.models import GenerationRequest, GenerationResult, Modality
from halte.store.cell import Codec, StateCell
from halte.store.db import PersistentStore

from . import prompts

__all__ = ["PathStep", "PersonalizedPath", "PersonalizedPathWorkflow"]

logger = logging.getLogger(__name__)


@dataclass
class PathStep:
    day:       int
    title:     str
    task:      str
    module_id: str
    completed: bool = False


@dataclass
class PersonalizedPath:
    id:          str
    goal:        str
    title:       str
    description: str
    steps:       list[PathStep]

    @property
    def progress(self) -> tuple[int, int]:
        """(completed steps, total steps)"""
        return sum(1 for s in self.steps if s.completed), len(self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userGoal": self.goal,
            "title": self.title,
            "description": self.description,
            "steps": [
                {"day": s.day, "title": s.title, "task": s.task,
                 "moduleId": s.module_id, "isCompleted": s.completed}
                for s in self.steps
            ],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "PersonalizedPath":
        return cls(
            id=d["id"],
            goal=d["userGoal"],
            title=d["title"],
            description=d.get("description", ""),
            steps=[
                PathStep(day=s["day"], title=s["title"], task=s["task"],
                         module_id=s["moduleId"], completed=bool(s.get("isCompleted")))
                for s in d["steps"]
            ],
        )


_PATH_CODEC: Codec[Optional[PersonalizedPath]] = Codec(
    encode=lambda p: p.to_dict() if p is not None else None,
    decode=lambda d: PersonalizedPath.from_dict(d) if d is not None else None,
)


class PersonalizedPathWorkflow:
    def __init__(
        self,
        store: PersistentStore,
        gateway: GenerationGateway,
        aggregator: ContextAggregator,
    ) -> None:
        self._cell: StateCell[Optional[PersonalizedPath]] = StateCell(
            store, namespaces.PERSONALIZED_PATH, None, codec=_PATH_CODEC
        )
        self._gateway = gateway
        self._aggregator = aggregator

    @property
    def path(self) -> Optional[PersonalizedPath]:
        return self._cell.value

    async def create(self, goal: str) -> GenerationResult[PersonalizedPath]:
        """Generate and store a path for *goal*, replacing any previous one."""
        goal = goal.strip()
        if not goal:
            raise ValueError("Goal must not be empty")

        context = self._aggregator.build_context(SHARABLE_MODULES)
        result = await self._gateway.generate_json(GenerationRequest(
            prompt=prompts.path_prompt(goal, context.text),
            response_schema=prompts.PATH_SCHEMA,
            modality=Modality.JSON,
        ))
        if not result.ok:
            return result

        steps = sorted(
            (PathStep(day=s["day"], title=s["title"], task=s["task"], module_id=s["moduleId"])
             for s in result.value["steps"]),
            key=lambda s: s.day,
        )
        path = PersonalizedPath(
            id=uuid.uuid4().hex,
            goal=goal,
            title=result.value["title"],
            description=result.value["description"],
            steps=steps,
        )
        self._cell.set(path)
        logger.info("Created personalized path %r with %d steps (context: %s)",
                    path.title, len(steps), context.status.value)
        return GenerationResult.success(path)

    def set_step_completed(self, index: int, completed: bool = True) -> PersonalizedPath:
        path = self.path
        if path is None:
            raise InvalidStateError("No personalized path to update")
        if not 0 <= index < len(path.steps):
            raise IndexError(f"Step {index} out of range (0..{len(path.steps) - 1})")
        steps = list(path.steps)
        steps[index] = replace(steps[index], completed=completed)
        updated = replace(path, steps=steps)
        self._cell.set(updated)
        return updated

    def toggle_step(self, index: int) -> PersonalizedPath:
        path = self.path
        if path is None:
            raise InvalidStateError("No personalized path to update")
        if not 0 <= index < len(path.steps):
            raise IndexError(f"Step {index} out of range (0..{len(path.steps) - 1})")
        return self.set_step_completed(index, not path.steps[index].completed)

    def reset(self) -> None:
        self._cell.set(None)
