"""
Thematic synthesis — what the user's own writing says about one theme.

Only entries mentioning the theme are sent. If sharing is enabled but no
entry mentions it, the synthesis is refused with NoRelevantEntriesError
before any oracle call; if sharing is disabled the synthesis still runs,
without personal context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from halte.context.aggregator import ContextAggregator
from halte.context.models import ContextStatus
from halte.exceptions import NoRelevantEntriesError
from halte.gateway.llm_gateway import GenerationGateway
from halte.gateway.models import GenerationRequest, GenerationResult, Modality

from . import prompts

__all__ = [
    "SYNTHESIS_MODULES",
    "SupportingEntry",
    "KeyInsight",
    "ThematicSynthesis",
    "ThematicSynthesisWorkflow",
]

logger = logging.getLogger(__name__)

SYNTHESIS_MODULES = ("journal", "thought-court", "unsent-letters", "dream-journal")


@dataclass(frozen=True)
class SupportingEntry:
    module_id: str
    entry_id:  str
    title:     str


@dataclass
class KeyInsight:
    insight:            str
    supporting_entries: list[SupportingEntry] = field(default_factory=list)


@dataclass
class ThematicSynthesis:
    theme:             str
    summary:           str
    key_insights:      list[KeyInsight]
    emerging_pattern:  str
    reflection_prompt: str

    @classmethod
    def from_reply(cls, theme: str, reply: dict[str, Any]) -> "ThematicSynthesis":
        return cls(
            theme=theme,
            summary=reply["summary"],
            key_insights=[
                KeyInsight(
                    insight=k["insight"],
                    supporting_entries=[
                        SupportingEntry(s["moduleId"], s["entryId"], s["title"])
                        for s in k.get("supportingEntries", [])
                    ],
                )
                for k in reply["keyInsights"]
            ],
            emerging_pattern=reply["emergingPattern"],
            reflection_prompt=reply["reflectionPrompt"],
        )


class ThematicSynthesisWorkflow:
    def __init__(self, gateway: GenerationGateway, aggregator: ContextAggregator) -> None:
        self._gateway = gateway
        self._aggregator = aggregator

    async def synthesize(self, theme: str) -> GenerationResult[ThematicSynthesis]:
        theme = theme.strip()
        if not theme:
            raise ValueError("Theme must not be empty")

        context = self._aggregator.build_context(SYNTHESIS_MODULES, theme=theme)
        if context.status is ContextStatus.NO_RELEVANT_ENTRIES:
            raise NoRelevantEntriesError(
                f"No entries mention {theme!r}. Write about it first, or try another keyword."
            )
        if context.status is ContextStatus.SHARING_DISABLED:
            logger.info("Synthesis for %r runs without personal context", theme)

        result = await self._gateway.generate_json(GenerationRequest(
            prompt=prompts.thematic_synthesis_prompt(theme, context.text),
            response_schema=prompts.THEMATIC_SYNTHESIS_SCHEMA,
            modality=Modality.JSON,
        ))
        return result.map(lambda reply: ThematicSynthesis.from_reply(theme, reply))
