"""
Prompt templates and response schemas for every generating feature.

Schemas are plain JSON Schema (Draft 7); the gateway validates replies
against them. Prompts carry the user's context block verbatim, or the
aggregator's sentinel sentence when nothing may be shared.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "HERBARIUM_SCHEMA",
    "CRYSTAL_SCHEMA",
    "TREE_SCHEMA",
    "ANIMAL_SCHEMA",
    "RHYTHM_ADVICE_SCHEMA",
    "JOURNEY_SCHEMA",
    "PATH_SCHEMA",
    "PATH_MODULES",
    "WEEKLY_REVIEW_SCHEMA",
    "WOUND_EXERCISE_SCHEMA",
    "THEMATIC_SYNTHESIS_SCHEMA",
    "journey_prompt",
    "path_prompt",
    "weekly_review_prompt",
    "wound_exercise_prompt",
    "thematic_synthesis_prompt",
    "rhythm_advice_prompt",
]


def _strings(min_items: int = 1) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "minItems": min_items}


def _object(**properties: Any) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": list(properties)}


_STR = {"type": "string"}

# ── Catalogs ──────────────────────────────────────────────────────────────────

HERBARIUM_SCHEMA = _object(
    description=_STR,
    mainBenefits=_strings(),
    simpleUses=_strings(),
    precautions=_STR,
)

CRYSTAL_SCHEMA = _object(
    intention=_STR,
    affirmation=_STR,
    meditationPrompt=_STR,
)

TREE_SCHEMA = _object(
    description=_STR,
    symbolism=_strings(),
    reflectionPrompt=_STR,
)

ANIMAL_SCHEMA = _object(
    description=_STR,
    symbolism=_strings(),
    lifeLesson=_STR,
)

RHYTHM_ADVICE_SCHEMA = _object(
    title=_STR,
    advice=_STR,
    icon=_STR,
)


def rhythm_advice_prompt(chronotype: str, season: str) -> str:
    return (
        f"Write one short, actionable piece of advice for today for a person "
        f"with the '{chronotype}' chronotype who feels they are in their inner "
        f"'{season}' season. Be kind and practical. Give a title, the advice "
        f"and one fitting emoji as icon."
    )


# ── Guided journey ────────────────────────────────────────────────────────────

JOURNEY_SCHEMA = _object(
    title=_STR,
    description=_STR,
    days={
        "type": "array",
        "minItems": 5,
        "items": _object(title=_STR, task=_STR),
    },
)


def journey_prompt(topic: str) -> str:
    return (
        f"Create a simple 5-day guided journey on the topic of \"{topic}\" for "
        f"a wellness app user. Give an inspiring title, a one or two sentence "
        f"description, and exactly five days, each with a short title and one "
        f"clear, practical task. Be encouraging."
    )


# ── Personalized path ─────────────────────────────────────────────────────────

PATH_MODULES: tuple[str, ...] = (
    "journal", "thought-court", "values", "goals", "calm-space",
    "assessment", "wounds", "gratitude", "unsent-letters", "fear-setting",
)

PATH_SCHEMA = _object(
    title=_STR,
    description=_STR,
    steps={
        "type": "array",
        "minItems": 5,
        "maxItems": 7,
        "items": _object(
            day={"type": "integer", "minimum": 1},
            title=_STR,
            task=_STR,
            moduleId={"type": "string", "enum": list(PATH_MODULES)},
        ),
    },
)


def path_prompt(goal: str, context: str) -> str:
    modules = ", ".join(f"'{m}'" for m in PATH_MODULES)
    return (
        f"A user has this goal: \"{goal}\".\n"
        f"Background about the user, to personalise the path subtly:\n{context}\n\n"
        f"Create a personalised path of 5 to 7 days. Give an inspiring title and "
        f"a short description. For each day define one concrete, achievable step "
        f"with an action-style title and a kind instruction as task, and link it "
        f"to the most appropriate app module among: {modules}. Make the path "
        f"progressive and varied."
    )


# ── Weekly review ─────────────────────────────────────────────────────────────

WEEKLY_REVIEW_SCHEMA = _object(
    summary=_STR,
    highlights=_strings(),
    challenges=_strings(),
    ritualConsistency=_STR,
    reflectionQuestion=_STR,
)


def weekly_review_prompt(week_id: str, context: str) -> str:
    return (
        f"Write a weekly review for week {week_id}. Be positive, insightful and "
        f"gentle.\nThe user's data for the week:\n{context}\n\n"
        f"Give a two or three sentence summary, two or three highlights, one or "
        f"two constructive challenges, a short encouraging remark on ritual "
        f"consistency, and one reflection question for the coming week."
    )


# ── Wounds ────────────────────────────────────────────────────────────────────

WOUND_EXERCISE_SCHEMA = _object(title=_STR, prompt=_STR)


def wound_exercise_prompt(wound: str) -> str:
    return (
        f"Write a short introspective writing exercise (a title and a single "
        f"question) for someone working on the emotional wound of "
        f"\"{wound}\". It should be kind, constructive, and aim to turn the "
        f"wound into a strength."
    )


# ── Thematic synthesis ────────────────────────────────────────────────────────

THEMATIC_SYNTHESIS_SCHEMA = _object(
    summary=_STR,
    keyInsights={
        "type": "array",
        "items": _object(
            insight=_STR,
            supportingEntries={
                "type": "array",
                "items": _object(moduleId=_STR, entryId=_STR, title=_STR),
            },
        ),
    },
    emergingPattern=_STR,
    reflectionPrompt=_STR,
)


def thematic_synthesis_prompt(theme: str, context: str) -> str:
    return (
        f"A user wants to explore the theme \"{theme}\" through their own "
        f"writing. Read the excerpts below and:\n"
        f"1. write a summary of how the theme shows up in their life;\n"
        f"2. name two or three key insights, each citing the supporting "
        f"entries by Module, ID and Title;\n"
        f"3. describe one recurring pattern of thought or behaviour;\n"
        f"4. ask one powerful reflection question.\n\n"
        f"Excerpts:\n{context}"
    )
