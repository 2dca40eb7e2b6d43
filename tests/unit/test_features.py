"""
Unit tests for halte/features/ — feature workflows

Coverage plan
─────────────
catalog.py    → lookup caches per item, failures retried, unknown catalog,
                rhythm advice keyed per day
sounds.py     → add / rename / remove
journey.py    → start, too few days, extra days truncated, in-order
                completion, completed status, abandon, persistence
path.py       → context-aware prompt, progress, toggling, reset
review.py     → ISO week ids, stored review reused, force regenerates,
                week window
wounds.py     → quiz scoring and ties, exercise flow, newest first
synthesis.py  → themed context, no relevant entries, sharing disabled
"""

import asyncio
import json
from datetime import date, datetime, timezone

import pytest


class ScriptedClient:
    """OracleClient returning queued replies in order and recording prompts."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    async def send(self, prompt, schema=None, media=None):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)


@pytest.fixture
def store(tmp_path):
    from halte.store.db import PersistentStore
    return PersistentStore(db_path=str(tmp_path / "features.db"))


@pytest.fixture
def stub_gateway():
    from halte.gateway.backends import GatewayConfig
    from halte.gateway.llm_gateway import GenerationGateway
    return GenerationGateway(GatewayConfig(backend="stub"))


def _gateway(client):
    from halte.gateway.llm_gateway import GenerationGateway
    return GenerationGateway(client=client)


def _aggregator(store):
    from halte.context.accessors import default_accessors
    from halte.context.aggregator import ContextAggregator
    from halte.context.permissions import PermissionRegistry
    registry = PermissionRegistry(store)
    return registry, ContextAggregator(registry, default_accessors(store))


def _days(n):
    return [{"title": f"Day {i}", "task": f"Task {i}"} for i in range(1, n + 1)]


# ─────────────────────────────────────────────────────────────────────────────
# 1. Catalogs
# ─────────────────────────────────────────────────────────────────────────────

class TestCatalog:

    HERB = {
        "description": "Calming plant",
        "mainBenefits": ["sleep"],
        "simpleUses": ["tea"],
        "precautions": "None known",
    }

    def test_lookup_generates_once(self, store):
        from halte.features.catalog import Catalog
        client = ScriptedClient(self.HERB)
        herbarium = Catalog.named("herbarium", store, _gateway(client))
        first = asyncio.run(herbarium.lookup("Lavande"))
        second = asyncio.run(herbarium.lookup("Lavande"))
        assert first.value == second.value == self.HERB
        assert len(client.prompts) == 1
        assert "Lavande" in client.prompts[0]

    def test_cache_survives_restart(self, store):
        from halte.features.catalog import Catalog
        asyncio.run(Catalog.named("herbarium", store, _gateway(ScriptedClient(self.HERB))).lookup("Lavande"))
        empty = ScriptedClient()
        result = asyncio.run(Catalog.named("herbarium", store, _gateway(empty)).lookup("Lavande"))
        assert result.value == self.HERB
        assert empty.prompts == []

    def test_transport_error_then_retry(self, store):
        from halte.features.catalog import Catalog
        from halte.gateway.models import ErrorKind
        client = ScriptedClient(ConnectionError("offline"), self.HERB)
        herbarium = Catalog.named("herbarium", store, _gateway(client))
        failed = asyncio.run(herbarium.lookup("Lavande"))
        assert failed.error is ErrorKind.TRANSPORT_ERROR
        assert "Lavande" not in herbarium.cache
        assert asyncio.run(herbarium.lookup("Lavande")).ok
        assert len(client.prompts) == 2

    def test_malformed_reply_not_cached(self, store):
        from halte.features.catalog import Catalog
        from halte.gateway.models import ErrorKind
        herbarium = Catalog.named("herbarium", store, _gateway(ScriptedClient({"description": "only"})))
        result = asyncio.run(herbarium.lookup("Lavande"))
        assert result.error is ErrorKind.MALFORMED_RESPONSE
        assert herbarium.cache.keys() == []

    def test_catalogs_use_separate_namespaces(self, store, stub_gateway):
        from halte.features.catalog import CATALOGS, Catalog
        for name in CATALOGS:
            assert asyncio.run(Catalog.named(name, store, stub_gateway).lookup("Quartz")).ok
        assert {r.namespace_key for r in store.namespaces()} == {
            d.namespace_key for d in CATALOGS.values()
        }

    def test_unknown_catalog(self, store, stub_gateway):
        from halte.features.catalog import Catalog
        with pytest.raises(ValueError, match="Unknown catalog"):
            Catalog.named("aquarium", store, stub_gateway)

    def test_blank_item_rejected(self, store, stub_gateway):
        from halte.features.catalog import Catalog
        with pytest.raises(ValueError):
            asyncio.run(Catalog.named("crystals", store, stub_gateway).lookup("  "))

    def test_padded_item_rejected_not_rewritten(self, store):
        from halte.features.catalog import Catalog
        client = ScriptedClient(self.HERB)
        herbarium = Catalog.named("herbarium", store, _gateway(client))
        with pytest.raises(ValueError, match="whitespace"):
            asyncio.run(herbarium.lookup(" Lavande "))
        assert client.prompts == []
        assert herbarium.cache.keys() == []


class TestRhythmAdvisor:

    def test_cache_key(self):
        from halte.features.catalog import RhythmAdvisor
        assert RhythmAdvisor.cache_key("Lion", "Spring", date(2025, 1, 15)) == "2025-01-15:Lion:Spring"

    def test_advice_cached_per_day(self, store):
        from halte.features.catalog import RhythmAdvisor
        advice = {"title": "Rise early", "advice": "Walk at dawn", "icon": "🌅"}
        client = ScriptedClient(advice, advice)
        advisor = RhythmAdvisor(store, _gateway(client))
        asyncio.run(advisor.advice_for("Lion", "Spring", date(2025, 1, 15)))
        asyncio.run(advisor.advice_for("Lion", "Spring", date(2025, 1, 15)))
        asyncio.run(advisor.advice_for("Lion", "Spring", date(2025, 1, 16)))
        assert len(client.prompts) == 2


# ─────────────────────────────────────────────────────────────────────────────
# 2. Custom sounds
# ─────────────────────────────────────────────────────────────────────────────

class TestCustomSounds:

    def test_add_rename_remove(self, store):
        from halte.features.sounds import CustomSoundLibrary
        library = CustomSoundLibrary(store)
        rain = library.add("Rain", "https://example.org/rain.mp3")
        library.add("Birds", "https://example.org/birds.mp3")
        assert [s.name for s in library.sounds()] == ["Birds", "Rain"]

        library.rename(rain.id, "Soft rain")
        assert CustomSoundLibrary(store).get(rain.id).name == "Soft rain"

        assert library.remove(rain.id) is True
        assert [s.name for s in library.sounds()] == ["Birds"]

    def test_missing_sound(self, store):
        from halte.features.sounds import CustomSoundLibrary
        with pytest.raises(KeyError):
            CustomSoundLibrary(store).rename("nope", "x")

    def test_name_and_url_required(self, store):
        from halte.features.sounds import CustomSoundLibrary
        with pytest.raises(ValueError):
            CustomSoundLibrary(store).add(" ", "https://example.org/a.mp3")


# ─────────────────────────────────────────────────────────────────────────────
# 3. Guided journey
# ─────────────────────────────────────────────────────────────────────────────

class TestGuidedJourney:

    def _workflow(self, store, *replies):
        from halte.features.journey import GuidedJourneyWorkflow
        return GuidedJourneyWorkflow(store, _gateway(ScriptedClient(*replies)))

    def test_idle_by_default(self, store):
        from halte.features.journey import JourneyStatus
        assert self._workflow(store).status is JourneyStatus.IDLE

    def test_start(self, store):
        from halte.features.journey import JourneyStatus
        workflow = self._workflow(store, {"title": "Calm", "description": "d", "days": _days(5)})
        result = asyncio.run(workflow.start("anxiety"))
        assert result.ok
        assert workflow.status is JourneyStatus.ACTIVE
        assert result.value.current_day == 0
        assert [d.day for d in result.value.days] == [1, 2, 3, 4, 5]

    def test_too_few_days_is_malformed(self, store):
        from halte.features.journey import JourneyStatus
        from halte.gateway.models import ErrorKind
        workflow = self._workflow(store, {"title": "Calm", "description": "d", "days": _days(3)})
        result = asyncio.run(workflow.start("anxiety"))
        assert result.error is ErrorKind.MALFORMED_RESPONSE
        assert workflow.status is JourneyStatus.IDLE

    def test_extra_days_truncated(self, store):
        workflow = self._workflow(store, {"title": "Calm", "description": "d", "days": _days(7)})
        assert len(asyncio.run(workflow.start("anxiety")).value.days) == 5

    def test_days_completed_in_order(self, store):
        from halte.exceptions import InvalidStateError
        from halte.features.journey import GuidedJourneyWorkflow, JourneyStatus
        workflow = self._workflow(store, {"title": "Calm", "description": "d", "days": _days(5)})
        asyncio.run(workflow.start("anxiety"))
        with pytest.raises(InvalidStateError):
            workflow.complete_day("skipping ahead", day_index=2)
        for i in range(5):
            workflow.complete_day(f"answer {i}")
        assert workflow.status is JourneyStatus.COMPLETED
        with pytest.raises(InvalidStateError):
            workflow.complete_day("one more")

        reloaded = GuidedJourneyWorkflow(store, _gateway(ScriptedClient()))
        assert reloaded.state.day_states[4].response == "answer 4"

    def test_cannot_start_while_active(self, store):
        from halte.exceptions import InvalidStateError
        workflow = self._workflow(store, {"title": "Calm", "description": "d", "days": _days(5)})
        asyncio.run(workflow.start("anxiety"))
        with pytest.raises(InvalidStateError):
            asyncio.run(workflow.start("sleep"))

    def test_abandon(self, store):
        from halte.features.journey import JourneyStatus
        workflow = self._workflow(store, {"title": "Calm", "description": "d", "days": _days(5)})
        asyncio.run(workflow.start("anxiety"))
        workflow.abandon()
        assert workflow.status is JourneyStatus.IDLE

    def test_corrupt_state_reads_as_idle(self, store):
        from halte import namespaces
        from halte.features.journey import JourneyStatus
        store.write(namespaces.GUIDED_JOURNEY, {"journey": "garbage"})
        assert self._workflow(store).status is JourneyStatus.IDLE


# ─────────────────────────────────────────────────────────────────────────────
# 4. Personalized path
# ─────────────────────────────────────────────────────────────────────────────

class TestPersonalizedPath:

    REPLY = {
        "title": "Find balance",
        "description": "A gentle week",
        "steps": [
            {"day": d, "title": f"Step {d}", "task": "Do it", "moduleId": "journal"}
            for d in (3, 1, 2, 5, 4)
        ],
    }

    def test_create_uses_shared_context(self, store):
        from halte import namespaces
        from halte.features.path import PersonalizedPathWorkflow
        store.write(namespaces.JOURNAL, [
            {"id": "e1", "title": "Tired", "date": "2025-01-10", "content": "Long day at work"},
        ])
        registry, aggregator = _aggregator(store)
        registry.set_allowed("journal", True)
        client = ScriptedClient(self.REPLY)
        result = asyncio.run(
            PersonalizedPathWorkflow(store, _gateway(client), aggregator).create("less stress")
        )
        assert result.ok
        assert [s.day for s in result.value.steps] == [1, 2, 3, 4, 5]
        assert "Long day at work" in client.prompts[0]

    def test_private_data_stays_out_of_prompt(self, store):
        from halte import namespaces
        from halte.features.path import PersonalizedPathWorkflow
        store.write(namespaces.JOURNAL, [
            {"id": "e1", "title": "Tired", "date": "2025-01-10", "content": "Long day at work"},
        ])
        _, aggregator = _aggregator(store)
        client = ScriptedClient(self.REPLY)
        asyncio.run(PersonalizedPathWorkflow(store, _gateway(client), aggregator).create("less stress"))
        assert "Long day at work" not in client.prompts[0]

    def test_unknown_module_is_malformed(self, store):
        from halte.features.path import PersonalizedPathWorkflow
        from halte.gateway.models import ErrorKind
        reply = json.loads(json.dumps(self.REPLY))
        reply["steps"][0]["moduleId"] = "tarot"
        _, aggregator = _aggregator(store)
        workflow = PersonalizedPathWorkflow(store, _gateway(ScriptedClient(reply)), aggregator)
        assert asyncio.run(workflow.create("less stress")).error is ErrorKind.MALFORMED_RESPONSE
        assert workflow.path is None

    def test_progress_toggle_reset(self, store, stub_gateway):
        from halte.exceptions import InvalidStateError
        from halte.features.path import PersonalizedPathWorkflow
        _, aggregator = _aggregator(store)
        workflow = PersonalizedPathWorkflow(store, stub_gateway, aggregator)
        asyncio.run(workflow.create("sleep better"))
        assert workflow.path.progress == (0, 5)
        workflow.toggle_step(0)
        workflow.set_step_completed(3)
        assert PersonalizedPathWorkflow(store, stub_gateway, aggregator).path.progress == (2, 5)
        workflow.toggle_step(0)
        assert workflow.path.progress == (1, 5)
        with pytest.raises(IndexError):
            workflow.toggle_step(9)
        workflow.reset()
        assert workflow.path is None
        with pytest.raises(InvalidStateError):
            workflow.toggle_step(0)


# ─────────────────────────────────────────────────────────────────────────────
# 5. Weekly review
# ─────────────────────────────────────────────────────────────────────────────

class TestWeeklyReview:

    REPLY = {
        "summary": "A steady week",
        "highlights": ["Walked daily"],
        "challenges": ["Sleep"],
        "ritualConsistency": "Good",
        "reflectionQuestion": "What gave you energy?",
    }

    def test_week_id(self):
        from halte.features.review import week_id
        assert week_id(date(2025, 1, 15)) == "2025-W03"
        assert week_id(date(2024, 12, 30)) == "2025-W01"

    def test_week_window(self):
        from halte.features.review import week_window
        start, end = week_window(date(2025, 1, 15))
        assert start == datetime(2025, 1, 13, tzinfo=timezone.utc)
        assert end.date() == date(2025, 1, 19)

    def test_existing_review_reused_unless_forced(self, store):
        from halte.features.review import WeeklyReviewWorkflow
        _, aggregator = _aggregator(store)
        client = ScriptedClient(self.REPLY, {**self.REPLY, "summary": "Regenerated"})
        workflow = WeeklyReviewWorkflow(store, _gateway(client), aggregator)
        day = date(2025, 1, 15)

        first = asyncio.run(workflow.review(day))
        again = asyncio.run(workflow.review(day))
        assert again.value == first.value
        assert len(client.prompts) == 1

        forced = asyncio.run(workflow.review(day, force=True))
        assert forced.value.summary == "Regenerated"
        assert workflow.get("2025-W03").summary == "Regenerated"
        assert workflow.weeks() == ["2025-W03"]

    def test_only_entries_of_the_week_are_sent(self, store):
        from halte import namespaces
        from halte.features.review import WeeklyReviewWorkflow
        store.write(namespaces.JOURNAL, [
            {"id": "in", "title": "This week", "date": "2025-01-14T10:00:00Z", "content": "inside"},
            {"id": "out", "title": "Last week", "date": "2025-01-08T10:00:00Z", "content": "outside"},
        ])
        registry, aggregator = _aggregator(store)
        registry.set_allowed("journal", True)
        client = ScriptedClient(self.REPLY)
        asyncio.run(WeeklyReviewWorkflow(store, _gateway(client), aggregator).review(date(2025, 1, 15)))
        assert "inside" in client.prompts[0]
        assert "outside" not in client.prompts[0]

    def test_failure_stores_nothing(self, store):
        from halte.features.review import WeeklyReviewWorkflow
        _, aggregator = _aggregator(store)
        workflow = WeeklyReviewWorkflow(store, _gateway(ScriptedClient("not json")), aggregator)
        assert not asyncio.run(workflow.review(date(2025, 1, 15))).ok
        assert workflow.get("2025-W03") is None


# ─────────────────────────────────────────────────────────────────────────────
# 6. Wounds
# ─────────────────────────────────────────────────────────────────────────────

class TestScoreQuiz:

    def test_most_frequent_wins(self):
        from halte.features.wounds import score_quiz
        assert score_quiz(["Betrayal", "Rejection", "Betrayal"]) == "Betrayal"

    def test_tie_goes_to_later_counted(self):
        from halte.features.wounds import score_quiz
        assert score_quiz(["Rejection", "Abandonment", "Injustice"]) == "Injustice"
        assert score_quiz(["Abandonment", "Rejection", "Abandonment", "Rejection"]) == "Rejection"

    def test_no_answers_is_undetermined(self):
        from halte.features.wounds import UNDETERMINED, score_quiz
        assert score_quiz([]) == UNDETERMINED

    def test_unknown_answer(self):
        from halte.features.wounds import score_quiz
        with pytest.raises(ValueError):
            score_quiz(["Jealousy"])

    def test_every_question_offers_every_wound(self):
        from halte.features.wounds import CORE_WOUNDS, QUIZ_QUESTIONS
        for _, options in QUIZ_QUESTIONS:
            assert set(options) == set(CORE_WOUNDS)


class TestWoundsWorkflow:

    def test_exercise_flow(self, store):
        from halte.features.wounds import WoundsWorkflow
        client = ScriptedClient(
            {"title": "First", "prompt": "When did you feel left out?"},
            {"title": "Second", "prompt": "What would acceptance look like?"},
        )
        workflow = WoundsWorkflow(store, _gateway(client))
        assert workflow.record_quiz(["Rejection", "Rejection", "Injustice"]).primary_wound == "Rejection"

        exercise = asyncio.run(workflow.generate_exercise())
        assert exercise.value.title == "First"
        assert "Rejection" in client.prompts[0]

        saved = workflow.save_exercise(exercise.value, "  At school.  ")
        assert saved.response == "At school."
        assert workflow.data.exercises[0].prompt == "When did you feel left out?"

    def test_saved_newest_first(self, store):
        from halte.features.wounds import ExercisePrompt, WoundsWorkflow
        workflow = WoundsWorkflow(store, _gateway(ScriptedClient()))
        workflow.record_quiz(["Betrayal"])
        workflow.save_exercise(ExercisePrompt("One", "q1"), "a1")
        workflow.save_exercise(ExercisePrompt("Two", "q2"), "a2")
        reloaded = WoundsWorkflow(store, _gateway(ScriptedClient())).data
        assert reloaded.primary_wound == "Betrayal"
        assert [e.prompt_title for e in reloaded.exercises] == ["Two", "One"]

    def test_quiz_retake_clears_exercises(self, store):
        from halte.features.wounds import ExercisePrompt, WoundsWorkflow
        workflow = WoundsWorkflow(store, _gateway(ScriptedClient()))
        workflow.record_quiz(["Betrayal"])
        workflow.save_exercise(ExercisePrompt("One", "q1"), "a1")
        assert workflow.record_quiz(["Injustice"]).exercises == []

    def test_requires_quiz_first(self, store):
        from halte.exceptions import InvalidStateError
        from halte.features.wounds import ExercisePrompt, WoundsWorkflow
        workflow = WoundsWorkflow(store, _gateway(ScriptedClient()))
        with pytest.raises(InvalidStateError):
            asyncio.run(workflow.generate_exercise())
        with pytest.raises(InvalidStateError):
            workflow.save_exercise(ExercisePrompt("t", "p"), "r")

    def test_reset(self, store):
        from halte.features.wounds import WoundsWorkflow
        workflow = WoundsWorkflow(store, _gateway(ScriptedClient()))
        workflow.record_quiz(["Betrayal"])
        workflow.reset()
        assert workflow.data is None


# ─────────────────────────────────────────────────────────────────────────────
# 7. Thematic synthesis
# ─────────────────────────────────────────────────────────────────────────────

class TestThematicSynthesis:

    REPLY = {
        "summary": "The sun stands for hope",
        "keyInsights": [{
            "insight": "Light lifts your mood",
            "supportingEntries": [{"moduleId": "journal", "entryId": "e1", "title": "Walk"}],
        }],
        "emergingPattern": "Seeking light",
        "reflectionPrompt": "Where else do you find light?",
    }

    def _seed(self, store):
        from halte import namespaces
        store.write(namespaces.JOURNAL, [
            {"id": "e1", "title": "Walk", "date": "2025-01-10", "content": "The soleil was warm"},
            {"id": "e2", "title": "Work", "date": "2025-01-11", "content": "Deadlines"},
        ])
        store.write(namespaces.DREAM_JOURNAL, [
            {"id": "d1", "title": "Soleil noir", "date": "2025-01-12", "content": "A dark sky"},
        ])

    def test_only_matching_entries_are_sent(self, store):
        from halte.features.synthesis import ThematicSynthesisWorkflow
        self._seed(store)
        registry, aggregator = _aggregator(store)
        registry.set_allowed_for_set(["journal", "dream-journal"], True)
        client = ScriptedClient(self.REPLY)
        result = asyncio.run(ThematicSynthesisWorkflow(_gateway(client), aggregator).synthesize("soleil"))
        assert result.ok
        assert result.value.key_insights[0].supporting_entries[0].entry_id == "e1"
        assert "ID: d1" in client.prompts[0]
        assert "ID: e1" in client.prompts[0]
        assert "Deadlines" not in client.prompts[0]

    def test_no_relevant_entries_refused_without_call(self, store):
        from halte.exceptions import NoRelevantEntriesError
        from halte.features.synthesis import ThematicSynthesisWorkflow
        self._seed(store)
        registry, aggregator = _aggregator(store)
        registry.set_allowed("journal", True)
        client = ScriptedClient()
        with pytest.raises(NoRelevantEntriesError):
            asyncio.run(ThematicSynthesisWorkflow(_gateway(client), aggregator).synthesize("montagne"))
        assert client.prompts == []

    def test_sharing_disabled_still_generates(self, store):
        from halte.features.synthesis import ThematicSynthesisWorkflow
        self._seed(store)
        _, aggregator = _aggregator(store)
        client = ScriptedClient(self.REPLY)
        result = asyncio.run(ThematicSynthesisWorkflow(_gateway(client), aggregator).synthesize("soleil"))
        assert result.ok
        assert "The soleil was warm" not in client.prompts[0]
