"""Feature workflows built on the store, the context aggregator and the gateway."""

from .catalog import CATALOGS, Catalog, CatalogDefinition, RhythmAdvisor
from .journey import GuidedJourneyWorkflow, JourneyState, JourneyStatus
from .path import PersonalizedPath, PersonalizedPathWorkflow
from .review import WeeklyReview, WeeklyReviewWorkflow, week_id, week_window
from .sounds import CustomSound, CustomSoundLibrary
from .synthesis import ThematicSynthesis, ThematicSynthesisWorkflow
from .wounds import WoundsData, WoundsWorkflow, score_quiz

__all__ = [
    "CATALOGS",
    "Catalog",
    "CatalogDefinition",
    "RhythmAdvisor",
    "GuidedJourneyWorkflow",
    "JourneyState",
    "JourneyStatus",
    "PersonalizedPath",
    "PersonalizedPathWorkflow",
    "WeeklyReview",
    "WeeklyReviewWorkflow",
    "week_id",
    "week_window",
    "CustomSound",
    "CustomSoundLibrary",
    "ThematicSynthesis",
    "ThematicSynthesisWorkflow",
    "WoundsData",
    "WoundsWorkflow",
    "score_quiz",
]
