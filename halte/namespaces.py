"""Store namespace keys owned by the application, one per feature dataset."""

__all__ = [
    "JOURNAL",
    "THOUGHT_COURT",
    "RITUALS",
    "VALUES",
    "GOALS",
    "GRATITUDE",
    "UNSENT_LETTERS",
    "DREAM_JOURNAL",
    "WEEKLY_REVIEWS",
    "GUIDED_JOURNEY",
    "PERSONALIZED_PATH",
    "WOUNDS",
    "CUSTOM_SOUNDS",
    "HERBARIUM_CACHE",
    "CRYSTALS_CACHE",
    "ARBORETUM_CACHE",
    "BESTIARY_CACHE",
    "RHYTHM_ADVICE_CACHE",
]

# ── User-authored module data ─────────────────────────────────────────────────
JOURNAL        = "journalEntries"
THOUGHT_COURT  = "thoughtCourtCases"
RITUALS        = "rituals"
VALUES         = "userValues"
GOALS          = "goals"
GRATITUDE      = "gratitude"
UNSENT_LETTERS = "unsentLetters"
DREAM_JOURNAL  = "dreamJournalEntries"
CUSTOM_SOUNDS  = "customSounds"

# ── Feature workflows ─────────────────────────────────────────────────────────
WEEKLY_REVIEWS    = "weeklyReviews"
GUIDED_JOURNEY    = "guidedJourney"
PERSONALIZED_PATH = "personalizedPath"
WOUNDS            = "wounds"

# ── Generated-content caches ──────────────────────────────────────────────────
HERBARIUM_CACHE     = "herbariumCache"
CRYSTALS_CACHE      = "crystalsCache"
ARBORETUM_CACHE     = "arboretumCache"
BESTIARY_CACHE      = "bestiaryCache"
RHYTHM_ADVICE_CACHE = "rhythmAdviceCache"
