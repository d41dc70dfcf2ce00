"""Achievement catalog — static definitions and the immutable registry built from them.

Each definition names the progress value that backs its threshold
(``counter``). Cumulative counters only ever grow, so an achievement earned
from them stays earned when the notes/decks/folders behind it are deleted.
``current_state`` entries are the exception: they describe something that
exists right now and are evaluated from caller-supplied live values.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass
from types import MappingProxyType

CATALOG_VERSION = "2026.10"

TIERS = ("bronze", "silver", "gold", "platinum")
CATEGORIES = (
    "notes", "tasks", "flashcards", "study", "streak",
    "exams", "mastery", "profile", "social", "special",
)
SCOPES = ("cumulative", "daily")
PERMANENCE = ("cumulative", "current_state")


class CatalogError(ValueError):
    """Malformed catalog definition."""


@dataclass(frozen=True)
class AchievementDefinition:
    key: str
    name: str
    description: str
    icon: str
    xp_reward: int
    category: str
    tier: str
    requirement: int | None = None
    counter: str | None = None
    scope: str = "cumulative"
    permanence: str = "cumulative"

    def __post_init__(self) -> None:
        if self.tier not in TIERS:
            raise CatalogError(f"{self.key}: unknown tier {self.tier!r}")
        if self.category not in CATEGORIES:
            raise CatalogError(f"{self.key}: unknown category {self.category!r}")
        if self.scope not in SCOPES:
            raise CatalogError(f"{self.key}: unknown scope {self.scope!r}")
        if self.permanence not in PERMANENCE:
            raise CatalogError(f"{self.key}: unknown permanence {self.permanence!r}")
        if self.xp_reward < 0:
            raise CatalogError(f"{self.key}: xp_reward must be >= 0")
        if self.counter is not None and self.requirement is None:
            raise CatalogError(f"{self.key}: counter-backed achievements need a requirement")

    def as_dict(self) -> dict:
        return asdict(self)


class AchievementCatalog:
    """Read-only registry of achievement definitions, keyed by ``key``.

    Built once at startup and handed to whatever needs it; nothing mutates it.
    """

    def __init__(self, definitions: Iterable[AchievementDefinition], version: str = CATALOG_VERSION) -> None:
        ordered = tuple(definitions)
        by_key: dict[str, AchievementDefinition] = {}
        for definition in ordered:
            if definition.key in by_key:
                raise CatalogError(f"Duplicate achievement key: {definition.key}")
            by_key[definition.key] = definition
        self._ordered = ordered
        self._by_key = MappingProxyType(by_key)
        self.version = version

    def get(self, key: str) -> AchievementDefinition | None:
        return self._by_key.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[AchievementDefinition]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._by_key)

    def by_category(self, category: str) -> tuple[AchievementDefinition, ...]:
        return tuple(d for d in self._ordered if d.category == category)

    def backed_by(self, counter: str, scope: str = "cumulative") -> tuple[AchievementDefinition, ...]:
        return tuple(d for d in self._ordered if d.counter == counter and d.scope == scope)

    def satisfied(self, counter: str, value: int, scope: str = "cumulative") -> list[AchievementDefinition]:
        """Definitions backed by ``counter`` whose threshold ``value`` meets."""
        return [
            d for d in self.backed_by(counter, scope)
            if d.requirement is not None and value >= d.requirement
        ]

    def counters(self, scope: str = "cumulative") -> set[str]:
        return {d.counter for d in self._ordered if d.counter is not None and d.scope == scope}


def _a(key: str, name: str, description: str, icon: str, xp: int, category: str, tier: str, **kw: object) -> AchievementDefinition:
    return AchievementDefinition(
        key=key, name=name, description=description, icon=icon,
        xp_reward=xp, category=category, tier=tier, **kw,  # type: ignore[arg-type]
    )


ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    # Notes
    _a("first-note", "First Steps", "Create your first note", "📝", 10, "notes", "bronze",
       requirement=1, counter="total_notes_created"),
    _a("notes-10", "Note Taker", "Create 10 notes", "📚", 25, "notes", "bronze",
       requirement=10, counter="total_notes_created"),
    _a("notes-50", "Prolific Writer", "Create 50 notes", "✍️", 100, "notes", "silver",
       requirement=50, counter="total_notes_created"),
    _a("notes-100", "Knowledge Builder", "Create 100 notes", "📖", 250, "notes", "gold",
       requirement=100, counter="total_notes_created"),
    _a("notes-500", "Master Scribe", "Create 500 notes", "🏆", 1000, "notes", "platinum",
       requirement=500, counter="total_notes_created"),
    _a("first-link", "Link Creator", "Create your first note link", "🔗", 15, "notes", "bronze",
       requirement=1, counter="total_links_created"),
    _a("knowledge-connector", "Knowledge Connector", "Create a note with 5+ links", "🕸️", 100, "notes", "silver",
       requirement=5, permanence="current_state"),
    _a("first-folder", "Organizer", "Create your first folder", "📁", 10, "notes", "bronze",
       requirement=1, counter="total_folders_created"),
    _a("folder-master", "Folder Master", "Create 10 folders", "🗂️", 75, "notes", "silver",
       requirement=10, counter="total_folders_created"),
    _a("first-tag", "Tag Beginner", "Create and use your first tag", "🏷️", 5, "notes", "bronze",
       requirement=1, counter="total_tags_used"),
    _a("tag-master", "Tag Master", "Use tags on 50 items", "🎯", 100, "notes", "silver",
       requirement=50, counter="total_tags_used"),

    # Tasks
    _a("first-task", "Getting Organized", "Create your first task", "✅", 10, "tasks", "bronze",
       requirement=1, counter="total_tasks_created"),
    _a("tasks-completed-10", "Go-Getter", "Complete 10 tasks", "🎯", 50, "tasks", "bronze",
       requirement=10, counter="total_tasks_completed"),
    _a("tasks-completed-50", "Productivity Pro", "Complete 50 tasks", "⚡", 150, "tasks", "silver",
       requirement=50, counter="total_tasks_completed"),
    _a("tasks-completed-100", "Task Master", "Complete 100 tasks", "🌟", 300, "tasks", "gold",
       requirement=100, counter="total_tasks_completed"),
    _a("tasks-completed-500", "Efficiency Expert", "Complete 500 tasks", "👑", 1500, "tasks", "platinum",
       requirement=500, counter="total_tasks_completed"),
    _a("early-bird", "Early Bird", "Complete 10 tasks before their due date", "🐦", 75, "tasks", "silver",
       requirement=10, counter="early_task_completions"),
    _a("priority-master", "Priority Master", "Complete tasks of all priority levels", "🎚️", 50, "tasks", "bronze",
       requirement=3, permanence="current_state"),

    # Flashcards
    _a("first-deck", "Deck Builder", "Create your first flashcard deck", "🃏", 10, "flashcards", "bronze",
       requirement=1, counter="total_decks_created"),
    _a("deck-collector", "Deck Collector", "Create 10 flashcard decks", "🎴", 100, "flashcards", "silver",
       requirement=10, counter="total_decks_created"),
    _a("cards-reviewed-100", "Memory Apprentice", "Review 100 flashcards", "🧠", 50, "flashcards", "bronze",
       requirement=100, counter="total_cards_reviewed"),
    _a("cards-reviewed-500", "Memory Champion", "Review 500 flashcards", "💡", 200, "flashcards", "silver",
       requirement=500, counter="total_cards_reviewed"),
    _a("cards-reviewed-1000", "Recall Master", "Review 1000 flashcards", "🎓", 500, "flashcards", "gold",
       requirement=1000, counter="total_cards_reviewed"),
    _a("cards-reviewed-5000", "Memory Palace", "Review 5000 flashcards", "🏛️", 2000, "flashcards", "platinum",
       requirement=5000, counter="total_cards_reviewed"),
    _a("perfect-recall", "Perfect Recall", "Get 20 consecutive correct reviews", "💫", 200, "flashcards", "gold",
       requirement=20, counter="current_review_streak"),

    # Study sessions (requirements in minutes)
    _a("first-study-session", "Focus Beginner", "Complete your first study session", "⏱️", 15, "study", "bronze",
       requirement=1, counter="total_study_minutes"),
    _a("study-hours-10", "Dedicated Student", "Study for 10 hours total", "📚", 100, "study", "bronze",
       requirement=600, counter="total_study_minutes"),
    _a("study-hours-50", "Study Warrior", "Study for 50 hours total", "⚔️", 400, "study", "silver",
       requirement=3000, counter="total_study_minutes"),
    _a("study-hours-100", "Scholar", "Study for 100 hours total", "🎯", 800, "study", "gold",
       requirement=6000, counter="total_study_minutes"),
    _a("study-hours-500", "Academic Legend", "Study for 500 hours total", "🌠", 5000, "study", "platinum",
       requirement=30000, counter="total_study_minutes"),

    # Streaks
    _a("streak-3", "Getting Started", "Maintain a 3-day study streak", "🔥", 30, "streak", "bronze",
       requirement=3, counter="current_streak"),
    _a("streak-7", "Week Warrior", "Maintain a 7-day study streak", "🌟", 100, "streak", "bronze",
       requirement=7, counter="current_streak"),
    _a("streak-30", "Month Master", "Maintain a 30-day study streak", "📅", 500, "streak", "silver",
       requirement=30, counter="current_streak"),
    _a("streak-100", "Century Club", "Maintain a 100-day study streak", "💯", 2000, "streak", "gold",
       requirement=100, counter="current_streak"),
    _a("streak-200", "Consistency Champion", "Maintain a 200-day study streak", "🏆", 5000, "streak", "gold",
       requirement=200, counter="current_streak"),
    _a("streak-365", "Year of Excellence", "Maintain a 365-day study streak", "👑", 10000, "streak", "platinum",
       requirement=365, counter="current_streak"),

    # Exams
    _a("exam-creator", "Exam Creator", "Create your first exam", "📝", 15, "exams", "bronze",
       requirement=1, counter="total_exams_created"),
    _a("first-exam", "Test Taker", "Complete your first exam", "📋", 20, "exams", "bronze",
       requirement=1, counter="total_exams_completed"),
    _a("exams-completed-10", "Test Veteran", "Complete 10 exams", "📝", 150, "exams", "silver",
       requirement=10, counter="total_exams_completed"),
    _a("exams-completed-50", "Exam Expert", "Complete 50 exams", "🎓", 500, "exams", "gold",
       requirement=50, counter="total_exams_completed"),
    _a("question-master", "Question Master", "Create 50 questions across exams", "❓", 150, "exams", "silver",
       requirement=50, counter="total_questions_created"),
    _a("perfect-exam", "Perfect Score", "Get 100% on an exam", "💯", 100, "exams", "silver"),
    _a("variety-expert", "Variety Expert", "Use all question types in one exam", "🎭", 75, "exams", "silver",
       permanence="current_state"),

    # Mastery
    _a("level-10", "Rising Star", "Reach level 10", "⭐", 100, "mastery", "bronze",
       requirement=10, counter="level"),
    _a("level-25", "Expert Learner", "Reach level 25", "🌟", 250, "mastery", "silver",
       requirement=25, counter="level"),
    _a("level-50", "Master Student", "Reach level 50", "💫", 500, "mastery", "gold",
       requirement=50, counter="level"),
    _a("level-100", "Legendary Scholar", "Reach level 100", "🏆", 1000, "mastery", "platinum",
       requirement=100, counter="level"),

    # Profile (reported by the account collaborator)
    _a("welcome", "Welcome Aboard", "Create your account", "👋", 10, "profile", "bronze"),
    _a("avatar-upload", "Face of Knowledge", "Upload a custom avatar", "🖼️", 20, "profile", "bronze"),
    _a("complete-profile", "Identity Complete", "Complete your profile with name and avatar", "✨", 30,
       "profile", "bronze"),

    # Social
    _a("bug-reporter", "Bug Hunter", "Report your first bug", "🐛", 50, "social", "bronze",
       requirement=1, counter="total_bugs_reported"),
    _a("quality-contributor", "Quality Contributor", "Report 5 bugs", "🔍", 200, "social", "silver",
       requirement=5, counter="total_bugs_reported"),

    # Special
    _a("first-day", "Fast Starter", "Complete 5 actions on your first day", "⚡", 100, "special", "silver",
       requirement=5),
    _a("well-rounded", "Well-Rounded Learner", "Use all 5 main features", "🌐", 150, "special", "silver"),
    _a("power-user", "Power User", "Reach level 20 with 100+ completed tasks", "💪", 500, "special", "gold"),
    _a("productivity-sprint", "Productivity Sprint", "Complete 10 tasks in one day", "🏃", 100, "special", "silver",
       requirement=10, counter="tasks_completed", scope="daily"),
    _a("speed-learner", "Speed Learner", "Review 50 flashcards in one day", "⚡", 100, "special", "silver",
       requirement=50, counter="cards_reviewed", scope="daily"),
    _a("exam-daily-challenge", "Test Marathon", "Answer 20 exam questions in one day", "📝", 100, "special",
       "silver", requirement=20, counter="questions_answered", scope="daily"),
    _a("night-owl", "Night Owl", "Study between 11 PM - 11:59 PM", "🦉", 25, "special", "bronze"),
    _a("early-riser", "Early Riser", "Study between 12 AM - 5:59 AM", "🌅", 25, "special", "bronze"),
)


def load_default_catalog() -> AchievementCatalog:
    """Build the registry for the built-in achievement list."""
    return AchievementCatalog(ACHIEVEMENTS, version=CATALOG_VERSION)


_TIER_ORDER = {tier: i for i, tier in enumerate(TIERS)}


def sort_achievements(definitions: Iterable[AchievementDefinition]) -> list[AchievementDefinition]:
    """Order by tier, then XP reward."""
    return sorted(definitions, key=lambda d: (_TIER_ORDER[d.tier], d.xp_reward))
