"""
Mastery Progression Engine

Records learning signals per (user, module) and promotes the skill level
when the thresholds for the next tier are met.

Transitions (all conditions must hold):
| From         | To           | Requirements                                                    |
|--------------|--------------|-----------------------------------------------------------------|
| NOVICE       | BEGINNER     | 3+ questions asked, 1+ concept explored                         |
| BEGINNER     | INTERMEDIATE | (quiz >= 70 OR 1+ exercise) AND 5+ concepts                     |
| INTERMEDIATE | ADVANCED     | (quiz >= 85 OR 2+ exercises) AND 10+ questions AND 8+ concepts  |

evaluate() checks only the transition out of the current level, so one call
promotes by at most one tier and the level-up notification stays
single-valued. Levels never go down.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

from .errors import ValidationError
from .progress_store import MasteryRecord, ProgressStore, SkillLevel

logger = logging.getLogger(__name__)

T = TypeVar("T")

BEGINNER_MIN_QUESTIONS = 3
BEGINNER_MIN_CONCEPTS = 1
INTERMEDIATE_MIN_QUIZ = 70
INTERMEDIATE_MIN_EXERCISES = 1
INTERMEDIATE_MIN_CONCEPTS = 5
ADVANCED_MIN_QUIZ = 85
ADVANCED_MIN_EXERCISES = 2
ADVANCED_MIN_QUESTIONS = 10
ADVANCED_MIN_CONCEPTS = 8


@dataclass(frozen=True)
class LevelTransition:
    """Promotion out of one level, guarded by a predicate over the record."""
    target: SkillLevel
    condition: Callable[[MasteryRecord], bool]
    requirements: str


def _quiz_score(record: MasteryRecord) -> int:
    return record.last_quiz_score if record.last_quiz_score is not None else 0


def _ready_for_beginner(record: MasteryRecord) -> bool:
    return (
        record.questions_asked >= BEGINNER_MIN_QUESTIONS
        and len(record.concepts_explored) >= BEGINNER_MIN_CONCEPTS
    )


def _ready_for_intermediate(record: MasteryRecord) -> bool:
    demonstrated = (
        _quiz_score(record) >= INTERMEDIATE_MIN_QUIZ
        or len(record.exercises_completed) >= INTERMEDIATE_MIN_EXERCISES
    )
    return demonstrated and len(record.concepts_explored) >= INTERMEDIATE_MIN_CONCEPTS


def _ready_for_advanced(record: MasteryRecord) -> bool:
    demonstrated = (
        _quiz_score(record) >= ADVANCED_MIN_QUIZ
        or len(record.exercises_completed) >= ADVANCED_MIN_EXERCISES
    )
    return (
        demonstrated
        and record.questions_asked >= ADVANCED_MIN_QUESTIONS
        and len(record.concepts_explored) >= ADVANCED_MIN_CONCEPTS
    )


LEVEL_TRANSITIONS: Dict[SkillLevel, LevelTransition] = {
    SkillLevel.NOVICE: LevelTransition(
        target=SkillLevel.BEGINNER,
        condition=_ready_for_beginner,
        requirements="3+ questions asked and 1+ concept explored",
    ),
    SkillLevel.BEGINNER: LevelTransition(
        target=SkillLevel.INTERMEDIATE,
        condition=_ready_for_intermediate,
        requirements="quiz >= 70% or 1+ exercise, and 5+ concepts explored",
    ),
    SkillLevel.INTERMEDIATE: LevelTransition(
        target=SkillLevel.ADVANCED,
        condition=_ready_for_advanced,
        requirements="quiz >= 85% or 2+ exercises, 10+ questions and 8+ concepts",
    ),
}


# Page interactions that feed the engine
ACTION_VISITED = "visited"
ACTION_EXPANDED_WHY = "expandedWhyItMatters"
ACTION_EXPANDED_DEEP_DIVE = "expandedDeepDive"
ACTION_VIEWED_CASE_STUDY = "viewedCaseStudy"
ACTION_STARTED_EXERCISE = "startedExercise"
ACTION_COMPLETED_EXERCISE = "completedExercise"

TRACK_ACTIONS = (
    ACTION_VISITED,
    ACTION_EXPANDED_WHY,
    ACTION_EXPANDED_DEEP_DIVE,
    ACTION_VIEWED_CASE_STUDY,
    ACTION_STARTED_EXERCISE,
    ACTION_COMPLETED_EXERCISE,
)


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


class MasteryProgressionEngine:
    """
    Sole writer of MasteryRecord.

    Usage:
        engine = MasteryProgressionEngine(InMemoryProgressStore())
        engine.record_question_asked("u1", "rfdiffusion")
        engine.record_concept_explored("u1", "rfdiffusion", "Why It Matters")
        new_level = engine.evaluate("u1", "rfdiffusion")
    """

    def __init__(self, store: ProgressStore):
        self.store = store

    def _load_or_create(self, user_id: str, module_id: str) -> MasteryRecord:
        record = self.store.get(user_id, module_id)
        if record is None:
            logger.debug(f"Creating mastery record for {user_id}/{module_id}")
            record = MasteryRecord(user_id=user_id, module_id=module_id)
        return record

    def get_record(self, user_id: str, module_id: str) -> Optional[MasteryRecord]:
        return self.store.get(user_id, module_id)

    # ==================== Signals ====================

    def _record_value(self, user_id: str, module_id: str, attr: str, value: str) -> bool:
        record = self._load_or_create(user_id, module_id)
        added = getattr(record, attr).add(value)
        if added:
            self.store.upsert(record)
        return added

    def record_concept_explored(self, user_id: str, module_id: str, concept: str) -> bool:
        """Add a concept; returns False when it was already recorded."""
        return self._record_value(user_id, module_id, "concepts_explored", _require(concept, "concept"))

    def record_insight_unlocked(self, user_id: str, module_id: str, insight: str) -> bool:
        """Add an insight (first question, deep dives, case studies...)."""
        return self._record_value(user_id, module_id, "insights_unlocked", _require(insight, "insight"))

    def record_exercise_completed(self, user_id: str, module_id: str, exercise_id: str) -> bool:
        return self._record_value(
            user_id, module_id, "exercises_completed", _require(exercise_id, "exerciseId")
        )

    def record_question_asked(self, user_id: str, module_id: str) -> int:
        """Count one question; returns the new total."""
        record = self._load_or_create(user_id, module_id)
        record.questions_asked += 1
        self.store.upsert(record)
        return record.questions_asked

    def record_quiz_score(
        self,
        user_id: str,
        module_id: str,
        score: int,
        taken_at: Optional[datetime] = None,
    ) -> None:
        """Store the latest quiz percentage (0-100) and when it was taken."""
        if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
            raise ValidationError(f"Quiz score must be an integer between 0 and 100, got {score!r}")
        record = self._load_or_create(user_id, module_id)
        record.last_quiz_score = score
        record.last_quiz_at = taken_at or datetime.now(timezone.utc)
        self.store.upsert(record)

    def track_action(
        self,
        user_id: str,
        module_id: str,
        action: str,
        topic: Optional[str] = None,
        exercise_id: Optional[str] = None,
    ) -> None:
        """
        Translate a page interaction into concept/insight/exercise signals.

        Actions that need a topic or exercise id are ignored without one.
        """
        if action == ACTION_VISITED:
            self.record_insight_unlocked(user_id, module_id, "Visited module page")
        elif action == ACTION_EXPANDED_WHY:
            self.record_concept_explored(user_id, module_id, "Why It Matters")
            self.record_insight_unlocked(user_id, module_id, "Explored why it matters")
        elif action == ACTION_EXPANDED_DEEP_DIVE:
            if topic:
                self.record_concept_explored(user_id, module_id, topic)
                self.record_insight_unlocked(user_id, module_id, f"Deep dive: {topic}")
        elif action == ACTION_VIEWED_CASE_STUDY:
            if topic:
                self.record_concept_explored(user_id, module_id, f"caseStudy:{topic}")
                self.record_insight_unlocked(user_id, module_id, "Viewed case study")
        elif action == ACTION_STARTED_EXERCISE:
            if exercise_id:
                self.record_insight_unlocked(user_id, module_id, f"Started exercise: {exercise_id}")
        elif action == ACTION_COMPLETED_EXERCISE:
            if exercise_id:
                self.record_exercise_completed(user_id, module_id, exercise_id)
                self.record_insight_unlocked(user_id, module_id, f"Completed exercise: {exercise_id}")
        else:
            raise ValidationError(f"Unknown tracking action: {action!r}")

    # ==================== Progression ====================

    def evaluate(self, user_id: str, module_id: str) -> Optional[SkillLevel]:
        """
        Promote by at most one level.

        Returns the new level when a transition fired, otherwise None
        (including when no record exists or the user is already ADVANCED).
        """
        record = self.store.get(user_id, module_id)
        if record is None:
            return None

        transition = LEVEL_TRANSITIONS.get(record.skill_level)
        if transition is None or not transition.condition(record):
            return None

        # Forward only
        if transition.target <= record.skill_level:
            return None

        logger.info(
            f"Skill level up for {user_id}/{module_id}: "
            f"{record.skill_level.value} -> {transition.target.value}"
        )
        record.skill_level = transition.target
        self.store.upsert(record)
        return transition.target

    def track_safely(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> Optional[T]:
        """
        Run a signal/evaluation call without letting store failures escape.

        Used by user-facing actions that must succeed even when tracking fails.
        Caller mistakes (ValidationError) still propagate.
        """
        try:
            return func(*args, **kwargs)
        except ValidationError:
            raise
        except Exception as e:
            logger.warning(f"Progress tracking failed in {getattr(func, '__name__', func)}: {e}")
            return None

    def progress_snapshot(self, user_id: str, module_id: str) -> Dict[str, Any]:
        """Read-only view; a NOVICE all-zero view when nothing is recorded yet."""
        record = self.store.get(user_id, module_id)
        if record is None:
            record = MasteryRecord(user_id=user_id, module_id=module_id)
        snapshot = record.to_dict()
        transition = LEVEL_TRANSITIONS.get(record.skill_level)
        snapshot["nextLevel"] = transition.target.value if transition else None
        snapshot["nextLevelRequirements"] = transition.requirements if transition else None
        return snapshot
