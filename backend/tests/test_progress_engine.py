"""Tests for the mastery progression engine."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

USER = "user-1"
MODULE = "rfdiffusion"


def _explore(engine, count, start=0):
    for i in range(start, start + count):
        engine.record_concept_explored(USER, MODULE, f"concept-{i}")


def _ask(engine, count):
    for _ in range(count):
        engine.record_question_asked(USER, MODULE)


class TestSignals:

    def test_first_signal_creates_novice_record(self, engine):
        from dayhoff.progress_store import SkillLevel
        assert engine.get_record(USER, MODULE) is None
        assert engine.record_concept_explored(USER, MODULE, "Why It Matters") is True
        record = engine.get_record(USER, MODULE)
        assert record.skill_level == SkillLevel.NOVICE
        assert record.concepts_explored.to_list() == ["Why It Matters"]

    def test_repeat_concept_is_idempotent(self, engine):
        engine.record_concept_explored(USER, MODULE, "Diffusion")
        assert engine.record_concept_explored(USER, MODULE, "Diffusion") is False
        assert len(engine.get_record(USER, MODULE).concepts_explored) == 1

    def test_question_count(self, engine):
        assert engine.record_question_asked(USER, MODULE) == 1
        assert engine.record_question_asked(USER, MODULE) == 2

    def test_blank_values_rejected(self, engine):
        from dayhoff.errors import ValidationError
        with pytest.raises(ValidationError):
            engine.record_concept_explored(USER, MODULE, "  ")
        with pytest.raises(ValidationError):
            engine.record_exercise_completed(USER, MODULE, "")
        assert engine.get_record(USER, MODULE) is None

    def test_quiz_score_stored(self, engine):
        taken = datetime(2026, 5, 1, tzinfo=timezone.utc)
        engine.record_quiz_score(USER, MODULE, 85, taken)
        record = engine.get_record(USER, MODULE)
        assert record.last_quiz_score == 85
        assert record.last_quiz_at == taken

    @pytest.mark.parametrize("score", [-1, 101, 70.5, True, "80"])
    def test_quiz_score_validation(self, engine, score):
        from dayhoff.errors import ValidationError
        with pytest.raises(ValidationError):
            engine.record_quiz_score(USER, MODULE, score)

    def test_modules_are_independent(self, engine):
        engine.record_question_asked(USER, "rfdiffusion")
        assert engine.get_record(USER, "proteinmpnn") is None
        assert engine.get_record("someone-else", "rfdiffusion") is None


class TestTrackAction:

    def test_expanded_why_it_matters(self, engine):
        engine.track_action(USER, MODULE, "expandedWhyItMatters")
        record = engine.get_record(USER, MODULE)
        assert "Why It Matters" in record.concepts_explored
        assert "Explored why it matters" in record.insights_unlocked

    def test_deep_dive_and_case_study(self, engine):
        engine.track_action(USER, MODULE, "expandedDeepDive", topic="SE(3) equivariance")
        engine.track_action(USER, MODULE, "viewedCaseStudy", topic="binder")
        record = engine.get_record(USER, MODULE)
        assert record.concepts_explored.to_list() == ["SE(3) equivariance", "caseStudy:binder"]

    def test_completed_exercise(self, engine):
        engine.track_action(USER, MODULE, "completedExercise", exercise_id="ex-1")
        record = engine.get_record(USER, MODULE)
        assert "ex-1" in record.exercises_completed
        assert "Completed exercise: ex-1" in record.insights_unlocked

    def test_missing_topic_is_ignored(self, engine):
        engine.track_action(USER, MODULE, "expandedDeepDive")
        engine.track_action(USER, MODULE, "startedExercise")
        assert engine.get_record(USER, MODULE) is None

    def test_unknown_action(self, engine):
        from dayhoff.errors import ValidationError
        with pytest.raises(ValidationError, match="Unknown tracking action"):
            engine.track_action(USER, MODULE, "clickedEverything")


class TestEvaluate:

    def test_no_record(self, engine):
        assert engine.evaluate(USER, MODULE) is None
        assert engine.get_record(USER, MODULE) is None

    def test_novice_to_beginner(self, engine):
        from dayhoff.progress_store import SkillLevel
        _ask(engine, 3)
        _explore(engine, 1)
        assert engine.evaluate(USER, MODULE) == SkillLevel.BEGINNER
        assert engine.get_record(USER, MODULE).skill_level == SkillLevel.BEGINNER
        assert engine.evaluate(USER, MODULE) is None

    def test_novice_below_threshold(self, engine):
        _ask(engine, 2)
        _explore(engine, 1)
        assert engine.evaluate(USER, MODULE) is None
        _ask(engine, 5)
        assert engine.evaluate(USER, MODULE) is not None

    def test_questions_alone_do_not_promote(self, engine):
        _ask(engine, 10)
        assert engine.evaluate(USER, MODULE) is None

    def test_beginner_to_intermediate_by_exercise(self, engine):
        """Three questions, five concepts, then one exercise."""
        from dayhoff.progress_store import SkillLevel
        _ask(engine, 3)
        _explore(engine, 5)
        assert engine.evaluate(USER, MODULE) == SkillLevel.BEGINNER
        assert engine.evaluate(USER, MODULE) is None

        engine.record_exercise_completed(USER, MODULE, "ex-1")
        assert engine.evaluate(USER, MODULE) == SkillLevel.INTERMEDIATE
        assert engine.evaluate(USER, MODULE) is None

    def test_beginner_to_intermediate_by_quiz(self, engine):
        from dayhoff.progress_store import SkillLevel
        _ask(engine, 3)
        _explore(engine, 5)
        engine.evaluate(USER, MODULE)

        engine.record_quiz_score(USER, MODULE, 69)
        assert engine.evaluate(USER, MODULE) is None
        engine.record_quiz_score(USER, MODULE, 70)
        assert engine.evaluate(USER, MODULE) == SkillLevel.INTERMEDIATE

    def test_intermediate_needs_concepts(self, engine):
        _ask(engine, 3)
        _explore(engine, 4)
        engine.evaluate(USER, MODULE)
        engine.record_quiz_score(USER, MODULE, 100)
        assert engine.evaluate(USER, MODULE) is None

    def test_intermediate_to_advanced(self, engine):
        from dayhoff.progress_store import SkillLevel
        _ask(engine, 3)
        _explore(engine, 5)
        engine.evaluate(USER, MODULE)
        engine.record_exercise_completed(USER, MODULE, "ex-1")
        assert engine.evaluate(USER, MODULE) == SkillLevel.INTERMEDIATE

        _explore(engine, 3, start=5)
        _ask(engine, 7)
        assert engine.evaluate(USER, MODULE) is None  # one exercise, no quiz

        engine.record_quiz_score(USER, MODULE, 85)
        assert engine.evaluate(USER, MODULE) == SkillLevel.ADVANCED
        assert engine.evaluate(USER, MODULE) is None

    def test_one_level_per_call(self, engine):
        from dayhoff.progress_store import SkillLevel
        _ask(engine, 10)
        _explore(engine, 8)
        engine.record_exercise_completed(USER, MODULE, "ex-1")
        engine.record_exercise_completed(USER, MODULE, "ex-2")

        assert engine.evaluate(USER, MODULE) == SkillLevel.BEGINNER
        assert engine.evaluate(USER, MODULE) == SkillLevel.INTERMEDIATE
        assert engine.evaluate(USER, MODULE) == SkillLevel.ADVANCED
        assert engine.evaluate(USER, MODULE) is None

    def test_level_never_decreases(self, engine, store):
        from dayhoff.progress_store import MasteryRecord, SkillLevel
        store.upsert(MasteryRecord(user_id=USER, module_id=MODULE, skill_level=SkillLevel.ADVANCED))
        engine.record_quiz_score(USER, MODULE, 0)
        assert engine.evaluate(USER, MODULE) is None
        assert engine.get_record(USER, MODULE).skill_level == SkillLevel.ADVANCED


class TestTrackSafely:

    def test_store_failure_is_swallowed(self):
        from dayhoff.progress_engine import MasteryProgressionEngine
        broken = MagicMock()
        broken.get.side_effect = IOError("disk full")
        engine = MasteryProgressionEngine(broken)
        assert engine.track_safely(engine.record_question_asked, USER, MODULE) is None
        assert engine.track_safely(engine.evaluate, USER, MODULE) is None

    def test_validation_error_propagates(self, engine):
        from dayhoff.errors import ValidationError
        with pytest.raises(ValidationError):
            engine.track_safely(engine.track_action, USER, MODULE, "bogus")

    def test_returns_result(self, engine):
        assert engine.track_safely(engine.record_question_asked, USER, MODULE) == 1


class TestProgressSnapshot:

    def test_default_snapshot(self, engine):
        snapshot = engine.progress_snapshot(USER, MODULE)
        assert snapshot["skillLevel"] == "NOVICE"
        assert snapshot["questionsAsked"] == 0
        assert snapshot["nextLevel"] == "BEGINNER"
        assert "3+ questions" in snapshot["nextLevelRequirements"]
        # Reading does not create a record
        assert engine.get_record(USER, MODULE) is None

    def test_advanced_has_no_next_level(self, engine, store):
        from dayhoff.progress_store import MasteryRecord, SkillLevel
        store.upsert(MasteryRecord(user_id=USER, module_id=MODULE, skill_level=SkillLevel.ADVANCED))
        snapshot = engine.progress_snapshot(USER, MODULE)
        assert snapshot["nextLevel"] is None
        assert snapshot["nextLevelRequirements"] is None
