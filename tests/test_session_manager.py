"""
Tests for the exam session state machine, its countdown and review window.
"""

import threading

import pytest

from exam_practice.core.exceptions import ConfigurationError
from exam_practice.core.models import ExamType, NO_ANSWER, SessionState
from exam_practice.services.session_manager import ExamSessionManager, SessionConfig


def start(manager, questions, learner_id="learner-1"):
    return manager.start_session(learner_id, ExamType.PRACTICE, questions)


def session_timers(scheduler):
    """Pending handles other than the manager's cleanup tick"""
    return [h for h in scheduler.pending() if h.name != "session-cleanup"]


class TestStartSession:
    def test_new_session_is_running_at_first_question(self, manager, questions):
        session = start(manager, questions)

        assert session.state == SessionState.RUNNING
        assert session.current_question_index == 0
        assert session.current_question.id == "q1"
        assert session.responses == []
        assert session.time_remaining == 100
        assert not session.is_completed
        assert not session.is_paused

    def test_schedules_countdown_and_auto_save(self, manager, questions, scheduler):
        start(manager, questions)

        names = sorted(h.name.split("-")[0] for h in session_timers(scheduler))
        assert names == ["autosave", "countdown"]

    def test_rejects_empty_question_list(self, manager):
        with pytest.raises(ConfigurationError):
            manager.start_session("learner-1", ExamType.PRACTICE, [])

    def test_rejects_blank_learner(self, manager, questions):
        with pytest.raises(ConfigurationError):
            manager.start_session("  ", ExamType.PRACTICE, questions)

    def test_requires_started_manager(self, clock, scheduler, questions):
        idle = ExamSessionManager(SessionConfig(time_limit=100), clock=clock, scheduler=scheduler)

        with pytest.raises(RuntimeError):
            idle.start_session("learner-1", ExamType.PRACTICE, questions)

    def test_invalid_session_config(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(time_limit=0)
        with pytest.raises(ConfigurationError):
            SessionConfig(auto_save_interval=0)
        with pytest.raises(ConfigurationError):
            SessionConfig(cleanup_interval=0)


class TestSubmitAnswer:
    def test_records_answer_and_advances(self, manager, questions, scheduler):
        session = start(manager, questions)
        scheduler.advance(12)

        assert manager.submit_answer(session.id, "q1", 0) is True

        updated = manager.get_session(session.id)
        assert updated.current_question_index == 1
        assert len(updated.responses) == 1
        response = updated.responses[0]
        assert response.question_id == "q1"
        assert response.is_correct is True
        assert response.time_spent == 12

    def test_incorrect_answer_is_recorded(self, manager, questions):
        session = start(manager, questions)

        assert manager.submit_answer(session.id, "q1", 3) is True
        assert manager.get_session(session.id).responses[0].is_correct is False

    def test_question_mismatch_is_rejected(self, manager, questions):
        session = start(manager, questions)

        assert manager.submit_answer(session.id, "q2", 1) is False
        assert manager.get_session(session.id).current_question_index == 0

    def test_unknown_session(self, manager):
        assert manager.submit_answer("missing", "q1", 0) is False

    def test_paused_session_rejects_answer(self, manager, questions):
        session = start(manager, questions)
        manager.pause_session(session.id)

        assert manager.submit_answer(session.id, "q1", 0) is False

        snapshot = manager.get_session(session.id)
        assert snapshot.responses == []
        assert snapshot.current_question_index == 0

    def test_time_spent_excludes_paused_interval(self, manager, questions, scheduler):
        session = start(manager, questions)
        scheduler.advance(5)
        manager.pause_session(session.id)
        scheduler.advance(500)
        manager.resume_session(session.id)
        scheduler.advance(3)

        manager.submit_answer(session.id, "q1", 0)

        assert manager.get_session(session.id).responses[0].time_spent == 8

    def test_time_spent_is_per_question(self, manager, questions, scheduler):
        session = start(manager, questions)
        scheduler.advance(40)
        manager.submit_answer(session.id, "q1", 0)
        scheduler.advance(7)
        manager.submit_answer(session.id, "q2", 1)

        responses = manager.get_session(session.id).responses
        assert [r.time_spent for r in responses] == [40, 7]

    def test_last_answer_completes_with_review(self, manager, questions, completed_results):
        session = start(manager, questions)
        manager.submit_answer(session.id, "q1", 0)
        manager.submit_answer(session.id, "q2", 1)
        manager.submit_answer(session.id, "q3", 0)

        snapshot = manager.get_session(session.id)
        assert snapshot.state == SessionState.COMPLETED
        assert manager.is_in_review_mode(session.id) is True

        result = manager.get_result(session.id)
        assert result.correct_answers == 2
        assert result.total_questions == 3
        assert completed_results == [result]

    def test_completed_session_rejects_answer(self, manager, questions):
        session = start(manager, questions)
        manager.force_complete(session.id)

        assert manager.submit_answer(session.id, "q1", 0) is False


class TestPauseResume:
    def test_pause_freezes_remaining_time(self, manager, questions, scheduler):
        session = start(manager, questions)
        scheduler.advance(45)

        assert manager.pause_session(session.id) is True
        scheduler.advance(1000)

        snapshot = manager.get_session(session.id)
        assert snapshot.is_paused
        assert snapshot.time_remaining == 55
        assert session_timers(scheduler) == []

    def test_resume_restarts_countdown(self, manager, questions, scheduler, completed_results):
        session = start(manager, questions)
        scheduler.advance(45)
        manager.pause_session(session.id)
        scheduler.advance(300)

        assert manager.resume_session(session.id) is True
        scheduler.advance(54)
        assert manager.get_session(session.id).state == SessionState.RUNNING

        scheduler.advance(1)
        snapshot = manager.get_session(session.id)
        assert snapshot.state == SessionState.COMPLETED
        assert snapshot.time_remaining == 0
        assert len(completed_results) == 1

    def test_pause_is_idempotent(self, manager, questions):
        session = start(manager, questions)

        assert manager.pause_session(session.id) is True
        assert manager.pause_session(session.id) is True

    def test_resume_running_session_is_noop(self, manager, questions):
        session = start(manager, questions)

        assert manager.resume_session(session.id) is True
        assert manager.get_session(session.id).state == SessionState.RUNNING

    def test_completed_session_cannot_pause_or_resume(self, manager, questions):
        session = start(manager, questions)
        manager.complete_early(session.id)

        assert manager.pause_session(session.id) is False
        assert manager.resume_session(session.id) is False

    def test_unknown_session(self, manager):
        assert manager.pause_session("missing") is False
        assert manager.resume_session("missing") is False

    def test_stale_countdown_is_ignored_after_pause(self, manager, questions, scheduler):
        session = start(manager, questions)
        countdown = next(h for h in scheduler.handles if h.name.startswith("countdown"))
        manager.pause_session(session.id)

        # A callback already in flight when the pause happened
        countdown.callback()

        assert manager.get_session(session.id).state == SessionState.PAUSED


class TestTimeExpiry:
    def test_countdown_completes_without_review(self, manager, questions, scheduler, completed_results):
        session = start(manager, questions)
        manager.submit_answer(session.id, "q1", 0)

        scheduler.advance(100)

        snapshot = manager.get_session(session.id)
        assert snapshot.state == SessionState.COMPLETED
        assert manager.is_in_review_mode(session.id) is False
        assert manager.navigate_to(session.id, 0) is False

        result = completed_results[0]
        assert result.total_questions == 3
        assert len(result.responses) == 3
        assert [r.selected_answer for r in result.responses[1:]] == [NO_ANSWER, NO_ANSWER]

    def test_auto_save_checkpoints_time(self, manager, questions, scheduler):
        session = start(manager, questions)

        scheduler.advance(30)
        assert manager.get_time_remaining(session.id) == 70

        scheduler.advance(15)
        assert manager.get_time_remaining(session.id) == 55

    def test_query_after_deadline_completes(self, manager, questions, clock):
        session = start(manager, questions)

        # Clock jumps past the limit before any timer fires
        clock.advance(250)

        assert manager.get_time_remaining(session.id) == 0
        assert manager.get_session(session.id).state == SessionState.COMPLETED

    def test_unknown_session_has_no_time(self, manager):
        assert manager.get_time_remaining("missing") == 0


class TestCompletion:
    def test_complete_early_enters_review(self, manager, questions, scheduler):
        session = start(manager, questions)
        scheduler.advance(20)

        result = manager.complete_early(session.id)

        assert result is not None
        assert result.correct_answers == 0
        assert manager.is_in_review_mode(session.id) is True
        for index in range(len(questions)):
            assert manager.navigate_to(session.id, index) is True
        assert manager.get_session(session.id).current_question_index == 2

    def test_review_ends_when_time_elapses(self, manager, questions, scheduler):
        session = start(manager, questions)
        scheduler.advance(20)
        manager.complete_early(session.id)

        scheduler.advance(79)
        assert manager.is_in_review_mode(session.id) is True

        scheduler.advance(1)
        assert manager.is_in_review_mode(session.id) is False
        assert manager.navigate_to(session.id, 0) is False

    def test_complete_early_from_paused(self, manager, questions):
        session = start(manager, questions)
        manager.pause_session(session.id)

        assert manager.complete_early(session.id) is not None
        assert manager.is_in_review_mode(session.id) is True

    def test_complete_early_twice(self, manager, questions):
        session = start(manager, questions)
        manager.complete_early(session.id)

        assert manager.complete_early(session.id) is None

    def test_force_complete_is_not_reviewable(self, manager, questions):
        session = start(manager, questions)

        result = manager.force_complete(session.id)

        assert result is not None
        assert manager.is_in_review_mode(session.id) is False

    def test_force_complete_returns_existing_result(self, manager, questions, completed_results):
        session = start(manager, questions)
        first = manager.complete_early(session.id)

        assert manager.force_complete(session.id) is first
        assert len(completed_results) == 1

    def test_end_time_after_start_time(self, manager, questions):
        session = start(manager, questions)

        # Completed within the same clock tick
        result = manager.force_complete(session.id)

        assert result.end_time > result.start_time
        assert result.time_spent == 1

    def test_result_totals_are_consistent(self, manager, questions):
        session = start(manager, questions)
        manager.submit_answer(session.id, "q1", 0)
        manager.submit_answer(session.id, "q2", 1)
        result = manager.force_complete(session.id)

        assert len(result.responses) == result.total_questions
        assert sum(t.total_questions for t in result.topic_breakdown) == result.total_questions
        assert sum(t.correct_answers for t in result.topic_breakdown) == result.correct_answers

        by_topic = {t.topic.value: t for t in result.topic_breakdown}
        governance = by_topic["Data Governance"]
        assert governance.total_questions == 2
        assert governance.correct_answers == 1
        assert governance.percentage == 50

    def test_failed_completion_hook_is_retried(self, clock, scheduler, questions):
        saved = []
        attempts = []

        def flaky_hook(result):
            attempts.append(result)
            if len(attempts) == 1:
                raise RuntimeError("storage down")
            saved.append(result)

        session_manager = ExamSessionManager(
            SessionConfig(time_limit=100, cleanup_interval=60),
            clock=clock, scheduler=scheduler, on_complete=flaky_hook
        )
        session_manager.start()
        session = session_manager.start_session("learner-1", ExamType.PRACTICE, questions)

        result = session_manager.force_complete(session.id)

        assert result is not None
        assert saved == []
        assert session_manager.get_stats()["unsaved_results"] == 1

        scheduler.advance(60)

        assert saved == [result]
        assert session_manager.get_stats()["unsaved_results"] == 0
        session_manager.stop()

    def test_completion_hook_runs_after_session_lock_is_released(self, clock, scheduler, questions):
        observed = []

        def hook(result):
            # Another thread must be able to read the session while the hook runs
            worker = threading.Thread(target=lambda: observed.append(session_manager.get_session(result.session_id)))
            worker.start()
            worker.join(timeout=2)
            observed.append(worker.is_alive())

        session_manager = ExamSessionManager(
            SessionConfig(time_limit=100), clock=clock, scheduler=scheduler, on_complete=hook
        )
        session_manager.start()
        session = session_manager.start_session("learner-1", ExamType.PRACTICE, questions)

        session_manager.force_complete(session.id)

        assert observed[0].state == SessionState.COMPLETED
        assert observed[1] is False
        session_manager.stop()

    def test_unknown_session(self, manager):
        assert manager.complete_early("missing") is None
        assert manager.force_complete("missing") is None
        assert manager.get_result("missing") is None


class TestNavigation:
    def test_navigation_requires_review(self, manager, questions):
        session = start(manager, questions)

        assert manager.navigate_to(session.id, 1) is False

    def test_out_of_range_index(self, manager, questions):
        session = start(manager, questions)
        manager.complete_early(session.id)

        assert manager.navigate_to(session.id, 3) is False
        assert manager.navigate_to(session.id, -1) is False


class TestEndSession:
    def test_end_session_releases_timers(self, manager, questions, scheduler):
        session = start(manager, questions)

        manager.end_session(session.id)

        assert manager.get_session(session.id) is None
        assert session_timers(scheduler) == []
        assert manager.is_in_review_mode(session.id) is False

    def test_end_session_is_idempotent(self, manager, questions):
        session = start(manager, questions)

        manager.end_session(session.id)
        manager.end_session(session.id)
        manager.end_session("missing")

    def test_list_active_sessions(self, manager, questions, clock):
        first = start(manager, questions)
        clock.advance(1)
        second = start(manager, questions)
        start(manager, questions, learner_id="learner-2")

        manager.end_session(first.id)

        active = manager.list_active_sessions("learner-1")
        assert [s.id for s in active] == [second.id]
        assert manager.list_active_sessions("nobody") == []

    def test_stop_ends_every_session(self, manager, questions, scheduler):
        session = start(manager, questions)

        manager.stop()

        assert manager.get_session(session.id) is None
        assert scheduler.pending() == []
        assert manager.get_stats()["active_sessions"] == 0


class TestCleanup:
    def test_finished_sessions_are_evicted(self, manager, questions, scheduler):
        sessions = [start(manager, questions) for _ in range(50)]
        for session in sessions:
            manager.force_complete(session.id)

        scheduler.advance(10_000)

        stats = manager.get_stats()
        assert stats["active_sessions"] == 0
        assert stats["learners"] == 0
        assert manager.list_active_sessions("learner-1") == []

    def test_result_retained_for_retention_period(self, manager, questions, scheduler):
        session = start(manager, questions)
        manager.force_complete(session.id)

        scheduler.advance(3300)
        assert manager.get_result(session.id) is not None

        scheduler.advance(300)
        assert manager.get_session(session.id) is None

    def test_retention_counts_from_end_of_review(self, manager, questions, scheduler):
        session = start(manager, questions)
        manager.complete_early(session.id)

        scheduler.advance(3600)
        assert manager.is_in_review_mode(session.id) is False
        assert manager.get_result(session.id) is not None

        scheduler.advance(300)
        assert manager.get_session(session.id) is None

    def test_paused_session_is_kept(self, manager, questions, scheduler):
        session = start(manager, questions)
        manager.pause_session(session.id)

        scheduler.advance(10_000)

        assert manager.get_session(session.id).is_paused

    def test_stop_cancels_cleanup(self, manager, scheduler):
        manager.stop()

        assert scheduler.pending() == []
