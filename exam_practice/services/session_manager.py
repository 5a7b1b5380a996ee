# exam_practice/services/session_manager.py
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Set

from ..core.config import config as app_config, Config
from ..core.exceptions import ConfigurationError
from ..core.models import (
    ExamResult, ExamSession, ExamType, Question, QuestionResponse,
    SessionState, TopicScore
)
from ..core.timers import Scheduler, TimerHandle
from ..core.utils import DateTimeUtils, round_half_up

logger = logging.getLogger(__name__)

@dataclass
class SessionConfig:
    time_limit: int = 5400  # seconds
    auto_save_interval: int = 30  # seconds
    cleanup_interval: int = 300  # seconds
    retention_period: int = 3600  # seconds a finished session stays retrievable

    def __post_init__(self):
        if self.time_limit < 1:
            raise ConfigurationError("time_limit must be at least 1 second")
        if self.auto_save_interval < 1:
            raise ConfigurationError("auto_save_interval must be at least 1 second")
        if self.cleanup_interval < 1:
            raise ConfigurationError("cleanup_interval must be at least 1 second")
        if self.retention_period < 0:
            raise ConfigurationError("retention_period cannot be negative")

    @classmethod
    def from_config(cls, cfg: Config) -> 'SessionConfig':
        return cls(
            time_limit=cfg.EXAM_TIME_LIMIT,
            auto_save_interval=cfg.AUTO_SAVE_INTERVAL,
            cleanup_interval=cfg.SESSION_CLEANUP_INTERVAL,
            retention_period=cfg.SESSION_RETENTION_PERIOD
        )

class _SessionRecord:
    """Mutable state of one attempt; guarded by its own lock"""

    def __init__(self, session_id: str, learner_id: str, exam_type: ExamType,
                 questions: List[Question], now: float, time_limit: int):
        self.session_id = session_id
        self.learner_id = learner_id
        self.exam_type = exam_type
        self.questions = list(questions)
        self.current_index = 0
        self.responses: List[QuestionResponse] = []
        self.started_at = now
        self.start_time = DateTimeUtils.to_datetime(now)
        self.time_remaining = time_limit
        self.state = SessionState.RUNNING
        self.reviewable = False
        self.result: Optional[ExamResult] = None
        self.unreported_result: Optional[ExamResult] = None
        # When the session stopped being usable (no review left)
        self.finished_at: Optional[float] = None

        # Countdown bookkeeping
        self.clock_running = True
        self.last_checkpoint = now

        # Per-question timing, excluding paused intervals
        self.question_started_at = now
        self.question_elapsed = 0.0

        self.lock = threading.RLock()
        self.generation = 0
        self.countdown: Optional[TimerHandle] = None
        self.auto_save: Optional[TimerHandle] = None

    def snapshot(self) -> ExamSession:
        return ExamSession(
            id=self.session_id,
            learner_id=self.learner_id,
            exam_type=self.exam_type,
            questions=list(self.questions),
            current_question_index=self.current_index,
            responses=list(self.responses),
            start_time=self.start_time,
            time_remaining=max(0, self.time_remaining),
            is_completed=self.state == SessionState.COMPLETED,
            is_paused=self.state == SessionState.PAUSED,
            state=self.state
        )

class ExamSessionManager:
    """Owns every in-progress exam attempt, its countdown and auto-save tick.

    Operations referencing an unknown session, or requesting an illegal
    transition, report failure through their return value (False/None)
    rather than raising.
    """

    def __init__(self, session_config: Optional[SessionConfig] = None,
                 clock: Callable[[], float] = time.time,
                 scheduler: Optional[Scheduler] = None,
                 on_complete: Optional[Callable[[ExamResult], None]] = None):
        self.config = session_config or SessionConfig.from_config(app_config)
        self.clock = clock
        self.scheduler = scheduler or Scheduler()
        self.on_complete = on_complete

        self._sessions: Dict[str, _SessionRecord] = {}
        self._learner_index: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()
        self._running = False
        self._cleanup: Optional[TimerHandle] = None
        # Results whose completion hook failed, retried on every cleanup tick
        self._unsaved_results: List[ExamResult] = []

    # ==================== Lifecycle ====================

    def start(self):
        """Begin accepting exam sessions and start the periodic cleanup"""
        self._running = True
        if self._cleanup:
            self._cleanup.cancel()
        self._cleanup = self.scheduler.call_every(
            self.config.cleanup_interval, self._periodic_cleanup, name="session-cleanup"
        )
        logger.info("✅ Exam session manager started")

    def stop(self):
        """End every session and stop accepting new ones"""
        self._running = False
        if self._cleanup:
            self._cleanup.cancel()
            self._cleanup = None
        with self._lock:
            session_ids = list(self._sessions.keys())
        for session_id in session_ids:
            self.end_session(session_id)
        logger.info(f"👋 Exam session manager stopped ({len(session_ids)} sessions released)")

    # ==================== Session operations ====================

    def start_session(self, learner_id: str, exam_type: ExamType,
                      questions: List[Question]) -> ExamSession:
        """Create a running session positioned on the first question"""
        if not self._running:
            raise RuntimeError("Exam session manager is not running")
        if not learner_id or not str(learner_id).strip():
            raise ConfigurationError("learner_id is required")
        if not questions:
            raise ConfigurationError("An exam session needs at least one question")

        session_id = f"exam_session_{uuid.uuid4().hex[:16]}"
        record = _SessionRecord(
            session_id, learner_id, ExamType(exam_type), questions,
            self.clock(), self.config.time_limit
        )

        with self._lock:
            self._sessions[session_id] = record
            self._learner_index.setdefault(learner_id, set()).add(session_id)

        with self._locked(record):
            self._schedule_countdown(record)
            self._schedule_auto_save(record)
            snapshot = record.snapshot()

        logger.info(f"🚀 Exam session started: {session_id} "
                    f"({record.exam_type.value}, {len(questions)} questions, learner {learner_id})")
        return snapshot

    def get_session(self, session_id: str) -> Optional[ExamSession]:
        """Snapshot with the remaining time brought up to date, or None"""
        record = self._get_record(session_id)
        if not record:
            return None

        with self._locked(record):
            if record.state == SessionState.ENDED:
                return None
            self._checkpoint(record)
            return record.snapshot()

    def submit_answer(self, session_id: str, question_id: str, selected_answer: int) -> bool:
        """Record an answer for the question at the current position.

        The response's time_spent is measured from when the question became
        current and excludes paused intervals; auto-save checkpoints do not
        reset it.
        """
        record = self._get_record(session_id)
        if not record:
            logger.warning(f"Answer rejected, session not found: {session_id}")
            return False

        with self._locked(record):
            # Bring the clock up to date first; expiry completes the session
            self._checkpoint(record)

            if record.state != SessionState.RUNNING:
                logger.warning(f"Answer rejected, session {session_id} is {record.state.value}")
                return False

            question = record.questions[record.current_index]
            if question.id != question_id:
                logger.warning(f"Answer rejected, question {question_id} is not current in {session_id}")
                return False

            now = self.clock()
            response = QuestionResponse(
                question_id=question_id,
                selected_answer=selected_answer,
                is_correct=question.is_correct(selected_answer),
                time_spent=int(record.question_elapsed + (now - record.question_started_at)),
                answered_at=DateTimeUtils.to_datetime(now)
            )
            record.responses.append(response)
            record.current_index += 1
            record.question_started_at = now
            record.question_elapsed = 0.0

            logger.info(f"✅ Answer submitted: {session_id}, Q{record.current_index}")

            if record.current_index >= len(record.questions):
                logger.info(f"🏁 All questions answered: {session_id}")
                self._complete(record, reviewable=True)

            return True

    def pause_session(self, session_id: str) -> bool:
        """Freeze the countdown and cancel the session's timers"""
        record = self._get_record(session_id)
        if not record:
            return False

        with self._locked(record):
            self._checkpoint(record)
            if record.state == SessionState.COMPLETED:
                logger.warning(f"Pause rejected, session already completed: {session_id}")
                return False
            if record.state == SessionState.PAUSED:
                return True

            now = self.clock()
            record.question_elapsed += now - record.question_started_at
            record.clock_running = False
            record.state = SessionState.PAUSED
            self._cancel_timers(record)

            logger.info(f"⏸️ Session paused: {session_id} ({record.time_remaining}s remaining)")
            return True

    def resume_session(self, session_id: str) -> bool:
        """Restart the countdown from the frozen remaining time"""
        record = self._get_record(session_id)
        if not record:
            return False

        with self._locked(record):
            if record.state == SessionState.COMPLETED:
                logger.warning(f"Resume rejected, session already completed: {session_id}")
                return False
            if record.state == SessionState.RUNNING:
                return True

            now = self.clock()
            record.state = SessionState.RUNNING
            record.clock_running = True
            record.last_checkpoint = now
            record.question_started_at = now
            self._schedule_countdown(record)
            self._schedule_auto_save(record)

            logger.info(f"▶️ Session resumed: {session_id} ({record.time_remaining}s remaining)")
            return True

    def complete_early(self, session_id: str) -> Optional[ExamResult]:
        """Finish now and enter review mode for the time that is left"""
        record = self._get_record(session_id)
        if not record:
            return None

        with self._locked(record):
            self._checkpoint(record)
            if record.state == SessionState.COMPLETED:
                logger.warning(f"Early completion rejected, session already completed: {session_id}")
                return None
            return self._complete(record, reviewable=True)

    def force_complete(self, session_id: str) -> Optional[ExamResult]:
        """Finish without review; an already completed session keeps its result"""
        record = self._get_record(session_id)
        if not record:
            return None

        with self._locked(record):
            if record.state == SessionState.COMPLETED:
                return record.result
            self._checkpoint(record)
            if record.state == SessionState.COMPLETED:
                return record.result
            return self._complete(record, reviewable=False)

    def navigate_to(self, session_id: str, question_index: int) -> bool:
        """Move the review cursor; only allowed in review mode"""
        record = self._get_record(session_id)
        if not record:
            return False

        with self._locked(record):
            self._checkpoint(record)
            if not self._in_review(record):
                logger.warning(f"Navigation rejected, session not in review mode: {session_id}")
                return False
            if not (0 <= question_index < len(record.questions)):
                logger.warning(f"Navigation rejected, index {question_index} out of range: {session_id}")
                return False

            record.current_index = question_index
            return True

    def get_time_remaining(self, session_id: str) -> int:
        record = self._get_record(session_id)
        if not record:
            return 0

        with self._locked(record):
            self._checkpoint(record)
            return max(0, record.time_remaining)

    def is_in_review_mode(self, session_id: str) -> bool:
        record = self._get_record(session_id)
        if not record:
            return False

        with self._locked(record):
            self._checkpoint(record)
            return self._in_review(record)

    def get_result(self, session_id: str) -> Optional[ExamResult]:
        """Exam result of a completed session"""
        record = self._get_record(session_id)
        if not record:
            return None
        with self._locked(record):
            return record.result

    def end_session(self, session_id: str):
        """Cancel timers and discard the session; safe to repeat"""
        with self._lock:
            record = self._sessions.pop(session_id, None)
            if record:
                learner_sessions = self._learner_index.get(record.learner_id)
                if learner_sessions is not None:
                    learner_sessions.discard(session_id)
                    if not learner_sessions:
                        del self._learner_index[record.learner_id]

        if not record:
            return

        with self._locked(record):
            self._cancel_timers(record)
            record.clock_running = False
            record.state = SessionState.ENDED

        logger.info(f"✅ Session ended: {session_id}")

    def list_active_sessions(self, learner_id: str) -> List[ExamSession]:
        """All sessions of a learner that have not been ended"""
        with self._lock:
            records = [self._sessions[sid] for sid in self._learner_index.get(learner_id, ())
                       if sid in self._sessions]

        sessions = []
        for record in sorted(records, key=lambda r: r.started_at):
            with self._locked(record):
                if record.state == SessionState.ENDED:
                    continue
                self._checkpoint(record)
                sessions.append(record.snapshot())
        return sessions

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            records = list(self._sessions.values())
        states = {state.value: 0 for state in SessionState}
        for record in records:
            states[record.state.value] += 1
        return {
            "active_sessions": len(records),
            "learners": len(self._learner_index),
            "by_state": states,
            "unsaved_results": len(self._unsaved_results),
            "running": self._running
        }

    # ==================== Cleanup ====================

    def cleanup_finished_sessions(self) -> int:
        """End completed sessions whose review window closed more than
        retention_period seconds ago. Returns how many were ended."""
        with self._lock:
            records = list(self._sessions.values())

        expired = []
        for record in records:
            with self._locked(record):
                self._checkpoint(record)
                if (record.state == SessionState.COMPLETED and record.finished_at is not None
                        and self.clock() - record.finished_at >= self.config.retention_period):
                    expired.append(record.session_id)

        for session_id in expired:
            self.end_session(session_id)

        if expired:
            logger.info(f"🧹 Cleanup: ended {len(expired)} finished sessions")
        return len(expired)

    def retry_unsaved_results(self) -> int:
        """Hand results whose completion hook failed to the hook again"""
        with self._lock:
            results = self._unsaved_results
            self._unsaved_results = []

        saved = 0
        for result in results:
            if self._deliver(result):
                saved += 1
        if results:
            logger.info(f"💾 Retried {len(results)} unsaved results, {saved} saved")
        return saved

    def _periodic_cleanup(self):
        try:
            self.retry_unsaved_results()
            self.cleanup_finished_sessions()
        except Exception as e:
            logger.error(f"Cleanup failed: {e}")

    # ==================== Internals ====================

    def _get_record(self, session_id: str) -> Optional[_SessionRecord]:
        with self._lock:
            return self._sessions.get(session_id)

    @contextmanager
    def _locked(self, record: _SessionRecord):
        """Hold the session lock; report a completion once it is released"""
        with record.lock:
            yield
        self._report_completion(record)

    def _report_completion(self, record: _SessionRecord):
        with record.lock:
            result = record.unreported_result
            record.unreported_result = None
        if result is not None:
            self._deliver(result)

    def _deliver(self, result: ExamResult) -> bool:
        """Run the completion hook; failed results are queued for retry"""
        if not self.on_complete:
            return True
        try:
            self.on_complete(result)
            return True
        except Exception as e:
            logger.error(f"❌ Completion hook failed for {result.session_id}: {e}")
            with self._lock:
                self._unsaved_results.append(result)
            return False

    def _in_review(self, record: _SessionRecord) -> bool:
        return (record.state == SessionState.COMPLETED and record.reviewable
                and record.time_remaining > 0)

    def _checkpoint(self, record: _SessionRecord):
        """Charge elapsed whole seconds against the remaining time"""
        if not record.clock_running:
            return

        now = self.clock()
        elapsed = int(now - record.last_checkpoint)
        if elapsed > 0:
            record.time_remaining = max(0, record.time_remaining - elapsed)
            record.last_checkpoint += elapsed

        if record.time_remaining > 0:
            return

        if record.state == SessionState.RUNNING:
            logger.info(f"⏰ Time expired: {record.session_id}")
            self._complete(record, reviewable=False)
        elif record.state == SessionState.COMPLETED:
            # Review window closed
            record.clock_running = False
            record.finished_at = now
            self._cancel_timers(record)

    def _complete(self, record: _SessionRecord, reviewable: bool) -> ExamResult:
        now = self.clock()
        if record.state == SessionState.PAUSED:
            record.last_checkpoint = now

        record.state = SessionState.COMPLETED
        record.reviewable = reviewable
        self._cancel_timers(record)

        if reviewable and record.time_remaining > 0:
            # Review stays time-boxed by what is left on the clock
            record.clock_running = True
            self._schedule_auto_save(record)
        else:
            record.clock_running = False
            record.finished_at = now

        record.result = self._build_result(record, now)
        record.unreported_result = record.result
        logger.info(f"🎯 Session completed: {record.session_id} "
                    f"({record.result.correct_answers}/{record.result.total_questions} correct, "
                    f"review={'yes' if reviewable else 'no'})")

        return record.result

    def _build_result(self, record: _SessionRecord, now: float) -> ExamResult:
        end_time = DateTimeUtils.to_datetime(now)
        if end_time <= record.start_time:
            end_time = record.start_time + timedelta(seconds=1)
        time_spent = int((end_time - record.start_time).total_seconds())

        all_responses = []
        for index, question in enumerate(record.questions):
            if index < len(record.responses):
                all_responses.append(record.responses[index])
            else:
                all_responses.append(QuestionResponse.unanswered(question.id, end_time))

        return ExamResult(
            session_id=record.session_id,
            learner_id=record.learner_id,
            exam_type=record.exam_type,
            start_time=record.start_time,
            end_time=end_time,
            total_questions=len(record.questions),
            correct_answers=sum(1 for r in record.responses if r.is_correct),
            topic_breakdown=self._topic_breakdown(record.questions, all_responses),
            time_spent=time_spent,
            responses=all_responses
        )

    @staticmethod
    def _topic_breakdown(questions: List[Question],
                         responses: List[QuestionResponse]) -> List[TopicScore]:
        totals: Dict = {}
        for question, response in zip(questions, responses):
            data = totals.setdefault(question.topic, {"total": 0, "correct": 0, "time": 0})
            data["total"] += 1
            data["time"] += response.time_spent
            if response.is_correct:
                data["correct"] += 1

        return [
            TopicScore(
                topic=topic,
                total_questions=data["total"],
                correct_answers=data["correct"],
                percentage=round_half_up(data["correct"] / data["total"] * 100),
                average_time=round_half_up(data["time"] / data["total"])
            )
            for topic, data in totals.items()
        ]

    # ==================== Timers ====================

    def _schedule_countdown(self, record: _SessionRecord):
        if record.countdown:
            record.countdown.cancel()
        generation = record.generation
        record.countdown = self.scheduler.call_later(
            record.time_remaining,
            lambda: self._on_countdown(record.session_id, generation),
            name=f"countdown-{record.session_id}"
        )

    def _schedule_auto_save(self, record: _SessionRecord):
        if record.auto_save:
            record.auto_save.cancel()
        generation = record.generation
        record.auto_save = self.scheduler.call_every(
            self.config.auto_save_interval,
            lambda: self._on_auto_save(record.session_id, generation),
            name=f"autosave-{record.session_id}"
        )

    def _cancel_timers(self, record: _SessionRecord):
        # Bumping the generation makes callbacks already in flight stale
        record.generation += 1
        for handle in (record.countdown, record.auto_save):
            if handle:
                handle.cancel()
        record.countdown = None
        record.auto_save = None

    def _on_countdown(self, session_id: str, generation: int):
        record = self._get_record(session_id)
        if not record:
            return
        with self._locked(record):
            if record.generation != generation or record.state != SessionState.RUNNING:
                logger.debug(f"Ignoring stale countdown for {session_id}")
                return
            logger.info(f"⏰ Countdown fired: {session_id}")
            record.time_remaining = 0
            self._complete(record, reviewable=False)

    def _on_auto_save(self, session_id: str, generation: int):
        record = self._get_record(session_id)
        if not record:
            return
        with self._locked(record):
            if record.generation != generation:
                return
            self._checkpoint(record)
            logger.debug(f"💾 Auto-save: {session_id} ({record.time_remaining}s remaining)")

