"""
Shared fixtures: deterministic clock and scheduler, question and result builders.
"""

import os
import random
from datetime import datetime, timedelta, timezone

import pytest

# Configuration is read at import time
os.environ["USE_DUMMY_DATA"] = "true"

from exam_practice.core.models import (
    ExamResult, ExamTopic, ExamType, Question, QuestionDifficulty,
    QuestionResponse, TopicScore
)
from exam_practice.core.question_source import InMemoryQuestionSource
from exam_practice.services.session_manager import ExamSessionManager, SessionConfig

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock that only moves when told to"""

    def __init__(self, start: float = BASE_TIME.timestamp()):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ManualHandle:
    def __init__(self, name, due, callback, interval=None):
        self.name = name
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose callbacks fire only from advance()"""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.handles = []

    def call_later(self, delay, callback, name=None):
        handle = ManualHandle(name, self.clock.now + delay, callback)
        self.handles.append(handle)
        return handle

    def call_every(self, interval, callback, name=None):
        handle = ManualHandle(name, self.clock.now + interval, callback, interval)
        self.handles.append(handle)
        return handle

    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float):
        """Move the clock forward, firing due callbacks in time order"""
        target = self.clock.now + seconds
        while True:
            due = [h for h in self.pending() if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.clock.now = max(self.clock.now, handle.due)
            if handle.interval:
                handle.due += handle.interval
            else:
                handle.cancelled = True
            handle.callback()
        self.clock.now = target


def make_question(question_id, topic=ExamTopic.LAKEHOUSE_PLATFORM,
                  difficulty=QuestionDifficulty.MEDIUM, correct_answer=0):
    return Question(
        id=question_id,
        topic=topic,
        subtopic="General",
        difficulty=difficulty,
        question_text=f"Which statement about {question_id} is accurate?",
        options=("Option A", "Option B", "Option C", "Option D"),
        correct_answer=correct_answer,
        explanation="Option A is the documented behaviour.",
        documentation_links=("https://docs.databricks.com/",)
    )


def make_result(learner_id, end_time, topic_percentages, questions_per_topic=4,
                exam_type=ExamType.PRACTICE):
    """Completed exam result with the given per-topic percentages"""
    topic_scores = []
    responses = []
    for topic, percentage in topic_percentages.items():
        correct = min(questions_per_topic, round(percentage * questions_per_topic / 100))
        topic_scores.append(TopicScore(
            topic=topic,
            total_questions=questions_per_topic,
            correct_answers=correct,
            percentage=percentage,
            average_time=60
        ))
        for i in range(questions_per_topic):
            responses.append(QuestionResponse(
                question_id=f"{topic.name.lower()}_{i}",
                selected_answer=0 if i < correct else 1,
                is_correct=i < correct,
                time_spent=60,
                answered_at=end_time
            ))

    total = questions_per_topic * len(topic_percentages)
    return ExamResult(
        learner_id=learner_id,
        exam_type=exam_type,
        start_time=end_time - timedelta(minutes=90),
        end_time=end_time,
        total_questions=total,
        correct_answers=sum(t.correct_answers for t in topic_scores),
        topic_breakdown=topic_scores,
        time_spent=5400,
        responses=responses
    )


def build_bank(per_topic=12):
    """Question bank with an even easy/medium/hard mix per topic"""
    difficulties = list(QuestionDifficulty)
    questions = []
    for topic in ExamTopic:
        for i in range(per_topic):
            questions.append(make_question(
                f"{topic.name.lower()}_{i}",
                topic=topic,
                difficulty=difficulties[i % len(difficulties)]
            ))
    return questions


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def completed_results():
    return []


@pytest.fixture
def manager(clock, scheduler, completed_results):
    """Started session manager: 100 s limit, 30 s auto-save"""
    session_manager = ExamSessionManager(
        session_config=SessionConfig(time_limit=100, auto_save_interval=30),
        clock=clock,
        scheduler=scheduler,
        on_complete=completed_results.append
    )
    session_manager.start()
    yield session_manager
    session_manager.stop()


@pytest.fixture
def questions():
    return [
        make_question("q1", ExamTopic.LAKEHOUSE_PLATFORM, correct_answer=0),
        make_question("q2", ExamTopic.DATA_GOVERNANCE, correct_answer=1),
        make_question("q3", ExamTopic.DATA_GOVERNANCE, correct_answer=2),
    ]


@pytest.fixture
def question_bank():
    return build_bank()


@pytest.fixture
def question_source(question_bank, rng):
    return InMemoryQuestionSource(question_bank, rng=rng)
