# exam_practice/core/models.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# =============================================================================
# ENUMERATIONS
# =============================================================================

class ExamTopic(Enum):
    LAKEHOUSE_PLATFORM = "Databricks Lakehouse Platform"
    ELT_SPARK_SQL_PYTHON = "ELT with Spark SQL and Python"
    INCREMENTAL_DATA_PROCESSING = "Incremental Data Processing"
    PRODUCTION_PIPELINES = "Production Pipelines"
    DATA_GOVERNANCE = "Data Governance"

class QuestionDifficulty(Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class ExamType(Enum):
    PRACTICE = "practice"
    ASSESSMENT = "assessment"

class SessionState(Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ENDED = "ended"

class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]

class TrendDirection(Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"

# Fixed topic order; balanced allocations hand remainders out in this order
ALL_TOPICS: Tuple[ExamTopic, ...] = tuple(ExamTopic)

# Sentinel for a question left unanswered at completion
NO_ANSWER = -1

MIN_OPTIONS = 2
MAX_OPTIONS = 6


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique identifier"""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"

# =============================================================================
# QUESTION CONTENT
# =============================================================================

@dataclass(frozen=True)
class Question:
    id: str
    topic: ExamTopic
    subtopic: str
    difficulty: QuestionDifficulty
    question_text: str
    options: Tuple[str, ...]
    correct_answer: int
    explanation: str
    code_example: Optional[str] = None
    documentation_links: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept plain strings/lists from storage documents
        object.__setattr__(self, "topic", ExamTopic(self.topic))
        object.__setattr__(self, "difficulty", QuestionDifficulty(self.difficulty))
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "documentation_links", tuple(self.documentation_links))
        object.__setattr__(self, "tags", tuple(self.tags))
        self._validate()

    def _validate(self):
        errors = []

        if not self.id or not str(self.id).strip():
            errors.append("Question ID is required")

        if not self.question_text or len(self.question_text.strip()) < 10:
            errors.append("Question text must be at least 10 characters long")

        if len(self.options) < MIN_OPTIONS:
            errors.append(f"Question must have at least {MIN_OPTIONS} options")

        if len(self.options) > MAX_OPTIONS:
            errors.append(f"Question cannot have more than {MAX_OPTIONS} options")

        if any(not option or not option.strip() for option in self.options):
            errors.append("All options must be non-empty strings")

        if not (0 <= self.correct_answer < len(self.options)):
            errors.append("Correct answer index must be valid for the given options")

        if not self.explanation or len(self.explanation.strip()) < 10:
            errors.append("Explanation must be at least 10 characters long")

        if not self.subtopic or not self.subtopic.strip():
            errors.append("Subtopic is required")

        if errors:
            raise ValueError(f"Question validation failed: {', '.join(errors)}")

    def is_correct(self, selected_answer: int) -> bool:
        return selected_answer == self.correct_answer

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic.value,
            "subtopic": self.subtopic,
            "difficulty": self.difficulty.value,
            "question_text": self.question_text,
            "code_example": self.code_example,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "documentation_links": list(self.documentation_links),
            "tags": list(self.tags)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Question':
        return cls(
            id=str(data["id"]),
            topic=data["topic"],
            subtopic=data.get("subtopic", ""),
            difficulty=data.get("difficulty", "medium"),
            question_text=data["question_text"],
            options=data.get("options", []),
            correct_answer=int(data["correct_answer"]),
            explanation=data.get("explanation", ""),
            code_example=data.get("code_example"),
            documentation_links=data.get("documentation_links", []),
            tags=data.get("tags", [])
        )

# =============================================================================
# EXAM OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class QuestionResponse:
    question_id: str
    selected_answer: int
    is_correct: bool
    time_spent: int
    answered_at: datetime

    @classmethod
    def unanswered(cls, question_id: str, at: datetime) -> 'QuestionResponse':
        return cls(
            question_id=question_id,
            selected_answer=NO_ANSWER,
            is_correct=False,
            time_spent=0,
            answered_at=at
        )

    @property
    def is_answered(self) -> bool:
        return self.selected_answer != NO_ANSWER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "selected_answer": self.selected_answer,
            "is_correct": self.is_correct,
            "time_spent": self.time_spent,
            "answered_at": self.answered_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuestionResponse':
        return cls(
            question_id=str(data["question_id"]),
            selected_answer=int(data["selected_answer"]),
            is_correct=bool(data["is_correct"]),
            time_spent=int(data.get("time_spent", 0)),
            answered_at=_parse_datetime(data["answered_at"])
        )

@dataclass(frozen=True)
class TopicScore:
    topic: ExamTopic
    total_questions: int
    correct_answers: int
    percentage: int
    average_time: int

    def __post_init__(self):
        object.__setattr__(self, "topic", ExamTopic(self.topic))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic.value,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "percentage": self.percentage,
            "average_time": self.average_time
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TopicScore':
        return cls(
            topic=data["topic"],
            total_questions=int(data["total_questions"]),
            correct_answers=int(data["correct_answers"]),
            percentage=int(data["percentage"]),
            average_time=int(data.get("average_time", 0))
        )

@dataclass(frozen=True)
class ExamResult:
    """Immutable snapshot of a completed attempt"""
    learner_id: str
    exam_type: ExamType
    start_time: datetime
    end_time: datetime
    total_questions: int
    correct_answers: int
    topic_breakdown: Tuple[TopicScore, ...]
    time_spent: int
    responses: Tuple[QuestionResponse, ...]
    session_id: Optional[str] = None
    id: str = field(default_factory=lambda: generate_id("exam_result"))

    def __post_init__(self):
        object.__setattr__(self, "exam_type", ExamType(self.exam_type))
        object.__setattr__(self, "topic_breakdown", tuple(self.topic_breakdown))
        object.__setattr__(self, "responses", tuple(self.responses))
        self._validate()

    def _validate(self):
        errors = []

        if not self.learner_id or not str(self.learner_id).strip():
            errors.append("Learner ID is required")

        if self.end_time <= self.start_time:
            errors.append("End time must be after start time")

        if self.total_questions < 0:
            errors.append("Total questions must be non-negative")

        if not (0 <= self.correct_answers <= self.total_questions):
            errors.append("Correct answers must be between 0 and total questions")

        if self.time_spent < 0:
            errors.append("Time spent must be non-negative")

        if self.topic_breakdown:
            if sum(t.total_questions for t in self.topic_breakdown) != self.total_questions:
                errors.append("Topic breakdown total questions must match exam total questions")
            if sum(t.correct_answers for t in self.topic_breakdown) != self.correct_answers:
                errors.append("Topic breakdown correct answers must match exam correct answers")

        if len(self.responses) != self.total_questions:
            errors.append("Responses length must match total questions")

        if sum(1 for r in self.responses if r.is_correct) != self.correct_answers:
            errors.append("Correct responses must match correct answers")

        if errors:
            raise ValueError(f"ExamResult validation failed: {', '.join(errors)}")

    @property
    def score_percentage(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_answers / self.total_questions * 100

    def topic_percentage(self, topic: ExamTopic) -> Optional[int]:
        """Percentage scored on a topic, or None if the topic was not examined"""
        for topic_score in self.topic_breakdown:
            if topic_score.topic == topic:
                return topic_score.percentage
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "learner_id": self.learner_id,
            "exam_type": self.exam_type.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "topic_breakdown": [t.to_dict() for t in self.topic_breakdown],
            "time_spent": self.time_spent,
            "responses": [r.to_dict() for r in self.responses]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExamResult':
        return cls(
            id=str(data["id"]),
            session_id=data.get("session_id"),
            learner_id=str(data["learner_id"]),
            exam_type=data.get("exam_type", ExamType.PRACTICE.value),
            start_time=_parse_datetime(data["start_time"]),
            end_time=_parse_datetime(data["end_time"]),
            total_questions=int(data["total_questions"]),
            correct_answers=int(data["correct_answers"]),
            topic_breakdown=[TopicScore.from_dict(t) for t in data.get("topic_breakdown", [])],
            time_spent=int(data.get("time_spent", 0)),
            responses=[QuestionResponse.from_dict(r) for r in data.get("responses", [])]
        )

# =============================================================================
# SESSION SNAPSHOT
# =============================================================================

@dataclass
class ExamSession:
    """Point-in-time copy of an attempt handed to callers"""
    id: str
    learner_id: str
    exam_type: ExamType
    questions: List[Question]
    current_question_index: int
    responses: List[QuestionResponse]
    start_time: datetime
    time_remaining: int
    is_completed: bool
    is_paused: bool
    state: SessionState = SessionState.RUNNING

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    def response_for(self, index: int) -> Optional[QuestionResponse]:
        if 0 <= index < len(self.responses):
            return self.responses[index]
        return None
