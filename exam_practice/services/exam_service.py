# exam_practice/services/exam_service.py
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..core.config import config as app_config, Config
from ..core.database import ResultsStore
from ..core.exceptions import ConfigurationError, QuestionSourceError
from ..core.models import (
    ALL_TOPICS, ExamResult, ExamSession, ExamTopic, ExamType, Priority,
    Question, QuestionDifficulty
)
from ..core.question_source import QuestionSource
from ..core.utils import (
    ValidationUtils, average, round_half_up, select_random, shuffle, split_evenly
)
from .allocation_service import (
    AdaptiveAllocationService, AllocationConfig, QuestionAllocation,
    StudyRecommendation, TopicTrend
)
from .session_manager import ExamSessionManager

logger = logging.getLogger(__name__)

# Question bank readiness for adaptive selection
MIN_QUESTIONS_PER_TOPIC = 20
MIN_CHALLENGING_PER_TOPIC = 10

DEFAULT_DIFFICULTY_DISTRIBUTION: Dict[QuestionDifficulty, float] = {
    QuestionDifficulty.EASY: 0.3,
    QuestionDifficulty.MEDIUM: 0.5,
    QuestionDifficulty.HARD: 0.2,
}

@dataclass
class ExamGenerationRequest:
    learner_id: str
    exam_type: ExamType = ExamType.PRACTICE
    total_questions: Optional[int] = None
    adaptive: bool = True
    topic_distribution: Optional[Dict[ExamTopic, int]] = None
    focus_topics: Optional[List[ExamTopic]] = None
    difficulty: Optional[QuestionDifficulty] = None

    def __post_init__(self):
        self.exam_type = ExamType(self.exam_type)
        if self.difficulty is not None:
            self.difficulty = QuestionDifficulty(self.difficulty)
        if self.focus_topics:
            self.focus_topics = [ExamTopic(t) for t in self.focus_topics]

@dataclass
class OverallProgress:
    average_score: int
    exams_considered: int

@dataclass
class PerformanceAnalytics:
    learner_id: str
    weak_areas: List[ExamTopic]
    strong_areas: List[ExamTopic]
    topic_scores: Dict[ExamTopic, float]
    overall_progress: OverallProgress
    trends: List[TopicTrend]
    study_plan: List[StudyRecommendation]

@dataclass
class GeneratedExam:
    session: ExamSession
    allocation: List[QuestionAllocation]
    adaptive: bool
    analytics: Optional[PerformanceAnalytics] = None
    warnings: List[str] = field(default_factory=list)

class ExamGenerationService:
    """Chooses the questions of a new attempt and opens its session"""

    def __init__(self, question_source: QuestionSource,
                 session_manager: ExamSessionManager,
                 results_store: ResultsStore,
                 allocation_service: Optional[AdaptiveAllocationService] = None,
                 rng: Optional[random.Random] = None,
                 cfg: Config = app_config):
        self.question_source = question_source
        self.session_manager = session_manager
        self.results_store = results_store
        self.rng = rng
        self.config = cfg
        self.allocation_service = allocation_service or AdaptiveAllocationService(
            question_source, AllocationConfig.from_config(cfg), rng
        )

    # ==================== Exam generation ====================

    def generate_exam(self, request: ExamGenerationRequest,
                      history: Optional[Sequence[ExamResult]] = None) -> GeneratedExam:
        """Select questions for the request and start a session on them"""
        if not ValidationUtils.validate_learner_id(request.learner_id):
            raise ConfigurationError("learner_id is required")

        if history is None:
            history = self.results_store.get_history(request.learner_id)

        allocation_cfg = self.allocation_service.config.with_overrides(
            total_questions=request.total_questions
        )
        total = allocation_cfg.total_questions
        adaptive = request.exam_type == ExamType.PRACTICE and request.adaptive
        analytics = None

        logger.info(f"🚀 Generating {request.exam_type.value} exam for {request.learner_id} "
                    f"({total} questions, adaptive={adaptive and not request.topic_distribution})")

        if request.topic_distribution:
            distribution = self._validate_distribution(request.topic_distribution, total)
            allocation = [
                QuestionAllocation(topic=topic, question_count=count,
                                   priority=Priority.MEDIUM, average_score=0)
                for topic, count in distribution.items()
            ]
            questions = self._select_by_distribution(distribution, allocation_cfg)
            adaptive = False
        elif adaptive:
            analysis = self.allocation_service.analyze_performance(history, allocation_cfg)
            allocation = analysis.recommended_allocation
            questions = self.allocation_service.generate_question_set(history, allocation_cfg)
            analytics = self._build_analytics(request.learner_id, history, analysis)
        else:
            allocation = [
                QuestionAllocation(topic=topic, question_count=count,
                                   priority=Priority.MEDIUM, average_score=0)
                for topic, count in zip(ALL_TOPICS, split_evenly(total, len(ALL_TOPICS)))
            ]
            questions = self.allocation_service.generate_balanced_question_set(total, allocation_cfg)

        if request.focus_topics:
            questions = self._filter_by_topics(questions, request.focus_topics, total)

        if request.difficulty is not None:
            questions = self._filter_by_difficulty(questions, request.difficulty, total)

        if not questions:
            raise QuestionSourceError("No questions available for the requested exam")

        warnings = []
        if len(questions) < total:
            warnings.append(f"Only {len(questions)} of {total} requested questions were available")
            logger.warning(f"⚠️ {warnings[-1]}")

        session = self.session_manager.start_session(request.learner_id, request.exam_type, questions)

        return GeneratedExam(
            session=session,
            allocation=allocation,
            adaptive=adaptive,
            analytics=analytics,
            warnings=warnings
        )

    # ==================== Analytics ====================

    def analyze_performance(self, learner_id: str,
                            history: Optional[Sequence[ExamResult]] = None) -> PerformanceAnalytics:
        if history is None:
            history = self.results_store.get_history(learner_id)
        analysis = self.allocation_service.analyze_performance(history)
        return self._build_analytics(learner_id, history, analysis)

    def generate_study_plan(self, history: Sequence[ExamResult]) -> List[StudyRecommendation]:
        analysis = self.allocation_service.analyze_performance(history)
        trends = self.allocation_service.calculate_trends(history)
        return self.allocation_service.generate_study_recommendations(analysis, trends)

    def should_reduce_allocation(self, topic: ExamTopic, history: Sequence[ExamResult]) -> bool:
        return self.allocation_service.should_reduce_allocation(ExamTopic(topic), history)

    def overall_progress(self, history: Sequence[ExamResult]) -> OverallProgress:
        """Average score of the most recent exams"""
        if not history:
            return OverallProgress(average_score=0, exams_considered=0)

        recent = sorted(history, key=lambda exam: exam.end_time, reverse=True)
        recent = recent[:self.config.OVERALL_PROGRESS_WINDOW]
        return OverallProgress(
            average_score=round_half_up(average([exam.score_percentage for exam in recent])),
            exams_considered=len(recent)
        )

    def validate_adaptive_capabilities(self) -> Dict[str, Any]:
        """Check the question bank holds enough material for adaptive selection"""
        counts = self.question_source.count_by_topic()
        issues = []

        for topic in ALL_TOPICS:
            topic_counts = counts.get(topic, {})
            total = topic_counts.get("total", 0)
            challenging = (topic_counts.get(QuestionDifficulty.MEDIUM.value, 0)
                           + topic_counts.get(QuestionDifficulty.HARD.value, 0))

            if total < MIN_QUESTIONS_PER_TOPIC:
                issues.append(f"Insufficient questions for adaptive selection in topic: {topic.value} "
                              f"({total} found, minimum {MIN_QUESTIONS_PER_TOPIC} recommended)")
            if challenging < MIN_CHALLENGING_PER_TOPIC:
                issues.append(f"Insufficient challenging questions for topic: {topic.value} "
                              f"(need at least {MIN_CHALLENGING_PER_TOPIC} medium/hard questions)")

        return {
            "is_valid": not issues,
            "issues": issues,
            "topic_counts": {topic.value: counts.get(topic, {}) for topic in ALL_TOPICS}
        }

    def generate_questions_with_difficulty_variation(
            self, topic: ExamTopic, total_questions: int,
            distribution: Optional[Dict[QuestionDifficulty, float]] = None) -> List[Question]:
        """Questions of one topic spread over difficulties; rounding leftovers go to hard"""
        topic = ExamTopic(topic)
        distribution = distribution or DEFAULT_DIFFICULTY_DISTRIBUTION
        if abs(sum(distribution.values()) - 1.0) > 1e-6:
            raise ConfigurationError("Difficulty distribution fractions must sum to 1")
        if total_questions < 1:
            raise ConfigurationError("total_questions must be at least 1")

        easy = int(total_questions * distribution.get(QuestionDifficulty.EASY, 0))
        medium = int(total_questions * distribution.get(QuestionDifficulty.MEDIUM, 0))
        counts = {
            QuestionDifficulty.EASY: easy,
            QuestionDifficulty.MEDIUM: medium,
            QuestionDifficulty.HARD: total_questions - easy - medium,
        }

        factor = self.allocation_service.config.candidate_oversample_factor
        selected: List[Question] = []
        for difficulty, count in counts.items():
            if count <= 0:
                continue
            candidates = self.question_source.find_by_topic_and_difficulty(topic, difficulty, count * factor)
            selected.extend(select_random(candidates, count, self.rng))

        return shuffle(selected, self.rng)

    # ==================== Helpers ====================

    def _build_analytics(self, learner_id: str, history: Sequence[ExamResult],
                         analysis) -> PerformanceAnalytics:
        trends = self.allocation_service.calculate_trends(history)
        return PerformanceAnalytics(
            learner_id=learner_id,
            weak_areas=analysis.weak_areas,
            strong_areas=analysis.strong_areas,
            topic_scores=analysis.topic_scores,
            overall_progress=self.overall_progress(history),
            trends=trends,
            study_plan=self.allocation_service.generate_study_recommendations(analysis, trends)
        )

    @staticmethod
    def _validate_distribution(distribution: Dict[Any, int], total: int) -> Dict[ExamTopic, int]:
        validated: Dict[ExamTopic, int] = {}
        for topic, count in distribution.items():
            try:
                topic = ExamTopic(topic)
            except ValueError:
                raise ConfigurationError(f"Unknown topic in distribution: {topic}")
            if count < 0:
                raise ConfigurationError(f"Question count for {topic.value} cannot be negative")
            validated[topic] = count

        if sum(validated.values()) != total:
            raise ConfigurationError(
                f"Topic distribution sums to {sum(validated.values())}, expected {total}")
        return validated

    def _select_by_distribution(self, distribution: Dict[ExamTopic, int],
                                cfg: AllocationConfig) -> List[Question]:
        selected: List[Question] = []
        for topic, count in distribution.items():
            if count <= 0:
                continue
            candidates = self.question_source.find_by_topic(topic, count * cfg.candidate_oversample_factor)
            selected.extend(select_random(candidates, count, self.rng))
        return shuffle(selected, self.rng)

    def _filter_by_topics(self, questions: List[Question], focus_topics: List[ExamTopic],
                          total: int) -> List[Question]:
        kept = [q for q in questions if q.topic in focus_topics]
        if len(kept) >= total:
            return select_random(kept, total, self.rng)

        needed = total - len(kept)
        seen = {q.id for q in kept}
        extra: List[Question] = []
        for topic in focus_topics:
            for candidate in self.question_source.find_by_topic(topic, needed * 2):
                if candidate.id not in seen:
                    seen.add(candidate.id)
                    extra.append(candidate)
            if len(extra) >= needed:
                break

        return shuffle(kept + select_random(extra, needed, self.rng), self.rng)

    def _filter_by_difficulty(self, questions: List[Question], difficulty: QuestionDifficulty,
                              total: int) -> List[Question]:
        kept = [q for q in questions if q.difficulty == difficulty]
        if len(kept) >= total:
            return select_random(kept, total, self.rng)
        return kept
