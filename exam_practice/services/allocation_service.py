# exam_practice/services/allocation_service.py
"""
Adaptive question allocation.

Turns a learner's recent exam history into a weighted question set for the
next attempt and a ranked study plan. The service keeps no state between
calls; the only side effects are reads from the question source.
"""
import dataclasses
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..core.config import config as app_config, Config
from ..core.exceptions import ConfigurationError
from ..core.models import (
    ALL_TOPICS, ExamResult, ExamTopic, Priority, Question, QuestionDifficulty,
    TrendDirection
)
from ..core.question_source import QuestionSource
from ..core.utils import average, select_random, shuffle, split_evenly, trend_direction

logger = logging.getLogger(__name__)

# Study bullets offered for a topic averaging below FOCUS_AREA_THRESHOLD
FOCUS_AREA_THRESHOLD = 70

TOPIC_FOCUS_AREAS: Dict[ExamTopic, List[str]] = {
    ExamTopic.PRODUCTION_PIPELINES: [
        "Delta Live Tables configuration and management",
        "Job scheduling and orchestration",
        "Error handling and monitoring",
    ],
    ExamTopic.INCREMENTAL_DATA_PROCESSING: [
        "Merge operations and UPSERT patterns",
        "Change Data Capture (CDC) implementation",
        "Streaming data processing",
    ],
    ExamTopic.ELT_SPARK_SQL_PYTHON: [
        "Advanced SQL operations and optimization",
        "PySpark DataFrame operations",
    ],
    ExamTopic.LAKEHOUSE_PLATFORM: [
        "Platform architecture and components",
        "Workspace and cluster management",
    ],
    ExamTopic.DATA_GOVERNANCE: [
        "Unity Catalog and data governance",
        "Security and access control",
    ],
}

DEFAULT_RECOMMENDED_QUESTIONS = 10
WEAK_RECOMMENDED_QUESTIONS = 20
STALLED_WEAK_RECOMMENDED_QUESTIONS = 25
DECLINING_RECOMMENDED_QUESTIONS = 15
MAINTAIN_RECOMMENDED_QUESTIONS = 5

# =============================================================================
# DATA MODELS
# =============================================================================

@dataclass
class AllocationConfig:
    total_questions: int = 60
    weak_area_threshold: float = 70
    strong_area_threshold: float = 80
    weak_area_allocation_percentage: float = 60
    recent_exam_window: int = 3
    candidate_oversample_factor: int = 2

    def __post_init__(self):
        issues = []
        if self.total_questions < 1:
            issues.append("total_questions must be at least 1")
        if not (0 <= self.weak_area_threshold <= 100):
            issues.append("weak_area_threshold must be between 0 and 100")
        if not (0 <= self.strong_area_threshold <= 100):
            issues.append("strong_area_threshold must be between 0 and 100")
        if self.weak_area_threshold > self.strong_area_threshold:
            issues.append("weak_area_threshold cannot exceed strong_area_threshold")
        if not (0 <= self.weak_area_allocation_percentage <= 100):
            issues.append("weak_area_allocation_percentage must be between 0 and 100")
        if self.recent_exam_window < 1:
            issues.append("recent_exam_window must be at least 1")
        if self.candidate_oversample_factor < 1:
            issues.append("candidate_oversample_factor must be at least 1")
        if issues:
            raise ConfigurationError(f"Invalid allocation config: {', '.join(issues)}")

    @classmethod
    def from_config(cls, cfg: Config) -> 'AllocationConfig':
        return cls(
            total_questions=cfg.QUESTIONS_PER_EXAM,
            weak_area_threshold=cfg.WEAK_AREA_THRESHOLD,
            strong_area_threshold=cfg.STRONG_AREA_THRESHOLD,
            weak_area_allocation_percentage=cfg.WEAK_AREA_ALLOCATION_PERCENTAGE,
            recent_exam_window=cfg.RECENT_EXAM_WINDOW,
            candidate_oversample_factor=cfg.CANDIDATE_OVERSAMPLE_FACTOR
        )

    def with_overrides(self, **overrides) -> 'AllocationConfig':
        """Copy with some fields replaced; unset (None) overrides are ignored"""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)

@dataclass
class QuestionAllocation:
    topic: ExamTopic
    question_count: int
    priority: Priority
    average_score: float

@dataclass
class PerformanceAnalysisResult:
    weak_areas: List[ExamTopic]
    strong_areas: List[ExamTopic]
    topic_scores: Dict[ExamTopic, float]
    has_exam_history: bool
    recommended_allocation: List[QuestionAllocation]

    @property
    def total_allocated(self) -> int:
        return sum(a.question_count for a in self.recommended_allocation)

@dataclass
class TopicTrend:
    topic: ExamTopic
    scores: List[float]
    dates: List[datetime]
    trend: TrendDirection

@dataclass
class StudyRecommendation:
    topic: ExamTopic
    priority: Priority
    recommended_questions: int
    focus_areas: List[str] = field(default_factory=list)

# =============================================================================
# ALLOCATION ENGINE
# =============================================================================

class AdaptiveAllocationService:
    """Weak/strong topic analysis and weighted question selection"""

    def __init__(self, question_source: QuestionSource,
                 allocation_config: Optional[AllocationConfig] = None,
                 rng: Optional[random.Random] = None):
        self.question_source = question_source
        self.config = allocation_config or AllocationConfig.from_config(app_config)
        self.rng = rng

    # ==================== Analysis ====================

    def analyze_performance(self, history: Sequence[ExamResult],
                            allocation_config: Optional[AllocationConfig] = None) -> PerformanceAnalysisResult:
        """Classify topics from the most recent exams and propose an allocation"""
        cfg = allocation_config or self.config

        if not history:
            return self._balanced_analysis(cfg)

        recent = self._recent_results(history, cfg.recent_exam_window)
        topic_scores = self._average_topic_scores(recent)

        weak_areas: List[ExamTopic] = []
        strong_areas: List[ExamTopic] = []
        for topic, score in topic_scores.items():
            if score < cfg.weak_area_threshold:
                weak_areas.append(topic)
            elif score >= cfg.strong_area_threshold:
                strong_areas.append(topic)

        allocation = self._calculate_allocation(topic_scores, weak_areas, strong_areas, cfg)

        logger.info(f"📊 Performance analysed over {len(recent)} exams: "
                    f"weak={[t.value for t in weak_areas]}, strong={[t.value for t in strong_areas]}")

        return PerformanceAnalysisResult(
            weak_areas=weak_areas,
            strong_areas=strong_areas,
            topic_scores=topic_scores,
            has_exam_history=True,
            recommended_allocation=allocation
        )

    def generate_question_set(self, history: Sequence[ExamResult],
                              allocation_config: Optional[AllocationConfig] = None) -> List[Question]:
        """Build the next exam's questions from the learner's history"""
        cfg = allocation_config or self.config
        analysis = self.analyze_performance(history, cfg)

        if not analysis.has_exam_history:
            questions = self.generate_balanced_question_set(cfg.total_questions, cfg)
        else:
            questions = self._weighted_question_set(analysis.recommended_allocation, cfg)

        if len(questions) < cfg.total_questions:
            logger.warning(f"⚠️ Question source short: {len(questions)}/{cfg.total_questions} questions selected")
        else:
            logger.info(f"✅ Generated adaptive question set: {len(questions)} questions")
        return questions

    def generate_balanced_question_set(self, total_questions: int,
                                       allocation_config: Optional[AllocationConfig] = None) -> List[Question]:
        """Equal share per topic, sampled from an oversampled pool and shuffled"""
        cfg = allocation_config or self.config
        selected: List[Question] = []

        for topic, count in zip(ALL_TOPICS, split_evenly(total_questions, len(ALL_TOPICS))):
            if count <= 0:
                continue
            candidates = self.question_source.find_by_topic(topic, count * cfg.candidate_oversample_factor)
            selected.extend(select_random(candidates, count, self.rng))

        return shuffle(selected, self.rng)

    def calculate_trends(self, history: Sequence[ExamResult]) -> List[TopicTrend]:
        """Per-topic score trend across the whole history"""
        if len(history) < 2:
            return []

        trends = []
        for topic in ALL_TOPICS:
            points = [
                (exam.topic_percentage(topic), exam.end_time)
                for exam in history
                if exam.topic_percentage(topic) is not None
            ]
            if len(points) < 2:
                continue

            points.sort(key=lambda point: point[1])
            scores = [score for score, _ in points]
            trends.append(TopicTrend(
                topic=topic,
                scores=scores,
                dates=[date for _, date in points],
                trend=TrendDirection(trend_direction(scores))
            ))

        return trends

    def generate_study_recommendations(self, analysis: PerformanceAnalysisResult,
                                       trends: Sequence[TopicTrend]) -> List[StudyRecommendation]:
        """Ranked per-topic study plan, high priority first"""
        trend_by_topic = {t.topic: t.trend for t in trends}
        recommendations = []

        for topic in ALL_TOPICS:
            current_score = analysis.topic_scores.get(topic, 0)
            trend = trend_by_topic.get(topic)
            is_weak = topic in analysis.weak_areas

            priority = Priority.MEDIUM
            recommended_questions = DEFAULT_RECOMMENDED_QUESTIONS
            focus_areas: List[str] = []

            if is_weak:
                priority = Priority.HIGH
                recommended_questions = WEAK_RECOMMENDED_QUESTIONS
                if trend in (TrendDirection.DECLINING, TrendDirection.STABLE):
                    recommended_questions = STALLED_WEAK_RECOMMENDED_QUESTIONS
                    focus_areas.append("Requires immediate attention - no recent improvement")

            if not is_weak and trend == TrendDirection.DECLINING:
                priority = Priority.MEDIUM
                recommended_questions = DECLINING_RECOMMENDED_QUESTIONS
                focus_areas.append("Performance declining - needs review")

            if topic in analysis.strong_areas and trend == TrendDirection.IMPROVING:
                priority = Priority.LOW
                recommended_questions = MAINTAIN_RECOMMENDED_QUESTIONS
                focus_areas.append("Maintain current performance level")

            if current_score < FOCUS_AREA_THRESHOLD:
                focus_areas.extend(TOPIC_FOCUS_AREAS.get(topic, []))

            recommendations.append(StudyRecommendation(
                topic=topic,
                priority=priority,
                recommended_questions=recommended_questions,
                focus_areas=focus_areas
            ))

        # sorted() is stable, so ties keep topic order
        return sorted(recommendations, key=lambda r: r.priority.rank, reverse=True)

    def should_reduce_allocation(self, topic: ExamTopic, history: Sequence[ExamResult],
                                 allocation_config: Optional[AllocationConfig] = None) -> bool:
        """True when the topic's recent average reaches the strong threshold"""
        cfg = allocation_config or self.config
        if not history:
            return False

        recent = self._recent_results(history, cfg.recent_exam_window)
        scores = [exam.topic_percentage(topic) for exam in recent]
        scores = [score for score in scores if score is not None]
        if not scores:
            return False

        return average(scores) >= cfg.strong_area_threshold

    # ==================== Helpers ====================

    @staticmethod
    def _recent_results(history: Sequence[ExamResult], count: int) -> List[ExamResult]:
        return sorted(history, key=lambda exam: exam.end_time, reverse=True)[:count]

    @staticmethod
    def _average_topic_scores(results: Sequence[ExamResult]) -> Dict[ExamTopic, float]:
        collected: Dict[ExamTopic, List[float]] = {}
        for exam in results:
            for topic_score in exam.topic_breakdown:
                collected.setdefault(topic_score.topic, []).append(topic_score.percentage)
        return {topic: round(average(scores), 2) for topic, scores in collected.items()}

    def _balanced_analysis(self, cfg: AllocationConfig) -> PerformanceAnalysisResult:
        counts = split_evenly(cfg.total_questions, len(ALL_TOPICS))
        allocation = [
            QuestionAllocation(topic=topic, question_count=count,
                               priority=Priority.MEDIUM, average_score=0)
            for topic, count in zip(ALL_TOPICS, counts)
        ]
        logger.info("🆕 No exam history, using balanced topic distribution")
        return PerformanceAnalysisResult(
            weak_areas=[],
            strong_areas=[],
            topic_scores={},
            has_exam_history=False,
            recommended_allocation=allocation
        )

    def _calculate_allocation(self, topic_scores: Dict[ExamTopic, float],
                              weak_areas: List[ExamTopic], strong_areas: List[ExamTopic],
                              cfg: AllocationConfig) -> List[QuestionAllocation]:
        other_topics = [topic for topic in ALL_TOPICS if topic not in weak_areas]

        # The weak share only applies when both groups exist; otherwise one
        # group takes the whole exam so the total is always met
        if not weak_areas:
            weak_share = 0
        elif not other_topics:
            weak_share = cfg.total_questions
        else:
            weak_share = int(cfg.total_questions * cfg.weak_area_allocation_percentage // 100)
        other_share = cfg.total_questions - weak_share

        allocations = []
        for topic, count in zip(weak_areas, split_evenly(weak_share, len(weak_areas))):
            allocations.append(QuestionAllocation(
                topic=topic,
                question_count=count,
                priority=Priority.HIGH,
                average_score=topic_scores.get(topic, 0)
            ))

        for topic, count in zip(other_topics, split_evenly(other_share, len(other_topics))):
            allocations.append(QuestionAllocation(
                topic=topic,
                question_count=count,
                priority=Priority.LOW if topic in strong_areas else Priority.MEDIUM,
                average_score=topic_scores.get(topic, 0)
            ))

        return sorted(allocations, key=lambda a: a.average_score)

    def _weighted_question_set(self, allocations: Sequence[QuestionAllocation],
                               cfg: AllocationConfig) -> List[Question]:
        selected: List[Question] = []

        for allocation in allocations:
            if allocation.question_count <= 0:
                continue

            candidates = self.question_source.find_by_topic(
                allocation.topic, allocation.question_count * cfg.candidate_oversample_factor
            )

            # Weak topics favour medium/hard questions when there are enough
            if allocation.priority == Priority.HIGH:
                challenging = [
                    q for q in candidates
                    if q.difficulty in (QuestionDifficulty.MEDIUM, QuestionDifficulty.HARD)
                ]
                if len(challenging) >= allocation.question_count:
                    candidates = challenging

            selected.extend(select_random(candidates, allocation.question_count, self.rng))

        return shuffle(selected, self.rng)
