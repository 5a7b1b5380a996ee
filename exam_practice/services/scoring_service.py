# exam_practice/services/scoring_service.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..core.config import config
from ..core.models import ExamResult, ExamTopic, Question, QuestionResponse
from ..core.utils import DateTimeUtils, round_half_up, standard_deviation

logger = logging.getLogger(__name__)

EXCELLENT_SCORE = 80

TOPIC_ADVICE: Dict[ExamTopic, str] = {
    ExamTopic.PRODUCTION_PIPELINES:
        "Review Delta Live Tables, job scheduling, and error handling scenarios.",
    ExamTopic.INCREMENTAL_DATA_PROCESSING:
        "Practice merge operations, change data capture, and streaming scenarios.",
    ExamTopic.LAKEHOUSE_PLATFORM:
        "Study core platform concepts, architecture, and data management features.",
    ExamTopic.ELT_SPARK_SQL_PYTHON:
        "Practice SQL queries, DataFrame operations, and Python transformations.",
    ExamTopic.DATA_GOVERNANCE:
        "Review Unity Catalog, access controls, and data lineage concepts.",
}

# ==================== Feedback models ====================

@dataclass
class QuestionFeedback:
    question_id: str
    question_text: str
    topic: ExamTopic
    selected_answer: int
    correct_answer: int
    is_correct: bool
    explanation: str
    documentation_links: List[str]
    time_spent: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "question_text": self.question_text,
            "topic": self.topic.value,
            "selected_answer": self.selected_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "explanation": self.explanation,
            "documentation_links": list(self.documentation_links),
            "time_spent": self.time_spent
        }

@dataclass
class PacingAnalysis:
    is_well_paced: bool
    rushing_questions: List[str]
    slow_questions: List[str]
    recommendations: List[str]

@dataclass
class TimingAnalysis:
    total_time_spent: int
    average_time_per_question: int
    fastest_question: Dict[str, Any]
    slowest_question: Dict[str, Any]
    time_by_topic: List[Dict[str, Any]]
    pacing: PacingAnalysis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_time_spent": self.total_time_spent,
            "average_time_per_question": self.average_time_per_question,
            "fastest_question": self.fastest_question,
            "slowest_question": self.slowest_question,
            "time_by_topic": self.time_by_topic,
            "pacing": {
                "is_well_paced": self.pacing.is_well_paced,
                "rushing_questions": self.pacing.rushing_questions,
                "slow_questions": self.pacing.slow_questions,
                "recommendations": self.pacing.recommendations
            }
        }

@dataclass
class PerformanceInsights:
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

@dataclass
class ExamFeedback:
    result: ExamResult
    overall_score: int
    question_feedback: List[QuestionFeedback]
    timing: TimingAnalysis
    insights: PerformanceInsights

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result_id": self.result.id,
            "overall_score": self.overall_score,
            "topic_breakdown": [t.to_dict() for t in self.result.topic_breakdown],
            "question_feedback": [q.to_dict() for q in self.question_feedback],
            "timing": self.timing.to_dict(),
            "insights": {
                "strengths": self.insights.strengths,
                "weaknesses": self.insights.weaknesses,
                "recommendations": self.insights.recommendations
            }
        }

# ==================== Scoring ====================

class ScoringService:
    """Turns a completed exam result into learner-facing feedback"""

    def __init__(self, passing_score: Optional[int] = None,
                 weak_threshold: Optional[float] = None,
                 rushing_threshold: Optional[int] = None,
                 slow_threshold: Optional[int] = None):
        self.passing_score = passing_score if passing_score is not None else config.PASSING_SCORE
        self.weak_threshold = weak_threshold if weak_threshold is not None else config.WEAK_AREA_THRESHOLD
        self.rushing_threshold = rushing_threshold if rushing_threshold is not None else config.RUSHING_THRESHOLD_SECONDS
        self.slow_threshold = slow_threshold if slow_threshold is not None else config.SLOW_THRESHOLD_SECONDS

    def generate_feedback(self, result: ExamResult, questions: Sequence[Question]) -> ExamFeedback:
        """Full breakdown of a completed exam; questions must be in exam order"""
        if not questions:
            raise ValueError("Invalid exam result or questions data")
        if len(result.responses) != len(questions):
            raise ValueError("Mismatch between exam result responses and provided questions")

        question_feedback = self._question_feedback(result.responses, questions)
        timing = self.calculate_timing_analysis(result.responses, questions)
        insights = self._performance_insights(result, timing)

        logger.info(f"📝 Feedback generated for exam result {result.id}")
        return ExamFeedback(
            result=result,
            overall_score=self.overall_score(result),
            question_feedback=question_feedback,
            timing=timing,
            insights=insights
        )

    def immediate_feedback(self, result: ExamResult) -> Dict[str, Any]:
        """Short summary shown right after an attempt"""
        score = self.overall_score(result)
        ranked = sorted(result.topic_breakdown, key=lambda t: t.percentage, reverse=True)

        return {
            "score": score,
            "passed": score >= self.passing_score,
            "correct_answers": result.correct_answers,
            "total_questions": result.total_questions,
            "time_spent": DateTimeUtils.format_duration(result.time_spent),
            "top_performing_topic": ranked[0].topic.value if ranked else "N/A",
            "weakest_topic": ranked[-1].topic.value if ranked else "N/A"
        }

    @staticmethod
    def overall_score(result: ExamResult) -> int:
        if result.total_questions == 0:
            return 0
        return round_half_up(result.correct_answers / result.total_questions * 100)

    def calculate_timing_analysis(self, responses: Sequence[QuestionResponse],
                                  questions: Sequence[Question]) -> TimingAnalysis:
        if not responses:
            raise ValueError("No responses provided for timing analysis")

        total = sum(r.time_spent for r in responses)
        average_time = round_half_up(total / len(responses))

        # First occurrence wins ties
        fastest = min(responses, key=lambda r: r.time_spent)
        slowest = max(responses, key=lambda r: r.time_spent)

        by_topic: Dict[ExamTopic, Dict[str, int]] = {}
        for response, question in zip(responses, questions):
            data = by_topic.setdefault(question.topic, {"total": 0, "count": 0})
            data["total"] += response.time_spent
            data["count"] += 1

        return TimingAnalysis(
            total_time_spent=total,
            average_time_per_question=average_time,
            fastest_question={"question_id": fastest.question_id, "time_spent": fastest.time_spent},
            slowest_question={"question_id": slowest.question_id, "time_spent": slowest.time_spent},
            time_by_topic=[
                {
                    "topic": topic.value,
                    "total_time": data["total"],
                    "average_time": round_half_up(data["total"] / data["count"]),
                    "question_count": data["count"]
                }
                for topic, data in by_topic.items()
            ],
            pacing=self._analyze_pacing(responses, average_time)
        )

    # ==================== Helpers ====================

    @staticmethod
    def _question_feedback(responses: Sequence[QuestionResponse],
                           questions: Sequence[Question]) -> List[QuestionFeedback]:
        return [
            QuestionFeedback(
                question_id=response.question_id,
                question_text=question.question_text,
                topic=question.topic,
                selected_answer=response.selected_answer,
                correct_answer=question.correct_answer,
                is_correct=response.is_correct,
                explanation=question.explanation,
                documentation_links=list(question.documentation_links),
                time_spent=response.time_spent
            )
            for response, question in zip(responses, questions)
        ]

    def _analyze_pacing(self, responses: Sequence[QuestionResponse], average_time: int) -> PacingAnalysis:
        rushing = [r.question_id for r in responses if r.time_spent < self.rushing_threshold]
        slow = [r.question_id for r in responses if r.time_spent > self.slow_threshold]
        deviation = standard_deviation([r.time_spent for r in responses], average_time)

        is_well_paced = deviation < average_time * 0.5 and len(rushing) < 3 and len(slow) < 3

        recommendations = []
        if len(rushing) > 2:
            recommendations.append("Consider spending more time reading questions carefully to avoid careless mistakes.")
        if len(slow) > 2:
            recommendations.append("Practice time management - aim to spend no more than 4-5 minutes per question.")
        if deviation > average_time:
            recommendations.append("Work on consistent pacing throughout the exam.")
        if is_well_paced:
            recommendations.append("Excellent time management! Your pacing was consistent throughout the exam.")

        return PacingAnalysis(
            is_well_paced=is_well_paced,
            rushing_questions=rushing,
            slow_questions=slow,
            recommendations=recommendations
        )

    def _performance_insights(self, result: ExamResult, timing: TimingAnalysis) -> PerformanceInsights:
        insights = PerformanceInsights()
        score = self.overall_score(result)

        if score >= EXCELLENT_SCORE:
            insights.strengths.append(
                "Excellent overall performance - you're well-prepared for the certification exam.")
        elif score >= self.passing_score:
            insights.strengths.append("Good overall performance with room for targeted improvement.")
        else:
            insights.weaknesses.append("Overall score needs improvement to meet certification standards.")
            insights.recommendations.append(
                "Focus on comprehensive review of all topics before attempting the certification exam.")

        strong_topics = [t for t in result.topic_breakdown if t.percentage >= EXCELLENT_SCORE]
        weak_topics = [t for t in result.topic_breakdown if t.percentage < self.weak_threshold]

        if strong_topics:
            insights.strengths.append(
                f"Strong performance in: {', '.join(t.topic.value for t in strong_topics)}")
        if weak_topics:
            names = ", ".join(t.topic.value for t in weak_topics)
            insights.weaknesses.append(f"Needs improvement in: {names}")
            insights.recommendations.append(f"Focus additional study time on: {names}")

        if timing.pacing.is_well_paced:
            insights.strengths.append("Excellent time management and consistent pacing.")
        else:
            if len(timing.pacing.rushing_questions) > 2:
                insights.weaknesses.append("Tendency to rush through questions too quickly.")
            if len(timing.pacing.slow_questions) > 2:
                insights.weaknesses.append("Spending too much time on difficult questions.")

        insights.recommendations.extend(timing.pacing.recommendations)

        for topic_score in weak_topics:
            advice = TOPIC_ADVICE.get(topic_score.topic)
            if advice:
                insights.recommendations.append(advice)

        return insights
