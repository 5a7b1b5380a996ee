# exam_practice/api/routes.py
import logging
from typing import Any, Dict, Optional

import markdown
from fastapi import APIRouter, HTTPException, Request

from ..core.models import (
    ExamResult, ExamSession, ExamTopic, ExamType, Question, QuestionDifficulty,
    QuestionResponse, SessionState
)
from ..core.utils import DateTimeUtils, ValidationUtils
from ..services.exam_service import ExamGenerationRequest, PerformanceAnalytics
from .schemas import NavigateRequest, StartExamRequest, SubmitAnswerRequest

logger = logging.getLogger(__name__)

router = APIRouter()

# ==================== Dependencies ====================

def _manager(request: Request):
    return request.app.state.session_manager

def _exam_service(request: Request):
    return request.app.state.exam_service

def _scoring_service(request: Request):
    return request.app.state.scoring_service

def _results_store(request: Request):
    return request.app.state.results_store

def _question_source(request: Request):
    return request.app.state.question_source

def _require_session(request: Request, session_id: str) -> ExamSession:
    session = _manager(request).get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Exam session not found")
    return session

# ==================== Projections ====================

def project_question(question: Question, index: int, total: int, reveal: bool = False,
                     response: Optional[QuestionResponse] = None) -> Dict[str, Any]:
    """Transport view of a question; answers stay hidden unless revealed"""
    data = {
        "question_id": question.id,
        "question_number": index + 1,
        "total_questions": total,
        "topic": question.topic.value,
        "subtopic": question.subtopic,
        "difficulty": question.difficulty.value,
        "question_html": markdown.markdown(question.question_text),
        "code_example": question.code_example,
        "options": list(question.options)
    }

    if reveal:
        data["correct_answer"] = question.correct_answer
        data["explanation"] = question.explanation
        data["documentation_links"] = list(question.documentation_links)
        data["response"] = response.to_dict() if response else None

    return data

def project_session(session: ExamSession, in_review: bool = False) -> Dict[str, Any]:
    data = {
        "session_id": session.id,
        "learner_id": session.learner_id,
        "exam_type": session.exam_type.value,
        "state": session.state.value,
        "start_time": session.start_time,
        "time_remaining": session.time_remaining,
        "is_completed": session.is_completed,
        "is_paused": session.is_paused,
        "in_review": in_review,
        "current_question_index": session.current_question_index,
        "total_questions": session.total_questions,
        "answered_questions": len(session.responses),
        "current_question": None
    }

    question = session.current_question
    # Completed sessions only show questions while reviewable
    if question and (session.state != SessionState.COMPLETED or in_review):
        data["current_question"] = project_question(
            question,
            session.current_question_index,
            session.total_questions,
            reveal=in_review,
            response=session.response_for(session.current_question_index) if in_review else None
        )

    return data

def project_result(result: ExamResult) -> Dict[str, Any]:
    data = result.to_dict()
    data["score_percentage"] = round(result.score_percentage, 1)
    data["time_spent_formatted"] = DateTimeUtils.format_duration(result.time_spent)
    return data

def project_analytics(analytics: PerformanceAnalytics) -> Dict[str, Any]:
    return {
        "learner_id": analytics.learner_id,
        "weak_areas": [t.value for t in analytics.weak_areas],
        "strong_areas": [t.value for t in analytics.strong_areas],
        "topic_scores": {t.value: score for t, score in analytics.topic_scores.items()},
        "overall_progress": {
            "average_score": analytics.overall_progress.average_score,
            "exams_considered": analytics.overall_progress.exams_considered
        },
        "trends": [
            {
                "topic": trend.topic.value,
                "scores": trend.scores,
                "dates": trend.dates,
                "trend": trend.trend.value
            }
            for trend in analytics.trends
        ],
        "study_plan": [
            {
                "topic": rec.topic.value,
                "priority": rec.priority.value,
                "recommended_questions": rec.recommended_questions,
                "focus_areas": rec.focus_areas
            }
            for rec in analytics.study_plan
        ]
    }

# ==================== Exam sessions ====================

@router.post("/api/exam-sessions", status_code=201)
async def start_exam(request: Request, body: StartExamRequest):
    """Generate questions and start a timed session"""
    if not ValidationUtils.validate_exam_type(body.exam_type):
        raise ValueError(f"Invalid exam type: {body.exam_type}")

    generation_request = ExamGenerationRequest(
        learner_id=body.learner_id,
        exam_type=ExamType(body.exam_type),
        total_questions=body.total_questions,
        adaptive=body.adaptive,
        topic_distribution=body.topic_distribution,
        focus_topics=[ExamTopic(t) for t in body.focus_topics] if body.focus_topics else None,
        difficulty=QuestionDifficulty(body.difficulty) if body.difficulty else None
    )

    exam = _exam_service(request).generate_exam(generation_request)

    return {
        "session": project_session(exam.session),
        "adaptive": exam.adaptive,
        "allocation": [
            {
                "topic": a.topic.value,
                "question_count": a.question_count,
                "priority": a.priority.value,
                "average_score": a.average_score
            }
            for a in exam.allocation
        ],
        "analytics": project_analytics(exam.analytics) if exam.analytics else None,
        "warnings": exam.warnings
    }

@router.get("/api/exam-sessions")
async def list_sessions(request: Request, learner_id: str):
    """Active sessions of a learner"""
    manager = _manager(request)
    sessions = manager.list_active_sessions(learner_id)
    return {
        "count": len(sessions),
        "sessions": [project_session(s, manager.is_in_review_mode(s.id)) for s in sessions]
    }

@router.get("/api/exam-sessions/{session_id}")
async def get_session(request: Request, session_id: str):
    session = _require_session(request, session_id)
    return project_session(session, _manager(request).is_in_review_mode(session_id))

@router.post("/api/exam-sessions/{session_id}/answers")
async def submit_answer(request: Request, session_id: str, body: SubmitAnswerRequest):
    """Answer the current question"""
    manager = _manager(request)
    _require_session(request, session_id)

    if not manager.submit_answer(session_id, body.question_id, body.selected_answer):
        raise HTTPException(status_code=409, detail="Answer rejected for the current session state")

    session = _require_session(request, session_id)
    response = {
        "accepted": True,
        "session": project_session(session, manager.is_in_review_mode(session_id))
    }

    if session.is_completed:
        result = manager.get_result(session_id)
        response["result"] = project_result(result)
        response["feedback"] = _scoring_service(request).immediate_feedback(result)

    return response

@router.post("/api/exam-sessions/{session_id}/pause")
async def pause_session(request: Request, session_id: str):
    _require_session(request, session_id)
    if not _manager(request).pause_session(session_id):
        raise HTTPException(status_code=409, detail="Session cannot be paused")
    return project_session(_require_session(request, session_id))

@router.post("/api/exam-sessions/{session_id}/resume")
async def resume_session(request: Request, session_id: str):
    _require_session(request, session_id)
    if not _manager(request).resume_session(session_id):
        raise HTTPException(status_code=409, detail="Session cannot be resumed")
    return project_session(_require_session(request, session_id))

@router.post("/api/exam-sessions/{session_id}/complete")
async def complete_early(request: Request, session_id: str):
    """Finish now and review with the time that is left"""
    _require_session(request, session_id)
    result = _manager(request).complete_early(session_id)
    if not result:
        raise HTTPException(status_code=409, detail="Session already completed")
    return {
        "result": project_result(result),
        "feedback": _scoring_service(request).immediate_feedback(result),
        "in_review": _manager(request).is_in_review_mode(session_id)
    }

@router.post("/api/exam-sessions/{session_id}/force-complete")
async def force_complete(request: Request, session_id: str):
    _require_session(request, session_id)
    result = _manager(request).force_complete(session_id)
    if not result:
        raise HTTPException(status_code=409, detail="Session could not be completed")
    return {
        "result": project_result(result),
        "feedback": _scoring_service(request).immediate_feedback(result)
    }

@router.post("/api/exam-sessions/{session_id}/navigate")
async def navigate(request: Request, session_id: str, body: NavigateRequest):
    """Move to a question while reviewing"""
    manager = _manager(request)
    _require_session(request, session_id)
    if not manager.navigate_to(session_id, body.question_index):
        raise HTTPException(status_code=409, detail="Navigation is only available in review mode")
    return project_session(_require_session(request, session_id), manager.is_in_review_mode(session_id))

@router.get("/api/exam-sessions/{session_id}/time-remaining")
async def time_remaining(request: Request, session_id: str):
    _require_session(request, session_id)
    return {
        "session_id": session_id,
        "time_remaining": _manager(request).get_time_remaining(session_id)
    }

@router.get("/api/exam-sessions/{session_id}/review-mode")
async def review_mode(request: Request, session_id: str):
    _require_session(request, session_id)
    return {
        "session_id": session_id,
        "in_review": _manager(request).is_in_review_mode(session_id)
    }

@router.get("/api/exam-sessions/{session_id}/result")
async def session_result(request: Request, session_id: str):
    _require_session(request, session_id)
    result = _manager(request).get_result(session_id)
    if not result:
        raise HTTPException(status_code=409, detail="Session not completed yet")
    return project_result(result)

@router.delete("/api/exam-sessions/{session_id}")
async def end_session(request: Request, session_id: str):
    """Release the session; repeating the call is harmless"""
    _manager(request).end_session(session_id)
    return {"session_id": session_id, "ended": True}

# ==================== Adaptive analytics ====================

@router.get("/api/adaptive/learners/{learner_id}/history")
async def learner_history(request: Request, learner_id: str, limit: Optional[int] = None):
    results = _results_store(request).get_history(learner_id, limit)
    return {"count": len(results), "results": [project_result(r) for r in results]}

@router.get("/api/adaptive/learners/{learner_id}/analysis")
async def performance_analysis(request: Request, learner_id: str):
    analytics = _exam_service(request).analyze_performance(learner_id)
    return project_analytics(analytics)

@router.get("/api/adaptive/learners/{learner_id}/trends")
async def performance_trends(request: Request, learner_id: str):
    history = _results_store(request).get_history(learner_id)
    trends = _exam_service(request).allocation_service.calculate_trends(history)
    return {
        "learner_id": learner_id,
        "trends": [
            {"topic": t.topic.value, "scores": t.scores, "dates": t.dates, "trend": t.trend.value}
            for t in trends
        ]
    }

@router.get("/api/adaptive/learners/{learner_id}/study-plan")
async def study_plan(request: Request, learner_id: str):
    history = _results_store(request).get_history(learner_id)
    plan = _exam_service(request).generate_study_plan(history)
    return {
        "learner_id": learner_id,
        "study_plan": [
            {
                "topic": rec.topic.value,
                "priority": rec.priority.value,
                "recommended_questions": rec.recommended_questions,
                "focus_areas": rec.focus_areas
            }
            for rec in plan
        ]
    }

@router.get("/api/adaptive/learners/{learner_id}/reduce-allocation")
async def reduce_allocation(request: Request, learner_id: str, topic: str):
    """Whether a topic has been mastered enough to get fewer questions"""
    history = _results_store(request).get_history(learner_id)
    return {
        "learner_id": learner_id,
        "topic": ExamTopic(topic).value,
        "reduce": _exam_service(request).should_reduce_allocation(ExamTopic(topic), history)
    }

@router.get("/api/adaptive/results/{result_id}/feedback")
async def result_feedback(request: Request, result_id: str):
    """Detailed feedback for a stored exam result"""
    result = _results_store(request).get_result(result_id)
    if not result:
        raise HTTPException(status_code=404, detail="Exam result not found")

    questions = _question_source(request).find_by_ids([r.question_id for r in result.responses])
    feedback = _scoring_service(request).generate_feedback(result, questions)
    return feedback.to_dict()

@router.get("/api/adaptive/capabilities")
async def adaptive_capabilities(request: Request):
    return _exam_service(request).validate_adaptive_capabilities()
