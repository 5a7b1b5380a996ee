"""
Tests for the HTTP layer: session endpoints, projections and analytics.
"""

import random

import pytest
from fastapi.testclient import TestClient

from exam_practice.core.database import InMemoryResultsStore
from exam_practice.core.question_source import InMemoryQuestionSource
from exam_practice.main import app
from exam_practice.services.allocation_service import AdaptiveAllocationService, AllocationConfig
from exam_practice.services.exam_service import ExamGenerationService
from exam_practice.services.scoring_service import ScoringService
from exam_practice.services.session_manager import ExamSessionManager, SessionConfig

from .conftest import FakeClock, ManualScheduler, build_bank


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def client(clock, scheduler):
    with TestClient(app) as test_client:
        # Swap in deterministic services after startup
        app.state.session_manager.stop()

        rng = random.Random(11)
        results_store = InMemoryResultsStore()
        source = InMemoryQuestionSource(build_bank(per_topic=4), rng=rng)
        manager = ExamSessionManager(
            SessionConfig(time_limit=600, auto_save_interval=30),
            clock=clock,
            scheduler=scheduler,
            on_complete=results_store.save_result
        )
        manager.start()
        allocation = AdaptiveAllocationService(source, AllocationConfig(total_questions=5), rng=rng)

        app.state.results_store = results_store
        app.state.question_source = source
        app.state.session_manager = manager
        app.state.exam_service = ExamGenerationService(source, manager, results_store, allocation, rng=rng)
        app.state.scoring_service = ScoringService(passing_score=70)

        yield test_client


def start_exam(client, **body):
    payload = {"learner_id": "learner-1"}
    payload.update(body)
    response = client.post("/api/exam-sessions", json=payload)
    assert response.status_code == 201
    return response.json()


def answer_all(client, session):
    """Answer every question with option 0; returns the last response body"""
    session_id = session["session_id"]
    data = None
    for _ in range(session["total_questions"]):
        current = client.get(f"/api/exam-sessions/{session_id}").json()["current_question"]
        data = client.post(
            f"/api/exam-sessions/{session_id}/answers",
            json={"question_id": current["question_id"], "selected_answer": 0}
        ).json()
    return data


class TestStartExam:
    def test_start_hides_answers(self, client):
        data = start_exam(client)

        session = data["session"]
        assert session["state"] == "running"
        assert session["total_questions"] == 5
        assert session["time_remaining"] == 600
        assert data["adaptive"] is True
        assert sum(a["question_count"] for a in data["allocation"]) == 5

        question = session["current_question"]
        assert question["question_number"] == 1
        assert question["question_html"].startswith("<p>")
        assert "correct_answer" not in question
        assert "explanation" not in question

    def test_assessment(self, client):
        data = start_exam(client, exam_type="assessment")

        assert data["session"]["exam_type"] == "assessment"
        assert data["analytics"] is None

    def test_invalid_exam_type(self, client):
        response = client.post("/api/exam-sessions", json={"learner_id": "learner-1", "exam_type": "final"})

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"

    def test_distribution_must_sum_to_total(self, client):
        response = client.post("/api/exam-sessions", json={
            "learner_id": "learner-1",
            "topic_distribution": {"Data Governance": 2}
        })

        assert response.status_code == 400

    def test_unknown_focus_topic(self, client):
        response = client.post("/api/exam-sessions", json={
            "learner_id": "learner-1",
            "focus_topics": ["Astrology"]
        })

        assert response.status_code == 400


class TestSessionFlow:
    def test_unknown_session(self, client):
        assert client.get("/api/exam-sessions/missing").status_code == 404
        assert client.post("/api/exam-sessions/missing/pause").status_code == 404

    def test_wrong_question_is_conflict(self, client):
        session = start_exam(client)["session"]

        response = client.post(
            f"/api/exam-sessions/{session['session_id']}/answers",
            json={"question_id": "not-current", "selected_answer": 0}
        )

        assert response.status_code == 409

    def test_negative_answer_is_rejected(self, client):
        session = start_exam(client)["session"]

        response = client.post(
            f"/api/exam-sessions/{session['session_id']}/answers",
            json={"question_id": session["current_question"]["question_id"], "selected_answer": -1}
        )

        assert response.status_code == 422

    def test_answering_every_question_completes(self, client):
        session = start_exam(client)["session"]

        data = answer_all(client, session)

        assert data["session"]["is_completed"] is True
        assert data["session"]["in_review"] is True
        assert data["result"]["total_questions"] == 5
        assert data["result"]["correct_answers"] == 5
        assert data["feedback"]["passed"] is True

    def test_review_reveals_answers(self, client):
        session = start_exam(client)["session"]
        session_id = session["session_id"]
        answer_all(client, session)

        response = client.post(f"/api/exam-sessions/{session_id}/navigate", json={"question_index": 0})

        assert response.status_code == 200
        question = response.json()["current_question"]
        assert question["correct_answer"] == 0
        assert question["explanation"]
        assert question["response"]["selected_answer"] == 0

    def test_pause_and_resume(self, client, scheduler):
        session = start_exam(client)["session"]
        session_id = session["session_id"]
        scheduler.advance(60)

        paused = client.post(f"/api/exam-sessions/{session_id}/pause").json()
        assert paused["is_paused"] is True
        assert paused["time_remaining"] == 540

        response = client.post(
            f"/api/exam-sessions/{session_id}/answers",
            json={"question_id": session["current_question"]["question_id"], "selected_answer": 0}
        )
        assert response.status_code == 409

        resumed = client.post(f"/api/exam-sessions/{session_id}/resume").json()
        assert resumed["state"] == "running"

    def test_time_remaining(self, client, scheduler):
        session_id = start_exam(client)["session"]["session_id"]
        scheduler.advance(45)

        data = client.get(f"/api/exam-sessions/{session_id}/time-remaining").json()

        assert data["time_remaining"] == 555

    def test_complete_early_then_again(self, client):
        session_id = start_exam(client)["session"]["session_id"]

        first = client.post(f"/api/exam-sessions/{session_id}/complete")
        second = client.post(f"/api/exam-sessions/{session_id}/complete")

        assert first.status_code == 200
        assert first.json()["in_review"] is True
        assert first.json()["result"]["correct_answers"] == 0
        assert second.status_code == 409

    def test_force_complete_has_no_review(self, client):
        session_id = start_exam(client)["session"]["session_id"]

        response = client.post(f"/api/exam-sessions/{session_id}/force-complete")

        assert response.status_code == 200
        assert client.get(f"/api/exam-sessions/{session_id}/review-mode").json()["in_review"] is False
        navigate = client.post(f"/api/exam-sessions/{session_id}/navigate", json={"question_index": 0})
        assert navigate.status_code == 409

    def test_result_requires_completion(self, client):
        session_id = start_exam(client)["session"]["session_id"]

        assert client.get(f"/api/exam-sessions/{session_id}/result").status_code == 409

        client.post(f"/api/exam-sessions/{session_id}/force-complete")
        assert client.get(f"/api/exam-sessions/{session_id}/result").status_code == 200

    def test_end_session_is_idempotent(self, client):
        session_id = start_exam(client)["session"]["session_id"]

        assert client.delete(f"/api/exam-sessions/{session_id}").status_code == 200
        assert client.delete(f"/api/exam-sessions/{session_id}").status_code == 200
        assert client.get(f"/api/exam-sessions/{session_id}").status_code == 404

    def test_list_learner_sessions(self, client):
        start_exam(client)
        start_exam(client)
        start_exam(client, learner_id="learner-2")

        data = client.get("/api/exam-sessions", params={"learner_id": "learner-1"}).json()

        assert data["count"] == 2


class TestAdaptiveEndpoints:
    def test_completed_exam_feeds_history_and_feedback(self, client):
        session = start_exam(client)["session"]
        answer_all(client, session)

        history = client.get("/api/adaptive/learners/learner-1/history").json()
        assert history["count"] == 1
        result_id = history["results"][0]["id"]

        feedback = client.get(f"/api/adaptive/results/{result_id}/feedback")
        assert feedback.status_code == 200
        body = feedback.json()
        assert body["overall_score"] == 100
        assert len(body["question_feedback"]) == 5

    def test_unknown_result(self, client):
        assert client.get("/api/adaptive/results/missing/feedback").status_code == 404

    def test_analysis_for_new_learner(self, client):
        data = client.get("/api/adaptive/learners/newcomer/analysis").json()

        assert data["weak_areas"] == []
        assert data["overall_progress"]["exams_considered"] == 0
        assert len(data["study_plan"]) == 5

    def test_trends_and_study_plan(self, client):
        assert client.get("/api/adaptive/learners/learner-1/trends").json()["trends"] == []
        assert len(client.get("/api/adaptive/learners/learner-1/study-plan").json()["study_plan"]) == 5

    def test_reduce_allocation(self, client):
        response = client.get(
            "/api/adaptive/learners/learner-1/reduce-allocation",
            params={"topic": "Data Governance"}
        )

        assert response.status_code == 200
        assert response.json()["reduce"] is False

    def test_reduce_allocation_unknown_topic(self, client):
        response = client.get(
            "/api/adaptive/learners/learner-1/reduce-allocation",
            params={"topic": "Astrology"}
        )

        assert response.status_code == 400

    def test_capabilities(self, client):
        data = client.get("/api/adaptive/capabilities").json()

        assert data["is_valid"] is False
        assert data["issues"]


class TestServiceEndpoints:
    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["sessions"]["running"] is True

    def test_info(self, client):
        data = client.get("/info").json()

        assert data["name"] == "Exam Practice API"
        assert "start_exam" in data["endpoints"]
