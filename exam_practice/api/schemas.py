# exam_practice/api/schemas.py
"""Pydantic request models for the exam practice API"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class StartExamRequest(BaseModel):
    """Start a new exam session"""
    learner_id: str
    exam_type: str = "practice"
    total_questions: Optional[int] = Field(default=None, ge=1)
    adaptive: bool = True
    topic_distribution: Optional[Dict[str, int]] = None
    focus_topics: Optional[List[str]] = None
    difficulty: Optional[str] = None


class SubmitAnswerRequest(BaseModel):
    question_id: str
    selected_answer: int = Field(ge=0)


class NavigateRequest(BaseModel):
    question_index: int

