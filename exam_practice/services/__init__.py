"""
Business logic: session state machine, adaptive allocation, exam generation and scoring
"""

from .allocation_service import AdaptiveAllocationService, AllocationConfig
from .exam_service import ExamGenerationRequest, ExamGenerationService
from .scoring_service import ScoringService
from .session_manager import ExamSessionManager, SessionConfig

__all__ = [
    "AdaptiveAllocationService",
    "AllocationConfig",
    "ExamGenerationRequest",
    "ExamGenerationService",
    "ExamSessionManager",
    "ScoringService",
    "SessionConfig"
]
