"""
Core module containing configuration, domain models, storage and utilities
"""

from .config import config
from .database import get_db_manager, close_db_manager
from .exceptions import ConfigurationError, ExamPracticeError, QuestionSourceError
from .question_source import create_question_source

__all__ = [
    "config",
    "get_db_manager",
    "close_db_manager",
    "create_question_source",
    "ExamPracticeError",
    "ConfigurationError",
    "QuestionSourceError"
]
