"""
Exam Practice - timed practice exams with adaptive question allocation
"""

__version__ = "1.0.0"
__description__ = "Exam session engine and adaptive question allocation"

from .core.config import config
from .main import app

__all__ = ["app", "config"]
