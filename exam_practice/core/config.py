# exam_practice/core/config.py
import os
from typing import Dict, Any, List
from urllib.parse import quote_plus
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    """Centralized configuration management"""

    # ==================== API Configuration ====================
    API_TITLE = "Exam Practice API"
    API_DESCRIPTION = "Timed practice exams with adaptive question allocation"
    API_VERSION = "1.0.0"
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "8070"))
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")

    # ==================== Database Configuration ====================
    MONGO_USER = os.getenv("MONGO_USER", "")
    MONGO_PASS = os.getenv("MONGO_PASS", "")
    MONGO_HOST = os.getenv("MONGO_HOST", "localhost:27017")
    MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "exam_practice")
    MONGO_AUTH_SOURCE = os.getenv("MONGO_AUTH_SOURCE", "admin")

    @property
    def MONGO_CONNECTION_STRING(self) -> str:
        if not self.MONGO_USER:
            return f"mongodb://{self.MONGO_HOST}/{self.MONGO_DB_NAME}"
        return (
            f"mongodb://{quote_plus(self.MONGO_USER)}:"
            f"{quote_plus(self.MONGO_PASS)}@{self.MONGO_HOST}/"
            f"{self.MONGO_DB_NAME}?authSource={self.MONGO_AUTH_SOURCE}"
        )

    # Collections
    QUESTIONS_COLLECTION = os.getenv("QUESTIONS_COLLECTION", "questions")
    EXAM_RESULTS_COLLECTION = os.getenv("EXAM_RESULTS_COLLECTION", "exam_results")

    # ==================== Development Settings ====================
    USE_DUMMY_DATA = os.getenv("USE_DUMMY_DATA", "true").lower() == "true"

    # ==================== Exam Session Configuration ====================
    # Time limits (seconds)
    EXAM_TIME_LIMIT = int(os.getenv("EXAM_TIME_LIMIT", "5400"))  # 90 minutes
    AUTO_SAVE_INTERVAL = int(os.getenv("AUTO_SAVE_INTERVAL", "30"))
    SESSION_CLEANUP_INTERVAL = int(os.getenv("SESSION_CLEANUP_INTERVAL", "300"))
    SESSION_RETENTION_PERIOD = int(os.getenv("SESSION_RETENTION_PERIOD", "3600"))

    # ==================== Adaptive Allocation Configuration ====================
    QUESTIONS_PER_EXAM = int(os.getenv("QUESTIONS_PER_EXAM", "60"))
    WEAK_AREA_THRESHOLD = float(os.getenv("WEAK_AREA_THRESHOLD", "70"))
    STRONG_AREA_THRESHOLD = float(os.getenv("STRONG_AREA_THRESHOLD", "80"))
    WEAK_AREA_ALLOCATION_PERCENTAGE = float(os.getenv("WEAK_AREA_ALLOCATION_PERCENTAGE", "60"))
    RECENT_EXAM_WINDOW = int(os.getenv("RECENT_EXAM_WINDOW", "3"))
    CANDIDATE_OVERSAMPLE_FACTOR = int(os.getenv("CANDIDATE_OVERSAMPLE_FACTOR", "2"))

    # ==================== Scoring Configuration ====================
    PASSING_SCORE = int(os.getenv("PASSING_SCORE", "70"))
    OVERALL_PROGRESS_WINDOW = int(os.getenv("OVERALL_PROGRESS_WINDOW", "5"))
    RUSHING_THRESHOLD_SECONDS = int(os.getenv("RUSHING_THRESHOLD_SECONDS", "30"))
    SLOW_THRESHOLD_SECONDS = int(os.getenv("SLOW_THRESHOLD_SECONDS", "300"))

    @property
    def CORS_ORIGIN_LIST(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # ==================== Environment Overrides ====================
    @classmethod
    def from_env(cls) -> 'Config':
        """Create config with environment variable overrides"""
        return cls()

    # ==================== Validation ====================
    def validate(self) -> Dict[str, Any]:
        """Validate configuration and return status"""
        issues = []

        if self.EXAM_TIME_LIMIT < 1:
            issues.append("EXAM_TIME_LIMIT must be at least 1 second")

        if self.AUTO_SAVE_INTERVAL < 1:
            issues.append("AUTO_SAVE_INTERVAL must be at least 1 second")

        if self.SESSION_CLEANUP_INTERVAL < 1:
            issues.append("SESSION_CLEANUP_INTERVAL must be at least 1 second")

        if self.SESSION_RETENTION_PERIOD < 0:
            issues.append("SESSION_RETENTION_PERIOD cannot be negative")

        if self.QUESTIONS_PER_EXAM < 1:
            issues.append("QUESTIONS_PER_EXAM must be at least 1")

        if not (0 <= self.WEAK_AREA_THRESHOLD <= 100):
            issues.append("WEAK_AREA_THRESHOLD must be between 0 and 100")

        if not (0 <= self.STRONG_AREA_THRESHOLD <= 100):
            issues.append("STRONG_AREA_THRESHOLD must be between 0 and 100")

        if self.WEAK_AREA_THRESHOLD > self.STRONG_AREA_THRESHOLD:
            issues.append("WEAK_AREA_THRESHOLD cannot exceed STRONG_AREA_THRESHOLD")

        if not (0 <= self.WEAK_AREA_ALLOCATION_PERCENTAGE <= 100):
            issues.append("WEAK_AREA_ALLOCATION_PERCENTAGE must be between 0 and 100")

        if self.RECENT_EXAM_WINDOW < 1:
            issues.append("RECENT_EXAM_WINDOW must be at least 1")

        if self.CANDIDATE_OVERSAMPLE_FACTOR < 1:
            issues.append("CANDIDATE_OVERSAMPLE_FACTOR must be at least 1")

        return {
            "valid": len(issues) == 0,
            "issues": issues,
            "config_loaded": True,
            "using_dummy_data": self.USE_DUMMY_DATA
        }

# Global configuration instance
config = Config.from_env()

# Validate on import
validation_result = config.validate()
if not validation_result["valid"]:
    import logging
    logger = logging.getLogger(__name__)
    logger.warning(f"Configuration issues: {validation_result['issues']}")
