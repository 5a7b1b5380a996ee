# exam_practice/core/utils.py
import math
import random
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, TypeVar

T = TypeVar("T")

# Score change (percentage points) below which a trend counts as stable
STABLE_TREND_MARGIN = 5

# ==================== Randomness ====================

def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a Fisher-Yates shuffled copy of items"""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled

def select_random(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> List[T]:
    """Pick up to count items at random; everything is returned when short"""
    if len(items) <= count:
        return list(items)
    return shuffle(items, rng)[:count]

# ==================== Statistics ====================

def split_evenly(total: int, buckets: int) -> List[int]:
    """Split total into near-equal integer parts, remainder to the first buckets"""
    if buckets <= 0:
        return []
    base, remainder = divmod(total, buckets)
    return [base + (1 if i < remainder else 0) for i in range(buckets)]

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)

def trend_direction(scores: Sequence[float]) -> str:
    """Classify a chronological score series as improving, declining or stable.

    The series is split into an earlier and a later half (the middle element
    of an odd-length series belongs to both) and the half averages compared.
    """
    if len(scores) < 2:
        return "stable"

    first_half = scores[:math.ceil(len(scores) / 2)]
    second_half = scores[len(scores) // 2:]
    difference = average(second_half) - average(first_half)

    if abs(difference) < STABLE_TREND_MARGIN:
        return "stable"
    return "improving" if difference > 0 else "declining"

def standard_deviation(values: Sequence[float], mean: Optional[float] = None) -> float:
    if not values:
        return 0.0
    if mean is None:
        mean = average(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))

# ==================== Validation ====================

class ValidationUtils:
    """Utility functions for request validation"""

    @staticmethod
    def validate_exam_type(exam_type: Any) -> bool:
        return exam_type in ("practice", "assessment")

    @staticmethod
    def validate_learner_id(learner_id: Any) -> bool:
        return isinstance(learner_id, str) and bool(learner_id.strip())

# ==================== Date/Time ====================

class DateTimeUtils:
    """Utility functions for date/time operations"""

    @staticmethod
    def to_datetime(timestamp: float) -> datetime:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    @staticmethod
    def format_duration(seconds: int) -> str:
        """Format a duration as '1h 5m' or '12m'"""
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"
