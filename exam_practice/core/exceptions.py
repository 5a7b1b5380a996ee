# exam_practice/core/exceptions.py
"""
Exception types for caller misuse and collaborator failures.

Runtime state problems (unknown session, illegal transition, mismatched
question id) are not exceptions: session operations report them by
returning False or None.
"""


class ExamPracticeError(Exception):
    """Base class for exam practice errors"""


class ConfigurationError(ExamPracticeError, ValueError):
    """Invalid engine configuration or allocation request"""


class QuestionSourceError(ExamPracticeError):
    """Question source could not be queried"""
