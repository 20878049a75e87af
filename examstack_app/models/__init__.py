"""Database models package for ExamStack."""

from ..core.extensions import db

from .exam import Exam, Question
from .attempt import ExamAttempt

__all__ = [
    'db',
    'Exam',
    'Question',
    'ExamAttempt',
]
