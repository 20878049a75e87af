"""
Attempts Interface
==================
Public API for other modules to interact with the attempt lifecycle.
All cross-module attempt operations must go through this interface.
"""

from typing import Optional

from .services.answer_store import answer_store
from .services.attempt_service import AttemptResolution, AttemptService
from .services.deadline_timer import deadline_timer
from .services.session_service import ExamSessionService
from .services.submission_service import SubmissionCoordinator, SubmissionResult, SubmitReason


class AttemptsInterface:
    """Public interface for attempt lifecycle operations."""

    @staticmethod
    def resolve_attempt(exam_id: int, student_id: str) -> AttemptResolution:
        """
        Resume the open attempt of a student or create the next one.

        Raises:
            NotFoundError: exam missing or inactive.
            AttemptLimitExceededError: all allowed attempts are completed.
        """
        return AttemptService.resolve(exam_id, student_id)

    @staticmethod
    def save_answer(attempt_id: int, question_id: int, value) -> None:
        """Queue an answer write without waiting for it to be durable."""
        answer_store.set(attempt_id, question_id, value)

    @staticmethod
    def flush_answers(attempt_id: int, timeout: Optional[float] = None) -> dict:
        """Wait for queued writes; returns the answers that could not be persisted."""
        return answer_store.flush(attempt_id, timeout=timeout)

    @staticmethod
    def submit(attempt_id: int, reason: SubmitReason = SubmitReason.MANUAL) -> SubmissionResult:
        """Finalize an attempt exactly once (idempotent)."""
        return SubmissionCoordinator.submit(attempt_id, reason=reason)

    @staticmethod
    def cancel_timer(attempt_id: int) -> None:
        deadline_timer.cancel(attempt_id)

    @staticmethod
    def get_state(attempt_id: int, student_id: str) -> dict:
        return ExamSessionService.get_state(attempt_id, student_id)
