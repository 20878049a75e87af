"""
Submission coordinator: finalizes an attempt exactly once.

The manual submit (request thread) and the deadline timer (scheduler thread)
may both call ``submit`` for the same attempt. The only guard is the
conditional ``UPDATE ... WHERE is_completed = false``: whichever call flips the
flag owns the finalization, the other observes zero affected rows and returns
the stored result unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from examstack_app.core.error_handlers import NotFoundError, SubmissionError
from examstack_app.core.logging_config import get_logger
from examstack_app.core.signals import attempt_submitted
from examstack_app.models import db, ExamAttempt
from examstack_app.modules.catalog.interface import CatalogInterface
from examstack_app.modules.scoring.interface import ScoringInterface
from examstack_app.utils.db_session import safe_commit
from examstack_app.utils.time_utils import ensure_aware, utcnow

from .answer_store import answer_store
from .deadline_timer import deadline_timer

logger = get_logger('submission')


class SubmitReason(str, Enum):
    MANUAL = ExamAttempt.SUBMIT_MANUAL
    TIME_EXPIRED = ExamAttempt.SUBMIT_TIME_EXPIRED


@dataclass
class SubmissionResult:
    attempt_id: int
    score: Optional[float]
    total_points: Optional[int]
    earned_points: Optional[float] = None
    reason: Optional[str] = None
    end_time: Optional[str] = None
    already_completed: bool = False
    breakdown: list = field(default_factory=list)

    @property
    def display_score(self) -> Optional[float]:
        return None if self.score is None else round(self.score, 1)

    @classmethod
    def from_attempt(cls, attempt: ExamAttempt, already_completed: bool = True) -> 'SubmissionResult':
        return cls(
            attempt_id=attempt.id,
            score=attempt.score,
            total_points=attempt.total_points,
            earned_points=attempt.earned_points,
            reason=attempt.submit_reason,
            end_time=attempt.ended_at.isoformat() if attempt.end_time else None,
            already_completed=already_completed,
            breakdown=list(attempt.score_breakdown or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'attempt_id': self.attempt_id,
            'score': self.score,
            'display_score': self.display_score,
            'total_points': self.total_points,
            'earned_points': self.earned_points,
            'reason': self.reason,
            'end_time': self.end_time,
            'already_completed': self.already_completed,
            'breakdown': self.breakdown,
        }


class SubmissionCoordinator:
    """Flush, score and commit the final attempt state exactly once."""

    @staticmethod
    def submit(attempt_id: int, reason: SubmitReason = SubmitReason.MANUAL, now=None) -> SubmissionResult:
        """
        Finalize an attempt. ``now`` overrides the recorded end time (deadline ticks pass
        the tick time so the end time never drifts past the deadline).
        """
        reason = SubmitReason(reason)

        attempt = db.session.get(ExamAttempt, attempt_id, populate_existing=True)
        if attempt is None:
            raise NotFoundError("Attempt not found", resource='attempt')
        if attempt.is_completed:
            return SubmissionResult.from_attempt(attempt)

        # 1. Settle autosave so scoring never reads stale answers
        unsaved = answer_store.flush(attempt_id)
        db.session.refresh(attempt)
        if attempt.is_completed:
            return SubmissionResult.from_attempt(attempt)

        answers = dict(attempt.answers or {})
        answers.update(unsaved)

        # 2. Score
        questions = CatalogInterface.get_questions(attempt.exam_id)
        outcome = ScoringInterface.score_attempt(questions, answers)
        end_time = ensure_aware(now) or utcnow()

        # 3. Atomic check-and-set on is_completed
        def work(session):
            result = session.execute(
                update(ExamAttempt)
                .where(ExamAttempt.id == attempt_id, ExamAttempt.is_completed.is_(False))
                .values(
                    is_completed=True,
                    end_time=end_time,
                    answers=answers,
                    score=outcome.percentage,
                    total_points=outcome.total_points,
                    earned_points=outcome.earned_points,
                    score_breakdown=outcome.to_dict()['breakdown'],
                    submit_reason=reason.value,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        try:
            won = safe_commit(db.session, work) == 1
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(
                f"Error finalizing attempt {attempt_id} ({reason.value}): {exc}", exc_info=True
            )
            raise SubmissionError(attempt_id=attempt_id) from exc

        db.session.refresh(attempt)
        if not won:
            logger.info(f"[SUBMIT] Attempt {attempt_id} was already finalized; {reason.value} submit is a no-op")
            return SubmissionResult.from_attempt(attempt)

        # 4. Tear down the session-owned resources
        deadline_timer.release(attempt_id)
        answer_store.discard(attempt_id)

        logger.info(
            f"[SUBMIT] Attempt {attempt_id} finalized ({reason.value}): "
            f"{outcome.earned_points}/{outcome.total_points} points, {outcome.percentage:.4f}%"
        )
        attempt_submitted.send(
            None,
            attempt_id=attempt_id,
            exam_id=attempt.exam_id,
            student_id=attempt.student_id,
            reason=reason.value,
            score=outcome.percentage,
            total_points=outcome.total_points,
        )

        return SubmissionResult.from_attempt(attempt, already_completed=False)
