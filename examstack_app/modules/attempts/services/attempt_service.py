from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from examstack_app.core.error_handlers import AttemptLimitExceededError, NotFoundError
from examstack_app.models import db, ExamAttempt
from examstack_app.modules.catalog.interface import CatalogInterface
from examstack_app.utils.db_session import safe_commit
from examstack_app.utils.time_utils import utcnow


@dataclass
class AttemptResolution:
    attempt: ExamAttempt
    resumed: bool


class AttemptService:
    """
    Service to manage the attempt records of (exam, student) pairs.
    At most one attempt per pair is open at any time.
    """

    @staticmethod
    def get_open_attempt(exam_id, student_id):
        return ExamAttempt.query.filter_by(
            exam_id=exam_id, student_id=str(student_id), is_completed=False
        ).order_by(ExamAttempt.attempt_number.desc()).populate_existing().first()

    @staticmethod
    def count_completed(exam_id, student_id):
        return ExamAttempt.query.filter_by(
            exam_id=exam_id, student_id=str(student_id), is_completed=True
        ).count()

    @staticmethod
    def _last_attempt_number(exam_id, student_id):
        return db.session.query(func.max(ExamAttempt.attempt_number)).filter(
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.student_id == str(student_id),
        ).scalar() or 0

    @staticmethod
    def resolve(exam_id, student_id):
        """
        Resume the open attempt or create the next one.

        Raises:
            NotFoundError: exam missing or inactive.
            AttemptLimitExceededError: no open attempt and the limit is used up.
        """
        student_id = str(student_id)
        exam = CatalogInterface.get_exam(exam_id)

        existing = AttemptService.get_open_attempt(exam.id, student_id)
        if existing:
            current_app.logger.info(
                f"[ATTEMPT] Resuming attempt {existing.id} (#{existing.attempt_number}) "
                f"of exam {exam.id} for {student_id}"
            )
            return AttemptResolution(existing, True)

        completed = AttemptService.count_completed(exam.id, student_id)
        if completed >= exam.attempt_limit:
            current_app.logger.info(
                f"[ATTEMPT] Limit reached for {student_id} on exam {exam.id} ({completed}/{exam.attempt_limit})"
            )
            raise AttemptLimitExceededError(exam.id, exam.attempt_limit, completed)

        attempt = ExamAttempt(
            exam_id=exam.id,
            student_id=student_id,
            attempt_number=AttemptService._last_attempt_number(exam.id, student_id) + 1,
            answers={},
            start_time=utcnow(),
            is_completed=False,
        )
        try:
            db.session.add(attempt)
            safe_commit(db.session)
        except IntegrityError:
            # A concurrent resolve inserted the same attempt number first
            db.session.rollback()
            winner = AttemptService.get_open_attempt(exam.id, student_id)
            if winner is None:
                raise
            current_app.logger.info(f"[ATTEMPT] Concurrent start detected, resuming attempt {winner.id}")
            return AttemptResolution(winner, True)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating attempt for exam {exam.id}: {e}", exc_info=True)
            raise

        current_app.logger.info(
            f"[ATTEMPT] Created attempt {attempt.id} (#{attempt.attempt_number}) of exam {exam.id} for {student_id}"
        )
        return AttemptResolution(attempt, False)

    @staticmethod
    def attempts_remaining(exam, student_id):
        """Attempts the student may still start (an open attempt does not count as used)."""
        return max(0, exam.attempt_limit - AttemptService.count_completed(exam.id, student_id))

    @staticmethod
    def get_attempt_for_student(attempt_id, student_id):
        attempt = db.session.get(ExamAttempt, attempt_id, populate_existing=True)
        if attempt is None or attempt.student_id != str(student_id):
            raise NotFoundError("Attempt not found", resource='attempt')
        return attempt

    @staticmethod
    def list_attempts(exam_id, student_id):
        """Attempt history, newest first."""
        return ExamAttempt.query.filter_by(
            exam_id=exam_id, student_id=str(student_id)
        ).order_by(ExamAttempt.attempt_number.desc()).all()
