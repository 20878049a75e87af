"""
Exam session context.

A session is the in-process view of one learner working through one open
attempt: it owns the deadline job and the current question index. The attempt
row stays the source of truth; a session can be dropped (leave, disconnect,
process restart) and rebuilt by joining again.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from flask import current_app

from examstack_app.core.error_handlers import AttemptCompletedError, NotFoundError, ValidationError
from examstack_app.core.signals import attempt_started
from examstack_app.models import db, Question
from examstack_app.modules.catalog.interface import CatalogInterface
from examstack_app.modules.scoring.interface import ScoringInterface
from examstack_app.utils.time_utils import format_countdown, to_display_timezone, utcnow

from .answer_store import answer_store
from .attempt_service import AttemptService
from .deadline_timer import deadline_timer
from .submission_service import SubmissionCoordinator, SubmissionResult, SubmitReason


@dataclass
class ExamSessionContext:
    attempt_id: int
    exam_id: int
    student_id: str
    current_index: int = 0
    opened_at: datetime = field(default_factory=utcnow)


class SessionRegistry:
    """Active session contexts keyed by attempt id (single process)."""

    def __init__(self):
        self._contexts: Dict[int, ExamSessionContext] = {}
        self._lock = threading.Lock()

    def open(self, attempt) -> ExamSessionContext:
        with self._lock:
            context = self._contexts.get(attempt.id)
            if context is None:
                context = ExamSessionContext(attempt.id, attempt.exam_id, attempt.student_id)
                self._contexts[attempt.id] = context
            return context

    def get(self, attempt_id) -> Optional[ExamSessionContext]:
        with self._lock:
            return self._contexts.get(attempt_id)

    def drop(self, attempt_id) -> Optional[ExamSessionContext]:
        with self._lock:
            return self._contexts.pop(attempt_id, None)

    def clear(self):
        with self._lock:
            self._contexts.clear()


session_registry = SessionRegistry()


class ExamSessionService:
    """
    Orchestrates the attempt lifecycle for the presentation layer.
    Every method takes the caller's student id and only touches that student's attempts.
    """

    @staticmethod
    def open_session(share_token, student_id, now=None):
        """Join an exam by share token: resume or create the attempt and arm its timer."""
        exam = CatalogInterface.get_exam_by_share_token(share_token)
        resolution = AttemptService.resolve(exam.id, student_id)
        attempt = resolution.attempt

        if ExamSessionService._close_if_expired(attempt, exam, now):
            state = ExamSessionService._build_state(attempt, exam, now)
            state['resumed'] = resolution.resumed
            return state

        deadline_timer.arm(attempt, exam, now)
        session_registry.open(attempt)
        attempt_started.send(
            None,
            attempt_id=attempt.id,
            exam_id=exam.id,
            student_id=attempt.student_id,
            attempt_number=attempt.attempt_number,
            resumed=resolution.resumed,
        )

        state = ExamSessionService._build_state(attempt, exam, now)
        state['resumed'] = resolution.resumed
        return state

    @staticmethod
    def _close_if_expired(attempt, exam, now=None):
        """
        Finalize an open attempt whose deadline has passed.

        Returns True when the attempt was closed here. A failed finalization
        raises SubmissionError and leaves the attempt open for a retry.
        """
        if attempt.is_completed or deadline_timer.remaining(attempt, exam, now) != 0:
            return False
        current_app.logger.info(f"[SESSION] Attempt {attempt.id} is past its deadline, finalizing")
        deadline_timer.expire_now(attempt.id, now)
        db.session.refresh(attempt)
        return True

    @staticmethod
    def _load_open(attempt_id, student_id, now=None):
        """Owned attempt and its exam; rejects attempts that are closed or past their deadline."""
        attempt = AttemptService.get_attempt_for_student(attempt_id, student_id)
        if attempt.is_completed:
            raise AttemptCompletedError(attempt.id)
        exam = CatalogInterface.get_exam(attempt.exam_id, require_active=False)
        if ExamSessionService._close_if_expired(attempt, exam, now):
            raise AttemptCompletedError(attempt.id)
        return attempt, exam

    @staticmethod
    def _local_times(attempt):
        started = to_display_timezone(attempt.start_time)
        ended = to_display_timezone(attempt.end_time)
        return {
            'start_time': started.isoformat() if started else None,
            'end_time': ended.isoformat() if ended else None,
        }

    @staticmethod
    def get_state(attempt_id, student_id, now=None):
        attempt = AttemptService.get_attempt_for_student(attempt_id, student_id)
        exam = CatalogInterface.get_exam(attempt.exam_id, require_active=False)
        ExamSessionService._close_if_expired(attempt, exam, now)
        return ExamSessionService._build_state(attempt, exam, now)

    @staticmethod
    def _build_state(attempt, exam, now=None):
        questions = CatalogInterface.get_questions(exam.id)

        answers = dict(attempt.answers or {})
        if attempt.is_open:
            answers.update(answer_store.pending(attempt.id))

        answered = {str(q.id): ScoringInterface.is_answered(answers.get(str(q.id))) for q in questions}
        answered_count = sum(1 for flag in answered.values() if flag)
        progress = 0.0 if not questions else 100.0 * answered_count / len(questions)

        context = session_registry.get(attempt.id)
        remaining = deadline_timer.remaining(attempt, exam, now)

        return {
            'attempt': attempt.to_dict(),
            'local_times': ExamSessionService._local_times(attempt),
            'exam': exam.to_dict(),
            'questions': [q.to_dict() for q in questions],
            'answers': answers,
            'current_index': context.current_index if context else 0,
            'session_active': context is not None,
            'remaining_seconds': remaining,
            'countdown': format_countdown(remaining),
            'answered': answered,
            'answered_count': answered_count,
            'progress': round(progress, 1),
            'is_completed': attempt.is_completed,
        }

    @staticmethod
    def record_answer(attempt_id, student_id, question_id, value, now=None):
        """Queue an autosave write; returns before the write is durable."""
        attempt, _ = ExamSessionService._load_open(attempt_id, student_id, now)

        question = db.session.get(Question, question_id)
        if question is None or question.exam_id != attempt.exam_id:
            raise NotFoundError("Question not found in this exam", resource='question')

        answer_store.set(attempt.id, question.id, value)
        return {'attempt_id': attempt.id, 'question_id': question.id, 'queued': True}

    @staticmethod
    def navigate(attempt_id, student_id, index, now=None):
        attempt, _ = ExamSessionService._load_open(attempt_id, student_id, now)

        question_count = Question.query.filter_by(exam_id=attempt.exam_id).count()
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < question_count:
            raise ValidationError("Question index out of range", errors={'index': index, 'count': question_count})

        # sessions are opened by joining only
        context = session_registry.get(attempt.id)
        if context is None:
            raise ValidationError("No active session for this attempt; join the exam first")
        context.current_index = index
        return {'attempt_id': attempt.id, 'current_index': index, 'question_count': question_count}

    @staticmethod
    def submit(attempt_id, student_id, now=None):
        """Manual submission; idempotent. Past the deadline it finalizes as time_expired."""
        attempt = AttemptService.get_attempt_for_student(attempt_id, student_id)
        exam = CatalogInterface.get_exam(attempt.exam_id, require_active=False)
        ExamSessionService._close_if_expired(attempt, exam, now)
        result = SubmissionCoordinator.submit(attempt.id, reason=SubmitReason.MANUAL, now=now)
        session_registry.drop(attempt.id)
        return result.to_dict()

    @staticmethod
    def leave(attempt_id, student_id):
        """End the session without finalizing; the attempt stays open and resumable."""
        attempt = AttemptService.get_attempt_for_student(attempt_id, student_id)
        deadline_timer.cancel(attempt.id)
        session_registry.drop(attempt.id)
        current_app.logger.info(f"[SESSION] Student {attempt.student_id} left attempt {attempt.id}")
        return {'attempt_id': attempt.id, 'is_completed': attempt.is_completed}

    @staticmethod
    def get_result(attempt_id, student_id):
        attempt = AttemptService.get_attempt_for_student(attempt_id, student_id)
        if attempt.is_open:
            raise ValidationError("Attempt has not been submitted yet")

        # stored at submission; later catalog edits do not change a finalized result
        result = SubmissionResult.from_attempt(attempt).to_dict()
        result['local_times'] = ExamSessionService._local_times(attempt)
        return result

    @staticmethod
    def list_history(exam_id, student_id):
        exam = CatalogInterface.get_exam(exam_id, require_active=False)
        attempts = AttemptService.list_attempts(exam.id, student_id)
        return {
            'exam': exam.to_dict(),
            'attempts_remaining': AttemptService.attempts_remaining(exam, student_id),
            'attempts': [a.to_dict() for a in attempts],
        }
