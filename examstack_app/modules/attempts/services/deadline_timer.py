"""
Per-attempt deadline timer.

An armed attempt owns one APScheduler interval job (``attempt-deadline-<id>``)
that ticks every ``DEADLINE_TICK_SECONDS``. Each tick recomputes the remaining
time from the stored deadline (so a late tick never drifts), publishes it on
``timer_ticked`` and, once it reaches zero, disarms the job and finalizes the
attempt with reason ``time_expired``. A fired timer is never armed again.
"""

from __future__ import annotations

import math
import threading
from datetime import datetime, timedelta
from typing import Dict, Optional

from apscheduler.jobstores.base import JobLookupError

from examstack_app.core.logging_config import get_logger
from examstack_app.core.signals import timer_ticked
from examstack_app.utils.time_utils import elapsed_seconds, ensure_aware, utcnow

logger = get_logger('deadline')

JOB_PREFIX = 'attempt-deadline-'


def remaining_seconds(start_time: datetime, time_limit: Optional[int],
                      now: Optional[datetime] = None) -> Optional[int]:
    """``time_limit * 60 - elapsed`` rounded up to whole seconds, clamped at zero.

    Returns ``None`` for untimed exams.
    """
    if time_limit is None:
        return None
    left = int(time_limit) * 60 - elapsed_seconds(start_time, now)
    return max(0, int(math.ceil(left)))


def _run_tick(attempt_id: int) -> None:
    """APScheduler entry point; runs in a scheduler worker thread."""
    from examstack_app.core.extensions import scheduler

    with scheduler.app.app_context():
        deadline_timer.tick(attempt_id)


class DeadlineTimer:
    """Arms, ticks and cancels deadline jobs for open attempts."""

    def __init__(self):
        self.scheduler = None
        self.tick_seconds = 1
        self._deadlines: Dict[int, datetime] = {}
        self._fired: set = set()
        self._lock = threading.Lock()

    def init_app(self, app, scheduler) -> None:
        self.scheduler = scheduler
        self.tick_seconds = max(1, int(app.config.get('DEADLINE_TICK_SECONDS', 1)))
        with self._lock:
            self._deadlines = {}
            self._fired = set()
        app.extensions['deadline_timer'] = self

    @staticmethod
    def job_id(attempt_id: int) -> str:
        return f"{JOB_PREFIX}{attempt_id}"

    @staticmethod
    def remaining(attempt, exam, now: Optional[datetime] = None) -> Optional[int]:
        """Remaining seconds of an attempt (``0`` once completed, ``None`` if untimed)."""
        if exam.time_limit is None:
            return None
        if attempt.is_completed:
            return 0
        return remaining_seconds(attempt.start_time, exam.time_limit, now)

    def arm(self, attempt, exam, now: Optional[datetime] = None) -> Optional[int]:
        """
        Start the countdown for an open attempt of a timed exam.

        Returns the remaining seconds (``0`` when the deadline already passed,
        in which case no job is scheduled) or ``None`` when nothing was armed.
        """
        if exam.time_limit is None or attempt.is_completed:
            return None

        with self._lock:
            if attempt.id in self._fired:
                return None
            deadline = ensure_aware(attempt.start_time) + timedelta(minutes=int(exam.time_limit))
            self._deadlines[attempt.id] = deadline

        remaining = remaining_seconds(attempt.start_time, exam.time_limit, now)
        if remaining <= 0:
            return 0

        # a stopped scheduler queues jobs without honouring replace_existing
        try:
            self.scheduler.remove_job(self.job_id(attempt.id))
        except JobLookupError:
            pass
        self.scheduler.add_job(
            id=self.job_id(attempt.id),
            func=_run_tick,
            args=[attempt.id],
            trigger='interval',
            seconds=self.tick_seconds,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"[DEADLINE] Armed attempt {attempt.id}: {remaining}s remaining")
        return remaining

    def tick(self, attempt_id: int, now: Optional[datetime] = None) -> Optional[int]:
        """One countdown step. Fires the time-expired submission at zero."""
        with self._lock:
            deadline = self._deadlines.get(attempt_id)
            if deadline is None or attempt_id in self._fired:
                return None

        now = ensure_aware(now) or utcnow()
        remaining = max(0, int(math.ceil((deadline - now).total_seconds())))
        timer_ticked.send(None, attempt_id=attempt_id, remaining_seconds=remaining)

        if remaining > 0:
            return remaining

        with self._lock:
            if attempt_id in self._fired:
                return 0
            self._fired.add(attempt_id)
        self.cancel(attempt_id)
        self._expire(attempt_id, now)
        return 0

    def _expire(self, attempt_id: int, now: Optional[datetime] = None) -> None:
        """Scheduler-thread finalization; there is no caller to hand an error to."""
        from examstack_app.core.error_handlers import ExamStackError

        try:
            self._submit_expired(attempt_id, now)
        except ExamStackError as exc:
            # attempt stays open; the next join or request past the deadline finalizes it
            logger.error(f"[DEADLINE] Auto-submit of attempt {attempt_id} failed: {exc.message}")

    @staticmethod
    def _submit_expired(attempt_id: int, now: Optional[datetime] = None):
        from .submission_service import SubmissionCoordinator, SubmitReason

        logger.info(f"[DEADLINE] Time expired for attempt {attempt_id}, submitting")
        return SubmissionCoordinator.submit(attempt_id, reason=SubmitReason.TIME_EXPIRED, now=now)

    def expire_now(self, attempt_id: int, now: Optional[datetime] = None):
        """
        Finalize an attempt whose deadline passed while no timer was running.

        Raises:
            SubmissionError: the final state could not be persisted (retryable).
        """
        with self._lock:
            self._fired.add(attempt_id)
        self.cancel(attempt_id)
        return self._submit_expired(attempt_id, now)

    def release(self, attempt_id: int) -> None:
        """Cancel the job and forget all state of a finalized attempt."""
        self.cancel(attempt_id)
        with self._lock:
            self._fired.discard(attempt_id)

    def cancel(self, attempt_id: int) -> None:
        """Remove the job. Safe to call for attempts that were never armed."""
        with self._lock:
            self._deadlines.pop(attempt_id, None)
        if self.scheduler is None:
            return
        try:
            self.scheduler.remove_job(self.job_id(attempt_id))
            logger.debug(f"[DEADLINE] Cancelled timer for attempt {attempt_id}")
        except JobLookupError:
            pass

    def is_armed(self, attempt_id: int) -> bool:
        if self.scheduler is None:
            return False
        return self.scheduler.get_job(self.job_id(attempt_id)) is not None


deadline_timer = DeadlineTimer()
