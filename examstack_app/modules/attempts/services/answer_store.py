"""
Autosave write queue.

Each open attempt gets its own queue. ``set`` only records the latest value
per question and wakes a writer thread, so the caller never waits on the
database. The writer drains everything pending in one batch (later values for
the same question overwrite earlier ones), persists it with a conditional
update that never touches a completed attempt, and retries transient failures
with exponential backoff. ``flush`` blocks until the queue has settled and
hands back whatever could not be persisted so the submission can write it
itself.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from examstack_app.core.error_handlers import PersistenceError
from examstack_app.core.extensions import db
from examstack_app.core.logging_config import get_logger
from examstack_app.core.signals import answer_saved
from examstack_app.models import ExamAttempt
from examstack_app.utils.db_session import safe_commit

logger = get_logger('autosave')


class _AttemptWriteQueue:
    """Pending, in-flight and failed answers of one attempt."""

    def __init__(self, attempt_id: int):
        self.attempt_id = attempt_id
        self.pending: Dict[str, Any] = {}
        self.in_flight: Dict[str, Any] = {}
        self.failed: Dict[str, Any] = {}
        self.worker: Optional[threading.Thread] = None
        self.condition = threading.Condition()

    def is_settled(self) -> bool:
        return not self.pending and not self.in_flight and self.worker is None

    def unsettled(self) -> Dict[str, Any]:
        values = dict(self.failed)
        values.update(self.in_flight)
        values.update(self.pending)
        return values


class AnswerStore:
    """Per-attempt asynchronous answer persistence with flush-and-wait."""

    def __init__(self, app=None):
        self.app = None
        self.max_retries = 5
        self.retry_delay = 0.1
        self.flush_timeout = 10.0
        self._queues: Dict[int, _AttemptWriteQueue] = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.app = app
        self.max_retries = max(1, int(app.config.get('ANSWER_STORE_MAX_RETRIES', 5)))
        self.retry_delay = float(app.config.get('ANSWER_STORE_RETRY_DELAY', 0.1))
        self.flush_timeout = float(app.config.get('ANSWER_STORE_FLUSH_TIMEOUT', 10.0))
        with self._lock:
            self._queues = {}
        app.extensions['answer_store'] = self

    def _queue(self, attempt_id: int) -> _AttemptWriteQueue:
        with self._lock:
            queue = self._queues.get(attempt_id)
            if queue is None:
                queue = _AttemptWriteQueue(attempt_id)
                self._queues[attempt_id] = queue
            return queue

    # ── public API ───────────────────────────────────────────────────

    def set(self, attempt_id: int, question_id, value: Any) -> None:
        """Record an answer and schedule it for persistence. Never blocks on I/O."""
        if self.app is None:
            raise RuntimeError("AnswerStore is not initialised; call init_app() first")

        key = str(question_id)
        queue = self._queue(attempt_id)
        with queue.condition:
            queue.pending[key] = value
            queue.failed.pop(key, None)
            if queue.worker is None:
                queue.worker = threading.Thread(
                    target=self._drain,
                    args=(queue,),
                    name=f"answer-writer-{attempt_id}",
                    daemon=True,
                )
                queue.worker.start()

    def flush(self, attempt_id: int, timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Wait until every pending write for the attempt has settled.

        Returns the answers that are not known to be durable (writes that
        exhausted their retries, or everything still queued when the timeout
        elapsed). An empty dict means the database holds the latest answers.
        """
        with self._lock:
            queue = self._queues.get(attempt_id)
        if queue is None:
            return {}

        timeout = self.flush_timeout if timeout is None else timeout
        with queue.condition:
            settled = queue.condition.wait_for(queue.is_settled, timeout=timeout)
            if not settled:
                logger.warning(
                    f"[AUTOSAVE] Flush of attempt {attempt_id} timed out after {timeout}s; "
                    f"{len(queue.unsettled())} answers handed back to the caller"
                )
            return queue.unsettled()

    def pending(self, attempt_id: int) -> Dict[str, Any]:
        """Latest values not yet confirmed durable (for answered flags)."""
        with self._lock:
            queue = self._queues.get(attempt_id)
        if queue is None:
            return {}
        with queue.condition:
            return queue.unsettled()

    def discard(self, attempt_id: int) -> None:
        """Forget a finalized attempt's queue."""
        with self._lock:
            queue = self._queues.pop(attempt_id, None)
        if queue is not None:
            with queue.condition:
                queue.pending.clear()
                queue.failed.clear()

    def shutdown(self, timeout: float = 5.0) -> None:
        """Wait for all writers to settle (used on teardown)."""
        with self._lock:
            attempt_ids = list(self._queues)
        for attempt_id in attempt_ids:
            self.flush(attempt_id, timeout=timeout)

    # ── writer thread ────────────────────────────────────────────────

    def _drain(self, queue: _AttemptWriteQueue) -> None:
        try:
            while True:
                with queue.condition:
                    if not queue.pending:
                        queue.worker = None
                        queue.condition.notify_all()
                        return
                    batch = queue.pending
                    queue.pending = {}
                    queue.in_flight = batch

                unsaved = batch
                try:
                    unsaved = self._write_with_retry(queue.attempt_id, batch)
                except Exception:
                    logger.exception(
                        f"[AUTOSAVE] Unexpected error saving {len(batch)} answers for attempt {queue.attempt_id}"
                    )
                finally:
                    with queue.condition:
                        queue.in_flight = {}
                        for key, value in unsaved.items():
                            # a newer value for the same question supersedes the failed one
                            if key not in queue.pending:
                                queue.failed[key] = value
                        queue.condition.notify_all()
        finally:
            with queue.condition:
                if queue.worker is threading.current_thread():
                    queue.worker = None
                    queue.condition.notify_all()

    def _write_with_retry(self, attempt_id: int, batch: Dict[str, Any]) -> Dict[str, Any]:
        delay = self.retry_delay
        for attempt_no in range(1, self.max_retries + 1):
            try:
                with self.app.app_context():
                    self._persist(attempt_id, batch)
                return {}
            except PersistenceError as exc:
                if attempt_no == self.max_retries:
                    logger.error(
                        f"[AUTOSAVE] Giving up on {len(batch)} answers for attempt {attempt_id} "
                        f"after {attempt_no} tries: {exc.message}"
                    )
                    return batch
                logger.warning(
                    f"[AUTOSAVE] Save failed for attempt {attempt_id} (try {attempt_no}/{self.max_retries}), "
                    f"retrying in {delay:.2f}s: {exc.message}"
                )
                time.sleep(delay)
                delay *= 2
        return batch

    def _persist(self, attempt_id: int, batch: Dict[str, Any]) -> None:
        """Merge a batch into the stored answers of an open attempt."""

        def work(session):
            attempt = session.get(ExamAttempt, attempt_id, populate_existing=True)
            if attempt is None or attempt.is_completed:
                return False
            merged = dict(attempt.answers or {})
            merged.update(batch)
            result = session.execute(
                update(ExamAttempt)
                .where(ExamAttempt.id == attempt_id, ExamAttempt.is_completed.is_(False))
                .values(answers=merged)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

        try:
            saved = safe_commit(db.session, work)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(str(exc), attempt_id=attempt_id) from exc

        if saved:
            try:
                answer_saved.send(None, attempt_id=attempt_id, question_ids=sorted(batch))
            except Exception:
                # the batch is already durable; a failing subscriber must not trigger a retry
                logger.exception(f"[AUTOSAVE] answer_saved receiver failed for attempt {attempt_id}")
        else:
            logger.info(f"[AUTOSAVE] Dropped {len(batch)} answers for closed or missing attempt {attempt_id}")


answer_store = AnswerStore()
