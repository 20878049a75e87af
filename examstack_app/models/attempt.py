from datetime import datetime, timezone
from sqlalchemy.types import JSON
from ..core.extensions import db
from ..utils.time_utils import ensure_aware


class ExamAttempt(db.Model):
    """
    One learner's timed run through an exam.

    ``answers`` maps ``str(question_id)`` to the submitted value. Every write to
    an attempt is conditional on ``is_completed = false``; once finalized the
    row never changes again.
    """
    __tablename__ = 'exam_attempts'

    SUBMIT_MANUAL = 'manual'
    SUBMIT_TIME_EXPIRED = 'time_expired'

    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey('exams.id'), nullable=False, index=True)
    student_id = db.Column(db.String(255), nullable=False, index=True)  # opaque identity id
    attempt_number = db.Column(db.Integer, nullable=False)

    answers = db.Column(JSON, nullable=False, default=dict)

    # Set exactly once at finalization
    score = db.Column(db.Float, nullable=True)  # percentage, full precision
    total_points = db.Column(db.Integer, nullable=True)
    earned_points = db.Column(db.Float, nullable=True)
    score_breakdown = db.Column(JSON, nullable=True)  # per-question results as scored at submission
    submit_reason = db.Column(db.String(20), nullable=True)

    start_time = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    is_completed = db.Column(db.Boolean, nullable=False, default=False, index=True)

    exam = db.relationship('Exam', backref=db.backref('attempts', lazy='dynamic'), lazy=True)

    __table_args__ = (
        db.UniqueConstraint('exam_id', 'student_id', 'attempt_number', name='uq_attempts_exam_student_number'),
    )

    @property
    def is_open(self):
        return not self.is_completed

    @property
    def started_at(self):
        return ensure_aware(self.start_time)

    @property
    def ended_at(self):
        return ensure_aware(self.end_time)

    @property
    def display_score(self):
        """One-decimal score for presentation; the stored value keeps full precision."""
        if self.score is None:
            return None
        return round(self.score, 1)

    def to_dict(self):
        return {
            'id': self.id,
            'exam_id': self.exam_id,
            'student_id': self.student_id,
            'attempt_number': self.attempt_number,
            'answers': dict(self.answers or {}),
            'score': self.score,
            'display_score': self.display_score,
            'total_points': self.total_points,
            'earned_points': self.earned_points,
            'submit_reason': self.submit_reason,
            'start_time': self.started_at.isoformat() if self.start_time else None,
            'end_time': self.ended_at.isoformat() if self.end_time else None,
            'is_completed': self.is_completed,
        }

    def __repr__(self):
        return f"<ExamAttempt {self.id} exam={self.exam_id} #{self.attempt_number}>"
