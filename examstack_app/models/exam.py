"""Exam catalog models (read-only from the attempt lifecycle's point of view)."""

from __future__ import annotations

from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..core.extensions import db


class Exam(db.Model):
    """An exam addressed by an opaque share token."""

    __tablename__ = 'exams'

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.String(255), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    language = db.Column(db.String(20), nullable=False, default='en')
    time_limit = db.Column(db.Integer, nullable=True)  # minutes, None = untimed
    attempt_limit = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    share_link = db.Column(db.String(64), nullable=False, unique=True, index=True)
    color_scheme = db.Column(JSON, nullable=True)  # presentation only
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=func.now())

    questions = db.relationship(
        'Question',
        backref='exam',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='Question.order_index',
    )

    __table_args__ = (
        db.CheckConstraint('attempt_limit >= 1', name='ck_exams_attempt_limit_positive'),
    )

    @property
    def time_limit_seconds(self):
        if self.time_limit is None:
            return None
        return int(self.time_limit) * 60

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'language': self.language,
            'time_limit': self.time_limit,
            'attempt_limit': self.attempt_limit,
            'is_active': self.is_active,
            'color_scheme': self.color_scheme,
        }

    def __repr__(self):
        return f"<Exam {self.id}: {self.title}>"


class Question(db.Model):
    """A single exam question; ``question_data`` holds the type-specific payload."""

    __tablename__ = 'questions'

    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey('exams.id'), nullable=False, index=True)
    question_type = db.Column(db.String(30), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    question_data = db.Column(JSON, nullable=False, default=dict)
    points = db.Column(db.Integer, nullable=False, default=1)
    # Presentation and progress only; never used by scoring
    order_index = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        db.UniqueConstraint('exam_id', 'order_index', name='uq_questions_exam_order'),
        db.CheckConstraint('points >= 1', name='ck_questions_points_positive'),
    )

    def to_dict(self, include_answer_key: bool = False):
        data = dict(self.question_data or {})
        if not include_answer_key:
            for key in ('correctAnswer', 'sampleAnswer'):
                data.pop(key, None)
            if 'subQuestions' in data:
                data['subQuestions'] = [
                    {'question': (sub or {}).get('question')} for sub in data['subQuestions'] or []
                ]
        return {
            'id': self.id,
            'question_type': self.question_type,
            'question_text': self.question_text,
            'question_data': data,
            'points': self.points,
            'order_index': self.order_index,
        }

    def __repr__(self):
        return f"<Question {self.id} ({self.question_type})>"
