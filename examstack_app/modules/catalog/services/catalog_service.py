import secrets

from flask import current_app
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.exc import SQLAlchemyError

from examstack_app.core.error_handlers import NotFoundError, ValidationError
from examstack_app.models import db, Exam, Question
from examstack_app.modules.scoring.interface import ScoringInterface
from examstack_app.utils.db_session import safe_commit


class CatalogService:
    """
    Read access to exams and questions.
    The attempt lifecycle never writes here; ``create_exam`` exists for seeding
    and tests since authoring CRUD lives outside this service.
    """

    @staticmethod
    def get_exam(exam_id, require_active=True):
        exam = db.session.get(Exam, exam_id)
        if exam is None or (require_active and not exam.is_active):
            raise NotFoundError("Exam not found or inactive", resource='exam')
        return exam

    @staticmethod
    def get_exam_by_share_token(share_token):
        """Resolve an exam by its opaque share token; inactive exams are not found."""
        if not share_token:
            raise NotFoundError("Exam not found or inactive", resource='exam')
        exam = Exam.query.filter_by(share_link=share_token, is_active=True).first()
        if exam is None:
            raise NotFoundError("Exam not found or inactive", resource='exam')
        return exam

    @staticmethod
    def get_questions(exam_id):
        return Question.query.filter_by(exam_id=exam_id).order_by(Question.order_index).all()

    @staticmethod
    def generate_share_token():
        token = secrets.token_urlsafe(12)
        while Exam.query.filter_by(share_link=token).first() is not None:
            token = secrets.token_urlsafe(12)
        return token

    @staticmethod
    def create_exam(teacher_id, title, questions, time_limit=None, attempt_limit=1,
                    language='en', description=None, color_scheme=None, is_active=True,
                    share_link=None):
        """
        Create an exam with its questions.

        ``questions`` is a list of dicts with ``question_type``, ``question_text``,
        ``question_data`` and ``points``; list position becomes ``order_index``.
        Payloads are validated against their question type.
        """
        if attempt_limit is None or int(attempt_limit) < 1:
            raise ValidationError("attempt_limit must be at least 1")
        if time_limit is not None and int(time_limit) < 1:
            raise ValidationError("time_limit must be a positive number of minutes")

        errors = {}
        for index, item in enumerate(questions):
            try:
                ScoringInterface.validate_payload(item.get('question_type'), item.get('question_data'))
            except PayloadValidationError as exc:
                errors[str(index)] = exc.errors(include_url=False)
            if int(item.get('points', 1)) < 1:
                errors.setdefault(str(index), []).append({'msg': 'points must be at least 1'})
        if errors:
            raise ValidationError("Invalid question payloads", errors=errors)

        exam = Exam(
            teacher_id=str(teacher_id),
            title=title,
            description=description,
            language=language,
            time_limit=time_limit,
            attempt_limit=int(attempt_limit),
            is_active=is_active,
            share_link=share_link or CatalogService.generate_share_token(),
            color_scheme=color_scheme,
        )
        for index, item in enumerate(questions):
            exam.questions.append(Question(
                question_type=item['question_type'],
                question_text=item.get('question_text', ''),
                question_data=dict(item.get('question_data') or {}),
                points=int(item.get('points', 1)),
                order_index=index,
            ))

        try:
            db.session.add(exam)
            safe_commit(db.session)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating exam '{title}': {e}", exc_info=True)
            raise
        current_app.logger.info(f"Created exam {exam.id} with {len(questions)} questions (share={exam.share_link}).")
        return exam
