"""
Error Handlers for ExamStack

Provides:
- Custom exception classes for the attempt lifecycle
- Consistent error response format
- Flask error handlers
"""

from flask import jsonify, request, current_app
from typing import Optional, Dict, Any


class ExamStackError(Exception):
    """Base exception class for ExamStack."""

    def __init__(
        self,
        message: str,
        code: str = 'UNKNOWN_ERROR',
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON response."""
        return {
            'success': False,
            'message': self.message,
            'code': self.code,
            'details': self.details
        }


class NotFoundError(ExamStackError):
    """Exam or attempt absent, inactive, or not owned by the caller."""

    def __init__(self, message: str = 'Resource not found', resource: str = None):
        super().__init__(
            message=message,
            code='NOT_FOUND',
            status_code=404,
            details={'resource': resource} if resource else None
        )


class ValidationError(ExamStackError):
    """Input validation failed."""

    def __init__(self, message: str = 'Validation failed', errors: Dict = None):
        super().__init__(
            message=message,
            code='VALIDATION_ERROR',
            status_code=400,
            details={'errors': errors} if errors else None
        )


class AuthorizationError(ExamStackError):
    """Access denied."""

    def __init__(self, message: str = 'Access denied'):
        super().__init__(
            message=message,
            code='UNAUTHORIZED',
            status_code=403
        )


class AttemptLimitExceededError(ExamStackError):
    """All allowed attempts for this exam have been completed."""

    def __init__(self, exam_id: int, attempt_limit: int, completed: int):
        self.exam_id = exam_id
        self.attempt_limit = attempt_limit
        self.completed = completed
        super().__init__(
            message='You have reached the maximum number of attempts for this exam',
            code='ATTEMPT_LIMIT_EXCEEDED',
            status_code=403,
            details={'exam_id': exam_id, 'attempt_limit': attempt_limit, 'completed': completed}
        )


class AttemptCompletedError(ExamStackError):
    """The attempt is already finalized and can no longer change."""

    def __init__(self, attempt_id: int):
        self.attempt_id = attempt_id
        super().__init__(
            message='This attempt has already been submitted',
            code='ATTEMPT_COMPLETED',
            status_code=409,
            details={'attempt_id': attempt_id}
        )


class PersistenceError(ExamStackError):
    """Transient autosave failure. Retried by the answer writer, never surfaced."""

    def __init__(self, message: str = 'Failed to save answer', attempt_id: int = None):
        self.attempt_id = attempt_id
        super().__init__(
            message=message,
            code='PERSISTENCE_ERROR',
            status_code=503,
            details={'attempt_id': attempt_id} if attempt_id is not None else None
        )


class SubmissionError(ExamStackError):
    """Finalization could not be persisted. The attempt stays open."""

    def __init__(self, message: str = 'Failed to submit exam', attempt_id: int = None):
        self.attempt_id = attempt_id
        super().__init__(
            message=message,
            code='SUBMISSION_FAILED',
            status_code=503,
            details={'attempt_id': attempt_id, 'retryable': True}
        )


class AnswerValidationError(ExamStackError):
    """Malformed answer shape. Scored as zero credit, never propagated."""

    def __init__(self, question_id, expected: str, received: Any = None):
        self.question_id = question_id
        self.expected = expected
        super().__init__(
            message=f'Answer for question {question_id} is not a valid {expected}',
            code='ANSWER_INVALID',
            status_code=400,
            details={'question_id': question_id, 'expected': expected, 'received': type(received).__name__}
        )


def error_response(
    message: str,
    code: str = 'ERROR',
    status_code: int = 400,
    details: Dict = None
) -> tuple:
    """Create a standardized error response."""
    response = {
        'success': False,
        'message': message,
        'code': code
    }
    if details:
        response['details'] = details

    return jsonify(response), status_code


def success_response(data: Any = None, message: str = None) -> dict:
    """Create a standardized success response."""
    response = {'success': True}
    if data is not None:
        response['data'] = data
    if message:
        response['message'] = message
    return response


def register_error_handlers(app):
    """Register error handlers with Flask app."""

    @app.errorhandler(ExamStackError)
    def handle_examstack_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.code}: {error.message}")
        else:
            current_app.logger.info(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        if request.path.startswith('/exam/api/'):
            return error_response('Endpoint not found', 'NOT_FOUND', 404)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        current_app.logger.exception('Internal server error')
        if request.path.startswith('/exam/api/'):
            return error_response('Internal server error', 'SERVER_ERROR', 500)
        return error
