# File: examstack_app/modules/attempts/routes/api.py
from flask import request, jsonify
from flask_login import login_required, current_user

from .. import blueprint
from ..services.session_service import ExamSessionService
from examstack_app.core.error_handlers import ValidationError, success_response
from examstack_app.modules.identity import require_student


@blueprint.route('/api/join/<share_token>', methods=['POST'])
@login_required
def api_join_exam(share_token):
    """Open (or resume) the caller's attempt on the exam behind a share token."""
    student_id = require_student(current_user)
    state = ExamSessionService.open_session(share_token, student_id)
    status = 200 if state['resumed'] else 201
    return jsonify(success_response(state)), status


@blueprint.route('/api/attempts/<int:attempt_id>/state')
@login_required
def api_get_state(attempt_id):
    student_id = require_student(current_user)
    return jsonify(success_response(ExamSessionService.get_state(attempt_id, student_id)))


@blueprint.route('/api/attempts/<int:attempt_id>/answers/<int:question_id>', methods=['PUT'])
@login_required
def api_save_answer(attempt_id, question_id):
    """Autosave one answer. Accepted as soon as it is queued."""
    student_id = require_student(current_user)
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or 'value' not in payload:
        raise ValidationError("Request body must be a JSON object with a 'value' field")

    result = ExamSessionService.record_answer(attempt_id, student_id, question_id, payload['value'])
    return jsonify(success_response(result)), 202


@blueprint.route('/api/attempts/<int:attempt_id>/navigate', methods=['POST'])
@login_required
def api_navigate(attempt_id):
    student_id = require_student(current_user)
    payload = request.get_json(silent=True) or {}
    result = ExamSessionService.navigate(attempt_id, student_id, payload.get('index'))
    return jsonify(success_response(result))


@blueprint.route('/api/attempts/<int:attempt_id>/submit', methods=['POST'])
@login_required
def api_submit(attempt_id):
    student_id = require_student(current_user)
    result = ExamSessionService.submit(attempt_id, student_id)
    message = 'Exam already submitted' if result['already_completed'] else 'Exam submitted'
    return jsonify(success_response(result, message=message))


@blueprint.route('/api/attempts/<int:attempt_id>/leave', methods=['POST'])
@login_required
def api_leave(attempt_id):
    student_id = require_student(current_user)
    return jsonify(success_response(ExamSessionService.leave(attempt_id, student_id)))


@blueprint.route('/api/attempts/<int:attempt_id>/result')
@login_required
def api_get_result(attempt_id):
    student_id = require_student(current_user)
    return jsonify(success_response(ExamSessionService.get_result(attempt_id, student_id)))


@blueprint.route('/api/exams/<int:exam_id>/attempts')
@login_required
def api_list_attempts(exam_id):
    """Attempt history of the caller for one exam."""
    student_id = require_student(current_user)
    return jsonify(success_response(ExamSessionService.list_history(exam_id, student_id)))
