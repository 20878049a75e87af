from conftest import identity_headers

from examstack_app.modules.attempts.services.answer_store import answer_store


def join(client, exam, headers):
    return client.post(f'/exam/api/join/{exam.share_link}', headers=headers)


def test_join_creates_then_resumes(client, make_exam, student_headers):
    exam = make_exam(time_limit=10)

    created = join(client, exam, student_headers)
    assert created.status_code == 201
    body = created.get_json()['data']
    assert body['resumed'] is False
    assert body['attempt']['attempt_number'] == 1
    assert body['remaining_seconds'] <= 600
    assert body['countdown'] is not None
    assert body['current_index'] == 0
    assert body['progress'] == 0.0
    # answer keys are never sent to the learner
    assert all('correctAnswer' not in q['question_data'] for q in body['questions'])

    resumed = join(client, exam, student_headers)
    assert resumed.status_code == 200
    assert resumed.get_json()['data']['resumed'] is True
    assert resumed.get_json()['data']['attempt']['id'] == body['attempt']['id']


def test_unknown_share_token_is_404(client, app, student_headers):
    response = client.post('/exam/api/join/does-not-exist', headers=student_headers)

    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'


def test_missing_identity_is_401(client, make_exam):
    exam = make_exam()

    response = client.post(f'/exam/api/join/{exam.share_link}')

    assert response.status_code == 401
    assert response.get_json()['code'] == 'UNAUTHENTICATED'


def test_teacher_cannot_take_exam(client, make_exam):
    exam = make_exam()

    response = join(client, exam, identity_headers('teacher-1', role='teacher'))

    assert response.status_code == 403
    assert response.get_json()['code'] == 'UNAUTHORIZED'


def test_answer_navigate_submit_flow(client, make_exam, student_headers):
    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    mc, tf, fill, written = exam.questions

    for question, value in [(mc, 1), (tf, False), (fill, 'PARIS')]:
        response = client.put(
            f'/exam/api/attempts/{attempt_id}/answers/{question.id}',
            json={'value': value},
            headers=student_headers,
        )
        assert response.status_code == 202
        assert response.get_json()['data']['queued'] is True
    answer_store.flush(attempt_id)

    state = client.get(f'/exam/api/attempts/{attempt_id}/state', headers=student_headers).get_json()['data']
    assert state['answered_count'] == 3
    assert state['answered'][str(written.id)] is False
    assert state['progress'] == 75.0

    moved = client.post(f'/exam/api/attempts/{attempt_id}/navigate', json={'index': 2}, headers=student_headers)
    assert moved.status_code == 200
    state = client.get(f'/exam/api/attempts/{attempt_id}/state', headers=student_headers).get_json()['data']
    assert state['current_index'] == 2

    submitted = client.post(f'/exam/api/attempts/{attempt_id}/submit', headers=student_headers)
    assert submitted.status_code == 200
    result = submitted.get_json()['data']
    # 2 (mc) + 0 (tf) + 1 (fill) of 8
    assert result['earned_points'] == 3.0
    assert result['total_points'] == 8
    assert result['display_score'] == 37.5
    assert result['already_completed'] is False

    again = client.post(f'/exam/api/attempts/{attempt_id}/submit', headers=student_headers)
    assert again.get_json()['data']['already_completed'] is True
    assert again.get_json()['message'] == 'Exam already submitted'

    fetched = client.get(f'/exam/api/attempts/{attempt_id}/result', headers=student_headers)
    assert fetched.status_code == 200
    assert fetched.get_json()['data']['display_score'] == 37.5
    assert fetched.get_json()['data']['earned_points'] == 3.0


def test_answer_after_submit_is_409(client, make_exam, student_headers):
    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    client.post(f'/exam/api/attempts/{attempt_id}/submit', headers=student_headers)

    response = client.put(
        f'/exam/api/attempts/{attempt_id}/answers/{exam.questions[0].id}',
        json={'value': 1},
        headers=student_headers,
    )

    assert response.status_code == 409
    assert response.get_json()['code'] == 'ATTEMPT_COMPLETED'


def test_answer_body_is_validated(client, make_exam, student_headers):
    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']

    response = client.put(
        f'/exam/api/attempts/{attempt_id}/answers/{exam.questions[0].id}',
        json={'answer': 1},
        headers=student_headers,
    )

    assert response.status_code == 400


def test_question_from_other_exam_is_404(client, make_exam, student_headers):
    exam = make_exam(title='First')
    other = make_exam(title='Second')
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']

    response = client.put(
        f'/exam/api/attempts/{attempt_id}/answers/{other.questions[0].id}',
        json={'value': 1},
        headers=student_headers,
    )

    assert response.status_code == 404


def test_navigate_out_of_range(client, make_exam, student_headers):
    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']

    response = client.post(f'/exam/api/attempts/{attempt_id}/navigate', json={'index': 99}, headers=student_headers)

    assert response.status_code == 400


def test_other_student_cannot_read_attempt(client, make_exam, student_headers):
    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']

    response = client.get(f'/exam/api/attempts/{attempt_id}/state', headers=identity_headers('student-2'))

    assert response.status_code == 404


def test_attempt_limit_is_403(client, make_exam, student_headers):
    exam = make_exam(attempt_limit=1)
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    client.post(f'/exam/api/attempts/{attempt_id}/submit', headers=student_headers)

    response = join(client, exam, student_headers)

    assert response.status_code == 403
    assert response.get_json()['code'] == 'ATTEMPT_LIMIT_EXCEEDED'


def test_leave_then_rejoin_keeps_answers(client, make_exam, student_headers):
    exam = make_exam(time_limit=30)
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    question = exam.questions[2]
    client.put(
        f'/exam/api/attempts/{attempt_id}/answers/{question.id}',
        json={'value': 'Paris'},
        headers=student_headers,
    )

    left = client.post(f'/exam/api/attempts/{attempt_id}/leave', headers=student_headers)
    assert left.status_code == 200
    assert left.get_json()['data']['is_completed'] is False
    answer_store.flush(attempt_id)

    state = join(client, exam, student_headers).get_json()['data']
    assert state['resumed'] is True
    assert state['answers'][str(question.id)] == 'Paris'
    assert state['answered'][str(question.id)] is True


def test_result_before_submit_is_400(client, make_exam, student_headers):
    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']

    response = client.get(f'/exam/api/attempts/{attempt_id}/result', headers=student_headers)

    assert response.status_code == 400


def test_attempt_history(client, make_exam, student_headers):
    exam = make_exam(attempt_limit=2)
    first = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    client.post(f'/exam/api/attempts/{first}/submit', headers=student_headers)
    join(client, exam, student_headers)

    response = client.get(f'/exam/api/exams/{exam.id}/attempts', headers=student_headers)

    data = response.get_json()['data']
    assert response.status_code == 200
    assert [a['attempt_number'] for a in data['attempts']] == [2, 1]
    assert data['attempts_remaining'] == 1


def test_submission_failure_is_retryable_503(client, make_exam, student_headers, monkeypatch):
    from sqlalchemy.exc import OperationalError
    from examstack_app.modules.attempts.services import submission_service

    exam = make_exam()
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']

    def failing_commit(session, work=None, **kwargs):
        raise OperationalError('UPDATE exam_attempts', {}, Exception('disk I/O error'))

    monkeypatch.setattr(submission_service, 'safe_commit', failing_commit)

    response = client.post(f'/exam/api/attempts/{attempt_id}/submit', headers=student_headers)

    assert response.status_code == 503
    body = response.get_json()
    assert body['code'] == 'SUBMISSION_FAILED'
    assert body['details']['retryable'] is True


def test_unknown_api_route_is_json_404(client, app):
    response = client.get('/exam/api/nope')

    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'


def test_state_renders_local_times(client, app, make_exam, student_headers):
    app.config['SYSTEM_TIMEZONE'] = 'Asia/Ho_Chi_Minh'
    exam = make_exam()

    state = join(client, exam, student_headers).get_json()['data']

    assert state['local_times']['start_time'].endswith('+07:00')
    assert state['local_times']['end_time'] is None
    assert state['attempt']['start_time'].endswith('+00:00')


def test_navigate_after_leave_requires_rejoin(client, make_exam, student_headers):
    exam = make_exam(time_limit=5)
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    client.post(f'/exam/api/attempts/{attempt_id}/leave', headers=student_headers)

    response = client.post(f'/exam/api/attempts/{attempt_id}/navigate', json={'index': 1}, headers=student_headers)
    assert response.status_code == 400

    state = client.get(f'/exam/api/attempts/{attempt_id}/state', headers=student_headers).get_json()['data']
    assert state['session_active'] is False


def test_answer_past_deadline_is_409(client, make_exam, student_headers):
    from datetime import timedelta
    from sqlalchemy import update
    from examstack_app.models import ExamAttempt, db
    from examstack_app.utils.time_utils import utcnow

    exam = make_exam(time_limit=1)
    attempt_id = join(client, exam, student_headers).get_json()['data']['attempt']['id']
    client.post(f'/exam/api/attempts/{attempt_id}/leave', headers=student_headers)
    db.session.execute(
        update(ExamAttempt).where(ExamAttempt.id == attempt_id).values(start_time=utcnow() - timedelta(minutes=10))
    )
    db.session.commit()

    response = client.put(
        f'/exam/api/attempts/{attempt_id}/answers/{exam.questions[0].id}',
        json={'value': 1},
        headers=student_headers,
    )

    assert response.status_code == 409
    result = client.get(f'/exam/api/attempts/{attempt_id}/result', headers=student_headers).get_json()['data']
    assert result['reason'] == 'time_expired'
    assert result['earned_points'] == 0.0
