import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from examstack_app import create_app, db
from examstack_app.core.config import Config
from examstack_app.core.extensions import scheduler
from examstack_app.modules.attempts.services.answer_store import answer_store
from examstack_app.modules.attempts.services.session_service import session_registry
from examstack_app.modules.catalog.interface import CatalogInterface

STUDENT_ID = 'student-1'


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        # File database: autosave writer threads open their own connections
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'examstack-test.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {
            'connect_args': {'check_same_thread': False, 'timeout': 30}
        }
        WTF_CSRF_ENABLED = False
        SCHEDULER_AUTOSTART = False
        ANSWER_STORE_MAX_RETRIES = 3
        ANSWER_STORE_RETRY_DELAY = 0.01
        ANSWER_STORE_FLUSH_TIMEOUT = 5.0
        LOG_DIR = str(tmp_path / 'logs')

    app = create_app(TestConfig)
    with app.app_context():
        yield app
        answer_store.shutdown()
        if scheduler.running:
            scheduler.shutdown()
        scheduler.remove_all_jobs()
        session_registry.clear()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def identity_headers(identity_id=STUDENT_ID, role='student'):
    return {'X-Identity-Id': identity_id, 'X-Identity-Role': role}


@pytest.fixture
def student_headers():
    return identity_headers()


MIXED_QUESTIONS = [
    {
        'question_type': 'multiple_choice',
        'question_text': 'Pick B',
        'question_data': {'options': ['A', 'B', 'C'], 'correctAnswer': 1},
        'points': 2,
    },
    {
        'question_type': 'true_false',
        'question_text': 'The sky is blue.',
        'question_data': {'correctAnswer': True},
        'points': 1,
    },
    {
        'question_type': 'fill_blank',
        'question_text': 'Capital of France',
        'question_data': {'correctAnswer': 'Paris'},
        'points': 1,
    },
    {
        'question_type': 'written',
        'question_text': 'Describe your weekend.',
        'question_data': {'sampleAnswer': 'I went hiking.'},
        'points': 4,
    },
]


@pytest.fixture
def make_exam(app):
    """Factory for exams; defaults to an untimed single-attempt exam."""

    def _make(questions=None, **options):
        options.setdefault('attempt_limit', 1)
        return CatalogInterface.create_exam(
            teacher_id='teacher-1',
            title=options.pop('title', 'Sample exam'),
            questions=MIXED_QUESTIONS if questions is None else questions,
            **options
        )

    return _make
