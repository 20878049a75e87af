# File: examstack_app/core/config.py
# Core Infrastructure Layer: application configuration

import os
from dotenv import load_dotenv

load_dotenv()

# examstack_app/core/ -> project root is two levels up
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))

DATABASE_PATH = os.path.join(BASE_DIR, "database", "examstack.db")


def _env_int(key, default):
    try:
        return int(os.environ.get(key, default))
    except (TypeError, ValueError):
        return default


def _env_float(key, default):
    try:
        return float(os.environ.get(key, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Cấu hình ứng dụng ExamStack."""

    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        # Fallback for development, though env is preferred
        SECRET_KEY = 'dev-secret-key-replace-in-production'

    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI') or f'sqlite:///{DATABASE_PATH}'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'connect_args': {'timeout': 30},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity is supplied by an upstream provider as opaque headers
    IDENTITY_ID_HEADER = os.environ.get('IDENTITY_ID_HEADER', 'X-Identity-Id')
    IDENTITY_ROLE_HEADER = os.environ.get('IDENTITY_ROLE_HEADER', 'X-Identity-Role')

    # Autosave write queue
    ANSWER_STORE_MAX_RETRIES = _env_int('ANSWER_STORE_MAX_RETRIES', 5)
    ANSWER_STORE_RETRY_DELAY = _env_float('ANSWER_STORE_RETRY_DELAY', 0.1)
    ANSWER_STORE_FLUSH_TIMEOUT = _env_float('ANSWER_STORE_FLUSH_TIMEOUT', 10.0)

    # Deadline timer
    DEADLINE_TICK_SECONDS = _env_int('DEADLINE_TICK_SECONDS', 1)
    SCHEDULER_API_ENABLED = False
    SCHEDULER_AUTOSTART = True

    SYSTEM_TIMEZONE = os.environ.get('SYSTEM_TIMEZONE', 'UTC')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(BASE_DIR, 'logs')
    LOG_JSON = os.environ.get('LOG_JSON', '0').lower() in ('1', 'true', 'yes')

    @classmethod
    def init_app(cls, app):
        """Khởi tạo các thư mục cần thiết."""
        uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
        if uri == f'sqlite:///{DATABASE_PATH}':
            os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True)
        os.makedirs(app.config.get('LOG_DIR') or cls.LOG_DIR, exist_ok=True)
