"""Opaque principal supplied by the upstream identity provider."""

from __future__ import annotations

from typing import Optional

from flask import current_app, g, jsonify
from flask_login import UserMixin

from examstack_app.core.error_handlers import AuthorizationError

ROLE_STUDENT = 'student'
ROLE_TEACHER = 'teacher'
KNOWN_ROLES = (ROLE_STUDENT, ROLE_TEACHER)


class Principal(UserMixin):
    """Identity id and role as handed over by the provider; never interpreted."""

    def __init__(self, identity_id: str, role: str = ROLE_STUDENT):
        self.identity_id = str(identity_id)
        self.role = role

    def get_id(self) -> str:
        return self.identity_id

    @property
    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT

    def __repr__(self):
        return f"<Principal {self.identity_id} ({self.role})>"


def load_principal_from_request(request) -> Optional[Principal]:
    """Flask-Login request loader: build the principal from identity headers."""
    id_header = current_app.config.get('IDENTITY_ID_HEADER', 'X-Identity-Id')
    role_header = current_app.config.get('IDENTITY_ROLE_HEADER', 'X-Identity-Role')

    identity_id = (request.headers.get(id_header) or '').strip()
    if not identity_id:
        return None

    role = (request.headers.get(role_header) or ROLE_STUDENT).strip().lower()
    if role not in KNOWN_ROLES:
        current_app.logger.warning(f"[IDENTITY] Unknown role '{role}' for principal {identity_id}")
        return None
    return Principal(identity_id, role)


def require_student(principal) -> str:
    """Return the student id or raise AuthorizationError for other roles."""
    if not getattr(principal, 'is_student', False):
        raise AuthorizationError("Student access required")
    return principal.get_id()


def unauthorized_response():
    return jsonify({
        'success': False,
        'message': 'Authentication required',
        'code': 'UNAUTHENTICATED',
    }), 401


def init_identity(app, login_manager) -> None:
    login_manager.request_loader(load_principal_from_request)
    login_manager.unauthorized_handler(unauthorized_response)

    @app.before_request
    def _reset_principal():
        # principals come from headers on every request, never from a reused context
        g.pop('_login_user', None)
