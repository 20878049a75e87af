from flask import current_app

from examstack_app.core.signals import attempt_submitted

from .services.session_service import session_registry


@attempt_submitted.connect
def close_session_on_submit(sender, **kwargs):
    """
    Drop the session context of a finalized attempt, whichever path finalized it.
    """
    attempt_id = kwargs.get('attempt_id')
    if session_registry.drop(attempt_id) is not None:
        current_app.logger.info(
            f"[SESSION] Closed session of attempt {attempt_id} ({kwargs.get('reason')})"
        )
