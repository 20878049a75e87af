"""
Central Signal Registry for the attempt lifecycle.

Uses Flask's built-in blinker integration so a push transport (websocket,
SSE, ...) can subscribe to attempt state without the core knowing about it.

Usage:
    # Publisher (sender)
    from examstack_app.core.signals import timer_ticked
    timer_ticked.send(None, attempt_id=1, remaining_seconds=59)

    # Subscriber (receiver) - in module's events.py
    @timer_ticked.connect
    def on_timer_ticked(sender, **kwargs):
        ...
"""
from blinker import Namespace

attempt_signals = Namespace()

# Signal: Fired when an attempt is opened for a session (new or resumed)
# Payload: attempt_id, exam_id, student_id, attempt_number, resumed (bool)
attempt_started = attempt_signals.signal('attempt_started')

# Signal: Fired by the autosave writer after a batch of answers is durable
# Payload: attempt_id, question_ids (list of str)
answer_saved = attempt_signals.signal('answer_saved')

# Signal: Fired once per deadline tick
# Payload: attempt_id, remaining_seconds
timer_ticked = attempt_signals.signal('timer_ticked')

# Signal: Fired exactly once when an attempt is finalized
# Payload: attempt_id, exam_id, student_id, reason, score, total_points
attempt_submitted = attempt_signals.signal('attempt_submitted')
