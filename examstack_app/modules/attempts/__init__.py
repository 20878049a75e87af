from flask import Blueprint

blueprint = Blueprint('attempts', __name__)

# Module Metadata
module_metadata = {
    'name': 'Exam Attempts',
    'category': 'Core',
    'url_prefix': '/exam',
    'enabled': True
}

def setup_module(app):
    """Register routes and signal receivers for the attempts module."""
    from . import routes
    from . import events
