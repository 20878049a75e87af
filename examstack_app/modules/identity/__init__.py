"""Identity module: opaque principals loaded per request."""

from .principal import Principal, init_identity, require_student

module_metadata = {
    'name': 'Identity',
    'category': 'Core',
    'enabled': True
}

__all__ = ['Principal', 'init_identity', 'require_student']
