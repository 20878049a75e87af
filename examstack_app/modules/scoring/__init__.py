"""Scoring module: type-specific, side-effect free grading of exam answers."""

module_metadata = {
    'name': 'Scoring Engine',
    'category': 'Core',
    'enabled': True
}
