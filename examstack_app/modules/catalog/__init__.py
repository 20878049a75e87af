"""Exam catalog: read-only exam and question lookups."""

module_metadata = {
    'name': 'Exam Catalog',
    'category': 'Core',
    'enabled': True
}
