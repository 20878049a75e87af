"""
Catalog Interface
=================
Read-only access to Exam and Question records for the attempt lifecycle.
"""

from .services.catalog_service import CatalogService


class CatalogInterface:
    """Public interface for catalog lookups."""

    @staticmethod
    def get_exam(exam_id, require_active=True):
        """Exam by primary key. Raises NotFoundError when missing (or inactive)."""
        return CatalogService.get_exam(exam_id, require_active=require_active)

    @staticmethod
    def get_exam_by_share_token(share_token):
        """Active exam by share token. Raises NotFoundError otherwise."""
        return CatalogService.get_exam_by_share_token(share_token)

    @staticmethod
    def get_questions(exam_id):
        """Questions of an exam ordered by ``order_index``."""
        return CatalogService.get_questions(exam_id)

    @staticmethod
    def create_exam(teacher_id, title, questions, **options):
        return CatalogService.create_exam(teacher_id, title, questions, **options)
