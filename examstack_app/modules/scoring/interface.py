# modules/scoring/interface.py
from typing import Any, Iterable, Mapping, Optional

from .schemas import AttemptScore, QuestionScore


class ScoringInterface:
    """
    Single entry point of the scoring module for other modules.
    Scoring is pure: no database access, no side effects.
    """

    @staticmethod
    def score_question(question, answer: Any) -> float:
        """Points earned for one question and its submitted answer."""
        from .logics.calculator import score_question
        return score_question(question, answer)

    @staticmethod
    def evaluate_question(question, answer: Any) -> QuestionScore:
        """Per-question breakdown (earned, max points, answered, manual review flag)."""
        from .logics.calculator import evaluate_question
        return evaluate_question(question, answer)

    @staticmethod
    def score_attempt(questions: Iterable, answers: Optional[Mapping]) -> AttemptScore:
        """Aggregate total points, earned points and percentage for an attempt."""
        from .logics.calculator import score_attempt
        return score_attempt(questions, answers)

    @staticmethod
    def validate_payload(question_type: str, question_data: Optional[Mapping]):
        """Parse a question payload into its typed variant (raises pydantic.ValidationError)."""
        from .schemas import parse_question_data
        return parse_question_data(question_type, question_data)

    @staticmethod
    def is_answered(answer: Any) -> bool:
        from .logics.calculator import is_answered
        return is_answered(answer)
