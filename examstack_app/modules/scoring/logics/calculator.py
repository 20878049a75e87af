"""
Scoring engine: pure mapping from (question, submitted answer) to points.

Every ``QuestionData`` variant has exactly one rule in ``_RULES``; the table is
checked against the union at import so a new question kind without a rule
fails loudly instead of scoring zero.
"""

from __future__ import annotations

import typing
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from pydantic import ValidationError as PayloadValidationError

from examstack_app.core.error_handlers import AnswerValidationError
from examstack_app.core.logging_config import get_logger
from ..schemas import (
    AttemptScore,
    CompleteData,
    FillBlankData,
    MatchingData,
    MultipleChoiceData,
    ParagraphData,
    PollData,
    QuestionData,
    QuestionScore,
    QuestionType,
    TranslateData,
    TrueFalseData,
    WrittenData,
    parse_question_data,
)

logger = get_logger('scoring')


def is_answered(answer: Any) -> bool:
    """An answer counts as present unless it is missing, null or an empty string."""
    return answer is not None and answer != ''


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _lookup_answer(answers: Mapping, question_id: int) -> Any:
    # JSON round-trips turn integer keys into strings
    if str(question_id) in answers:
        return answers[str(question_id)]
    return answers.get(question_id)


# ── Per-type rules ───────────────────────────────────────────────────
# Signature: (data, answer, points, question_id) -> points earned.
# Raise AnswerValidationError for an answer of the wrong shape.


def _score_multiple_choice(data: MultipleChoiceData, answer, points, question_id) -> float:
    if not _is_int(answer):
        raise AnswerValidationError(question_id, 'option index', answer)
    if data.correct_answer is not None and answer == data.correct_answer:
        return float(points)
    return 0.0


def _score_true_false(data: TrueFalseData, answer, points, question_id) -> float:
    if not isinstance(answer, bool):
        raise AnswerValidationError(question_id, 'boolean', answer)
    if data.correct_answer is not None and answer is data.correct_answer:
        return float(points)
    return 0.0


def _score_text(data, answer, points, question_id) -> float:
    """fill_blank / complete: case-sensitive only when the question asks for it."""
    if data.case_sensitive:
        if not isinstance(answer, str):
            raise AnswerValidationError(question_id, 'string', answer)
        return float(points) if answer == data.correct_answer else 0.0

    if isinstance(answer, (str, int, float)):
        submitted = str(answer).lower()
    else:
        raise AnswerValidationError(question_id, 'string', answer)
    return float(points) if submitted == (data.correct_answer or '').lower() else 0.0


def _score_matching(data: MatchingData, answer, points, question_id) -> float:
    """Left item ``i`` is matched correctly when it points at right item ``i``."""
    pair_count = len(data.pairs)
    if pair_count == 0:
        return 0.0
    if not isinstance(answer, Mapping):
        raise AnswerValidationError(question_id, 'mapping of left to right indexes', answer)

    correct = 0
    for key, value in answer.items():
        try:
            left = int(key)
        except (TypeError, ValueError):
            continue
        if 0 <= left < pair_count and _is_int(value) and value == left:
            correct += 1
    return points * correct / pair_count


def _score_paragraph(data: ParagraphData, answer, points, question_id) -> float:
    sub_count = len(data.sub_questions)
    if sub_count == 0:
        return 0.0
    if not isinstance(answer, (list, tuple)):
        raise AnswerValidationError(question_id, 'list of sub-answers', answer)

    correct = 0
    for index, sub in enumerate(data.sub_questions):
        if index >= len(answer) or not isinstance(answer[index], str):
            continue
        expected = sub.answer.strip()
        submitted = answer[index].strip()
        if not expected:
            continue
        if not data.case_sensitive:
            expected, submitted = expected.lower(), submitted.lower()
        if submitted == expected:
            correct += 1
    return points * correct / sub_count


def _no_automatic_credit(data, answer, points, question_id) -> float:
    # translate / written / poll have no automated grading rule
    return 0.0


_RULES: Dict[type, Tuple[Callable[..., float], bool]] = {
    MultipleChoiceData: (_score_multiple_choice, False),
    TrueFalseData: (_score_true_false, False),
    FillBlankData: (_score_text, False),
    CompleteData: (_score_text, False),
    MatchingData: (_score_matching, False),
    ParagraphData: (_score_paragraph, False),
    TranslateData: (_no_automatic_credit, True),
    WrittenData: (_no_automatic_credit, True),
    PollData: (_no_automatic_credit, True),
}


def _check_rules_cover_all_types() -> None:
    union = typing.get_args(QuestionData)[0]
    variants = set(typing.get_args(union))
    if variants != set(_RULES):
        missing = sorted(cls.__name__ for cls in variants - set(_RULES))
        raise RuntimeError(f"Scoring rules missing for question payloads: {missing}")

    declared = set()
    for cls in variants:
        declared.update(typing.get_args(cls.model_fields['type'].annotation))
    expected = {member.value for member in QuestionType}
    if declared != expected:
        raise RuntimeError(f"Question payload types {sorted(declared)} do not match {sorted(expected)}")


_check_rules_cover_all_types()


# ── Public API ───────────────────────────────────────────────────────


def evaluate(data, answer: Any, points: int, question_id: Optional[int] = None) -> QuestionScore:
    """Score an already-validated payload. Malformed answers earn zero."""
    rule, manual = _RULES[type(data)]
    if not is_answered(answer):
        return QuestionScore(question_id, 0.0, points, False, manual)

    try:
        earned = rule(data, answer, points, question_id)
    except AnswerValidationError as exc:
        logger.warning(f"[SCORING] {exc.message}; scoring as zero credit")
        earned = 0.0
    return QuestionScore(question_id, float(earned), points, True, manual)


def evaluate_question(question, answer: Any) -> QuestionScore:
    """Score a catalog question (``question_type``, ``question_data``, ``points``)."""
    points = int(question.points or 0)
    try:
        data = parse_question_data(question.question_type, question.question_data)
    except PayloadValidationError as exc:
        logger.error(
            f"[SCORING] Question {question.id} has an invalid '{question.question_type}' payload: {exc}"
        )
        return QuestionScore(question.id, 0.0, points, is_answered(answer))
    return evaluate(data, answer, points, question.id)


def score_question(question, answer: Any) -> float:
    """Points earned for one question."""
    return evaluate_question(question, answer).earned


def score_attempt(questions: Iterable, answers: Optional[Mapping]) -> AttemptScore:
    """
    Aggregate score for an attempt.

    total_points is the sum of all question points; the percentage is 0 when
    the exam carries no points at all.
    """
    answers = answers or {}
    questions = list(questions)

    breakdown = [evaluate_question(q, _lookup_answer(answers, q.id)) for q in questions]
    total_points = sum(int(q.points or 0) for q in questions)
    earned_points = sum(item.earned for item in breakdown)
    percentage = 0.0 if total_points == 0 else 100.0 * earned_points / total_points

    return AttemptScore(
        total_points=total_points,
        earned_points=earned_points,
        percentage=percentage,
        breakdown=breakdown,
    )
