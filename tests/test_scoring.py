"""
Tests for the Scoring Engine

Tests cover:
- Per-type grading rules for all nine question kinds
- Malformed answers scoring zero instead of raising
- Aggregate percentage and the zero-point exam
- Payload validation of the discriminated union
"""

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from examstack_app.modules.scoring.interface import ScoringInterface
from examstack_app.modules.scoring.schemas import MatchingData, QuestionType


def make_question(question_type, data, points=1, question_id=1):
    return SimpleNamespace(
        id=question_id,
        question_type=question_type,
        question_data=data,
        points=points,
    )


class TestMultipleChoice:
    """Submitted option index against correctAnswer."""

    def setup_method(self):
        self.question = make_question('multiple_choice', {'options': ['A', 'B', 'C'], 'correctAnswer': 1}, points=2)

    def test_correct_index_gives_full_points(self):
        assert ScoringInterface.score_question(self.question, 1) == 2.0

    def test_wrong_index_gives_zero(self):
        assert ScoringInterface.score_question(self.question, 0) == 0.0

    def test_string_index_is_malformed(self):
        assert ScoringInterface.score_question(self.question, '1') == 0.0

    def test_boolean_is_not_an_index(self):
        assert ScoringInterface.score_question(self.question, True) == 0.0


class TestTrueFalse:

    def test_exact_match(self):
        question = make_question('true_false', {'correctAnswer': True})
        assert ScoringInterface.score_question(question, True) == 1.0
        assert ScoringInterface.score_question(question, False) == 0.0

    def test_string_answer_scores_zero(self):
        question = make_question('true_false', {'correctAnswer': False})
        assert ScoringInterface.score_question(question, 'false') == 0.0


class TestTextAnswers:
    """fill_blank and complete share the case handling."""

    def test_case_insensitive_by_default(self):
        question = make_question('fill_blank', {'correctAnswer': 'Paris'})
        assert ScoringInterface.score_question(question, 'paris') == 1.0
        assert ScoringInterface.score_question(question, 'PARIS') == 1.0

    def test_case_sensitive_rejects_other_case(self):
        question = make_question('fill_blank', {'correctAnswer': 'Paris', 'caseSensitive': True})
        assert ScoringInterface.score_question(question, 'paris') == 0.0
        assert ScoringInterface.score_question(question, 'Paris') == 1.0

    def test_complete_accepts_numeric_answer(self):
        question = make_question('complete', {'correctAnswer': '42'}, points=3)
        assert ScoringInterface.score_question(question, 42) == 3.0

    def test_list_answer_is_malformed(self):
        question = make_question('complete', {'correctAnswer': 'be'})
        assert ScoringInterface.score_question(question, ['be']) == 0.0


class TestMatching:
    """Left item i is correct when it points at right item i."""

    def setup_method(self):
        self.question = make_question('matching', {'pairs': [
            {'left': 'Japan', 'right': 'Tokyo'},
            {'left': 'Egypt', 'right': 'Cairo'},
            {'left': 'Peru', 'right': 'Lima'},
        ]}, points=3)

    def test_all_pairs_correct(self):
        assert ScoringInterface.score_question(self.question, {'0': 0, '1': 1, '2': 2}) == pytest.approx(3.0)

    def test_partial_credit_per_pair(self):
        assert ScoringInterface.score_question(self.question, {'0': 0, '1': 2, '2': 2}) == pytest.approx(2.0)

    def test_integer_keys_are_accepted(self):
        assert ScoringInterface.score_question(self.question, {0: 0}) == pytest.approx(1.0)

    def test_non_mapping_answer_scores_zero(self):
        assert ScoringInterface.score_question(self.question, [0, 1, 2]) == 0.0

    def test_out_of_range_keys_are_ignored(self):
        assert ScoringInterface.score_question(self.question, {'5': 5, 'x': 0}) == 0.0


class TestParagraph:

    def setup_method(self):
        self.data = {
            'paragraph': 'Amira bought oranges.',
            'subQuestions': [
                {'question': 'Who?', 'answer': 'Amira'},
                {'question': 'What?', 'answer': 'oranges'},
            ],
        }

    def test_trimmed_case_insensitive_match(self):
        question = make_question('paragraph', self.data, points=2)
        assert ScoringInterface.score_question(question, [' amira ', 'Oranges']) == pytest.approx(2.0)

    def test_case_sensitive_partial_credit(self):
        question = make_question('paragraph', dict(self.data, caseSensitive=True), points=2)
        assert ScoringInterface.score_question(question, [' Amira ', 'Oranges']) == pytest.approx(1.0)

    def test_missing_sub_answers_score_zero(self):
        question = make_question('paragraph', self.data, points=2)
        assert ScoringInterface.score_question(question, ['Amira']) == pytest.approx(1.0)

    def test_string_answer_is_malformed(self):
        question = make_question('paragraph', self.data, points=2)
        assert ScoringInterface.score_question(question, 'Amira, oranges') == 0.0


class TestManualReviewTypes:
    """translate, written and poll have no automatic credit."""

    @pytest.mark.parametrize('question_type, data, answer', [
        ('translate', {'direction': 'en_to_ar', 'correctAnswer': 'مرحبا'}, 'مرحبا'),
        ('written', {'sampleAnswer': 'A sample'}, 'A sample'),
        ('poll', {'options': ['Yes', 'No']}, 0),
    ])
    def test_zero_credit_and_flagged(self, question_type, data, answer):
        result = ScoringInterface.evaluate_question(make_question(question_type, data, points=5), answer)
        assert result.earned == 0.0
        assert result.answered is True
        assert result.requires_manual_review is True


class TestUnansweredAndInvalid:

    @pytest.mark.parametrize('answer', [None, ''])
    def test_absent_answer(self, answer):
        question = make_question('fill_blank', {'correctAnswer': ''})
        result = ScoringInterface.evaluate_question(question, answer)
        assert result.earned == 0.0
        assert result.answered is False

    def test_invalid_payload_scores_zero(self):
        question = make_question('multiple_choice', {'correctAnswer': 'not-an-index'})
        assert ScoringInterface.score_question(question, 1) == 0.0

    def test_unknown_type_scores_zero(self):
        question = make_question('essay', {})
        assert ScoringInterface.score_question(question, 'anything') == 0.0

    def test_unknown_type_fails_validation(self):
        with pytest.raises(ValidationError):
            ScoringInterface.validate_payload('essay', {})

    def test_payload_aliases_parse(self):
        data = ScoringInterface.validate_payload('matching', {'pairs': [{'left': 'a', 'right': 'b'}]})
        assert isinstance(data, MatchingData)
        assert len(data.pairs) == 1

    def test_every_type_has_a_payload_model(self):
        for question_type in QuestionType:
            ScoringInterface.validate_payload(question_type.value, {})


class TestScoreAttempt:

    def test_zero_total_points_scores_zero(self):
        result = ScoringInterface.score_attempt([], {'1': 'x'})
        assert result.total_points == 0
        assert result.percentage == 0.0

    def test_percentage_keeps_full_precision(self):
        questions = [
            make_question('multiple_choice', {'correctAnswer': 1}, points=2, question_id=1),
            make_question('fill_blank', {'correctAnswer': 'Paris'}, points=1, question_id=2),
            make_question('written', {}, points=4, question_id=3),
        ]
        result = ScoringInterface.score_attempt(questions, {'1': 1, '2': 'Rome', '3': 'essay'})

        assert result.total_points == 7
        assert result.earned_points == pytest.approx(2.0)
        assert result.percentage == pytest.approx(200.0 / 7)
        assert result.display_percentage == 28.6
        assert [item.requires_manual_review for item in result.breakdown] == [False, False, True]

    def test_integer_answer_keys(self):
        questions = [make_question('true_false', {'correctAnswer': True}, points=1, question_id=9)]
        assert ScoringInterface.score_attempt(questions, {9: True}).percentage == pytest.approx(100.0)

    def test_no_answers(self):
        questions = [make_question('true_false', {'correctAnswer': True}, points=1)]
        result = ScoringInterface.score_attempt(questions, None)
        assert result.percentage == 0.0
        assert result.breakdown[0].answered is False
