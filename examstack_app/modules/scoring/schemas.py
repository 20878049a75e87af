"""
Typed payloads for the nine question kinds.

Questions store their type in a separate column and the payload as free JSON.
``parse_question_data`` joins the two into one member of the ``QuestionData``
discriminated union, so an unknown type or a malformed payload is rejected at
validation time instead of silently scoring zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = 'multiple_choice'
    TRUE_FALSE = 'true_false'
    FILL_BLANK = 'fill_blank'
    COMPLETE = 'complete'
    MATCHING = 'matching'
    PARAGRAPH = 'paragraph'
    TRANSLATE = 'translate'
    WRITTEN = 'written'
    POLL = 'poll'


class _Payload(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class MultipleChoiceData(_Payload):
    type: Literal['multiple_choice']
    options: List[str] = Field(default_factory=list)
    correct_answer: Optional[int] = Field(default=None, alias='correctAnswer')


class TrueFalseData(_Payload):
    type: Literal['true_false']
    correct_answer: Optional[bool] = Field(default=None, alias='correctAnswer')


class FillBlankData(_Payload):
    type: Literal['fill_blank']
    correct_answer: str = Field(default='', alias='correctAnswer')
    case_sensitive: bool = Field(default=False, alias='caseSensitive')


class CompleteData(_Payload):
    type: Literal['complete']
    correct_answer: str = Field(default='', alias='correctAnswer')
    case_sensitive: bool = Field(default=False, alias='caseSensitive')


class MatchingPair(_Payload):
    left: str = ''
    right: str = ''


class MatchingData(_Payload):
    type: Literal['matching']
    pairs: List[MatchingPair] = Field(default_factory=list)


class SubQuestion(_Payload):
    question: str = ''
    answer: str = ''


class ParagraphData(_Payload):
    type: Literal['paragraph']
    paragraph: str = ''
    sub_questions: List[SubQuestion] = Field(default_factory=list, alias='subQuestions')
    case_sensitive: bool = Field(default=False, alias='caseSensitive')


class TranslateData(_Payload):
    type: Literal['translate']
    direction: Literal['en_to_ar', 'ar_to_en'] = 'en_to_ar'
    correct_answer: str = Field(default='', alias='correctAnswer')


class WrittenData(_Payload):
    type: Literal['written']
    sample_answer: str = Field(default='', alias='sampleAnswer')


class PollData(_Payload):
    type: Literal['poll']
    options: List[str] = Field(default_factory=list)


QuestionData = Annotated[
    Union[
        MultipleChoiceData,
        TrueFalseData,
        FillBlankData,
        CompleteData,
        MatchingData,
        ParagraphData,
        TranslateData,
        WrittenData,
        PollData,
    ],
    Field(discriminator='type'),
]

_question_data_adapter = TypeAdapter(QuestionData)


def parse_question_data(question_type: str, question_data: Optional[Dict[str, Any]]):
    """Validate a stored payload against its declared type.

    Raises:
        pydantic.ValidationError: unknown type or malformed payload.
    """
    payload = dict(question_data or {})
    payload['type'] = question_type
    return _question_data_adapter.validate_python(payload)


@dataclass
class QuestionScore:
    question_id: int
    earned: float
    max_points: int
    answered: bool
    requires_manual_review: bool = False


@dataclass
class AttemptScore:
    total_points: int
    earned_points: float
    percentage: float
    breakdown: List[QuestionScore] = field(default_factory=list)

    @property
    def display_percentage(self) -> float:
        return round(self.percentage, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_points': self.total_points,
            'earned_points': self.earned_points,
            'percentage': self.percentage,
            'display_percentage': self.display_percentage,
            'breakdown': [
                {
                    'question_id': item.question_id,
                    'earned': item.earned,
                    'max_points': item.max_points,
                    'answered': item.answered,
                    'requires_manual_review': item.requires_manual_review,
                }
                for item in self.breakdown
            ],
        }
