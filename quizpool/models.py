import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class QuestionType(str, Enum):
    MCQ = 'mcq'
    OX = 'ox'
    SHORT = 'short'
    FILL = 'fill'


class SourceType(str, Enum):
    AI = 'ai'
    TRANSFORMED = 'transformed'


class TransformType(str, Enum):
    SWAP_ANSWER = 'swap_answer'
    SHIFT_BLANK = 'shift_blank'
    NEGATE = 'negate'
    SHUFFLE_OPTIONS = 'shuffle_options'
    MCQ_TO_OX = 'mcq_to_ox'


class Difficulty(str, Enum):
    EASY = 'easy'
    MEDIUM = 'medium'
    HARD = 'hard'


OX_OPTIONS = ['O', 'X']


def new_id() -> str:
    return uuid.uuid4().hex


class Question(BaseModel):
    id: str = Field(default_factory=new_id)
    type: QuestionType
    question_text: str
    options: Optional[List[str]] = None
    # index 0 is the canonical answer, the rest are accepted alternates
    correct_answers: List[str] = Field(..., min_length=1)
    explanation: Optional[str] = None
    source_type: SourceType = SourceType.AI
    transform_type: Optional[TransformType] = None
    original_id: Optional[str] = None

    @field_validator('question_text')
    def question_text_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('question_text must not be empty')
        return v

    @model_validator(mode='after')
    def normalize_options(self):
        if self.type == QuestionType.OX:
            if not self.options:
                self.options = list(OX_OPTIONS)
        elif self.type in (QuestionType.SHORT, QuestionType.FILL):
            self.options = None
        return self

    @property
    def canonical_answer(self) -> str:
        return self.correct_answers[0]


class QuizGenerationOptions(BaseModel):
    question_count: int = 5
    difficulty: Difficulty = Difficulty.MEDIUM


class Quiz(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    questions: List[Question] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    bank_id: Optional[str] = None
    remaining_count: Optional[int] = None
    requested_question_count: Optional[int] = None
    session_size: Optional[int] = None
