from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from quizpool.models import OX_OPTIONS, Question, QuestionType, SourceType, new_id

_OX_ALIASES = {
    'o': 'O', 'x': 'X',
    'true': 'O', 'false': 'X',
    '참': 'O', '거짓': 'X',
}


class AIQuestion(BaseModel):
    type: QuestionType
    question_text: str = Field(..., min_length=1)
    options: Optional[List[str]] = None
    correct_answers: List[str] = []
    explanation: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def accept_single_answer(cls, data):
        # some models return "correct_answer": "..." instead of a list
        if isinstance(data, dict) and not data.get('correct_answers') and data.get('correct_answer'):
            data = dict(data)
            data['correct_answers'] = [data.pop('correct_answer')]
        return data

    @model_validator(mode='after')
    def check_answers(self):
        self.correct_answers = [a.strip() for a in self.correct_answers if a and a.strip()]
        if not self.correct_answers:
            raise ValueError('question has no correct answer')
        if self.type == QuestionType.MCQ:
            if not self.options or len(self.options) < 2:
                raise ValueError('mcq question needs at least two options')
            if self.correct_answers[0] not in self.options:
                raise ValueError('mcq answer is not one of the options')
        elif self.type == QuestionType.OX:
            answer = _OX_ALIASES.get(self.correct_answers[0].lower())
            if answer is None:
                raise ValueError(f'ox answer must be O or X, got {self.correct_answers[0]!r}')
            self.correct_answers = [answer]
            self.options = list(OX_OPTIONS)
        return self

    def to_question(self) -> Question:
        return Question(
            id=new_id(),
            type=self.type,
            question_text=self.question_text.strip(),
            options=self.options,
            correct_answers=self.correct_answers,
            explanation=self.explanation,
            source_type=SourceType.AI,
        )


class AIQuizPayload(BaseModel):
    title: str = 'Quiz'
    questions: List[AIQuestion] = Field(..., min_length=1)

    def to_questions(self) -> List[Question]:
        return [q.to_question() for q in self.questions]
