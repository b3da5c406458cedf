import os
from typing import List, Tuple

from quizpool.models import Difficulty, Quiz, QuestionType

CONTENT_MIN_LENGTH = int(os.getenv('CONTENT_MIN_LENGTH', '50'))
QUESTION_COUNT_MIN = int(os.getenv('QUESTION_COUNT_MIN', '3'))
QUESTION_COUNT_MAX = int(os.getenv('QUESTION_COUNT_MAX', '50'))
QUESTION_COUNT_DEFAULT = 5
LOAD_MORE_MIN = 1
LOAD_MORE_MAX = 20


class InputValidationError(ValueError):
    pass


def validate_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InputValidationError('content is required')
    if len(content.strip()) < CONTENT_MIN_LENGTH:
        raise InputValidationError(f'content must be at least {CONTENT_MIN_LENGTH} characters')
    return content


def validate_question_count(count) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise InputValidationError('question_count must be an integer')
    if count < QUESTION_COUNT_MIN or count > QUESTION_COUNT_MAX:
        raise InputValidationError(f'question_count must be {QUESTION_COUNT_MIN}-{QUESTION_COUNT_MAX}')
    return count


def validate_difficulty(difficulty) -> Difficulty:
    try:
        return Difficulty(difficulty)
    except ValueError:
        raise InputValidationError(f'invalid difficulty: {difficulty}') from None


def validate_load_more_count(count) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise InputValidationError('count must be an integer')
    if count < LOAD_MORE_MIN or count > LOAD_MORE_MAX:
        raise InputValidationError(f'count must be {LOAD_MORE_MIN}-{LOAD_MORE_MAX}')
    return count


def validate_quiz(quiz: Quiz) -> Tuple[bool, List[str]]:
    """Structural check of a generated quiz before it is served or cached."""
    errors = []
    if not quiz.title or not quiz.title.strip():
        errors.append('missing title')
    if not quiz.questions:
        errors.append('no questions')
    for i, q in enumerate(quiz.questions, start=1):
        if not q.question_text.strip():
            errors.append(f'question {i}: missing text')
        if not q.correct_answers or not q.correct_answers[0].strip():
            errors.append(f'question {i}: missing answer')
        if q.type == QuestionType.MCQ and not q.options:
            errors.append(f'question {i}: mcq without options')
        if q.type == QuestionType.OX and (not q.options or len(q.options) != 2):
            errors.append(f'question {i}: ox must have 2 options')
    return (not errors, errors)


def validate_session_size(size) -> int:
    if isinstance(size, bool) or not isinstance(size, int):
        raise InputValidationError('session_size must be an integer')
    if size < 1 or size > QUESTION_COUNT_MAX:
        raise InputValidationError(f'session_size must be 1-{QUESTION_COUNT_MAX}')
    return size
