import pytest

from quizpool.models import Difficulty, Question, QuestionType, Quiz
from quizpool.quiz import (
    InputValidationError,
    validate_content,
    validate_difficulty,
    validate_load_more_count,
    validate_question_count,
    validate_quiz,
    validate_session_size,
)


@pytest.mark.parametrize('content', [None, '', '   ', 'x' * 49, 123])
def test_validate_content_rejects(content):
    with pytest.raises(InputValidationError):
        validate_content(content)


def test_validate_content_accepts(korean_text):
    assert validate_content(korean_text) == korean_text


@pytest.mark.parametrize('count', [2, 51, '5', True, None])
def test_validate_question_count_rejects(count):
    with pytest.raises(InputValidationError):
        validate_question_count(count)


def test_validate_question_count_accepts_bounds():
    assert validate_question_count(3) == 3
    assert validate_question_count(50) == 50


def test_validate_difficulty():
    assert validate_difficulty('hard') == Difficulty.HARD
    with pytest.raises(InputValidationError):
        validate_difficulty('extreme')


def test_validate_load_more_count():
    assert validate_load_more_count(1) == 1
    assert validate_load_more_count(20) == 20
    with pytest.raises(InputValidationError):
        validate_load_more_count(21)


def test_validate_session_size():
    assert validate_session_size(1) == 1
    with pytest.raises(InputValidationError):
        validate_session_size(0)


def test_validate_quiz():
    good = Quiz(title='광합성', questions=[Question(type=QuestionType.OX, question_text='산소가 생긴다.', correct_answers=['O'])])
    assert validate_quiz(good) == (True, [])

    bad = Quiz(title=' ', questions=[])
    valid, errors = validate_quiz(bad)
    assert not valid
    assert 'missing title' in errors and 'no questions' in errors


def test_question_model_normalizes_options():
    ox = Question(type=QuestionType.OX, question_text='진술', correct_answers=['O'])
    assert ox.options == ['O', 'X']
    short = Question(type=QuestionType.SHORT, question_text='질문', options=['a'], correct_answers=['답'])
    assert short.options is None
    with pytest.raises(ValueError):
        Question(type=QuestionType.SHORT, question_text='   ', correct_answers=['답'])
    with pytest.raises(ValueError):
        Question(type=QuestionType.SHORT, question_text='질문', correct_answers=[])
