import pytest

from quizpool.ai import (
    AIGenerationError,
    AIProviderError,
    AIQuizPayload,
    AIRateLimitError,
    AISchemaValidationError,
    AITimeoutError,
    PromptSpec,
    QuizGenerator,
    build_batch_suffix,
    build_user_prompt,
    get_question_type_distribution,
)
from quizpool.models import QuestionType, QuizGenerationOptions, SourceType
from tests.fixtures.mock_openai import MOCK_QUIZ_RESPONSE, MockOpenAIClient, rate_limit_error, timeout_error


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(QuizGenerator._complete.retry, 'sleep', lambda seconds: None)


def _prompt():
    return PromptSpec(system='system', user='user', question_count=3)


def test_generate_parses_payload():
    client = MockOpenAIClient([MOCK_QUIZ_RESPONSE])
    gen = QuizGenerator(models=['m1'], client=client, timeout=12)
    result = gen.generate(_prompt(), AIQuizPayload)
    assert result.model == 'm1'
    assert result.tokens_used == 30
    questions = result.payload.to_questions()
    assert [q.type for q in questions] == [QuestionType.MCQ, QuestionType.OX, QuestionType.FILL]
    assert questions[1].correct_answers == ['O']
    assert all(q.source_type == SourceType.AI for q in questions)
    assert client.timeouts == [12]
    assert client.requests[0]['response_format'] == {'type': 'json_object'}


def test_generate_strips_code_fences():
    client = MockOpenAIClient(['```json\n' + MOCK_QUIZ_RESPONSE + '\n```'])
    result = QuizGenerator(models=['m1'], client=client).generate(_prompt(), AIQuizPayload)
    assert len(result.payload.questions) == 3


@pytest.mark.parametrize('content', ['not json', '{"title": "x", "questions": []}', ''])
def test_generate_rejects_bad_payload(content):
    client = MockOpenAIClient([content])
    with pytest.raises(AISchemaValidationError):
        QuizGenerator(models=['m1'], client=client).generate(_prompt(), AIQuizPayload)


def test_timeout_is_mapped():
    client = MockOpenAIClient([timeout_error()])
    with pytest.raises(AITimeoutError):
        QuizGenerator(models=['m1'], client=client).generate(_prompt(), AIQuizPayload)


def test_rate_limit_is_retried_in_place():
    client = MockOpenAIClient([rate_limit_error(), MOCK_QUIZ_RESPONSE])
    result = QuizGenerator(models=['m1'], client=client).generate(_prompt(), AIQuizPayload)
    assert result.model == 'm1'
    assert len(client.requests) == 2


def test_persistent_rate_limit_raises():
    client = MockOpenAIClient([rate_limit_error() for _ in range(5)])
    with pytest.raises(AIRateLimitError):
        QuizGenerator(models=['m1'], client=client).generate(_prompt(), AIQuizPayload)


def test_fallback_walks_models_in_order():
    client = MockOpenAIClient([timeout_error(), 'not json', MOCK_QUIZ_RESPONSE])
    gen = QuizGenerator(models=['m1', 'm2', 'm3'], client=client)
    result = gen.generate_with_fallback(_prompt(), AIQuizPayload)
    assert result.model == 'm3'
    assert result.attempted_models == ['m1', 'm2', 'm3']
    assert [r['model'] for r in client.requests] == ['m1', 'm2', 'm3']


def test_fallback_exhausted_aggregates_errors():
    client = MockOpenAIClient([timeout_error(), timeout_error()])
    gen = QuizGenerator(models=['m1', 'm2'], client=client)
    with pytest.raises(AIGenerationError) as exc:
        gen.generate_with_fallback(_prompt(), AIQuizPayload)
    assert [e['model'] for e in exc.value.errors] == ['m1', 'm2']
    assert all(e['error_type'] == 'AITimeoutError' for e in exc.value.errors)


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    gen = QuizGenerator(models=['m1'])
    with pytest.raises(AIProviderError):
        gen.generate(_prompt(), AIQuizPayload)


def test_payload_rejects_mcq_answer_outside_options():
    with pytest.raises(ValueError):
        AIQuizPayload.model_validate({'questions': [
            {'type': 'mcq', 'question_text': 'q?', 'options': ['a', 'b'], 'correct_answers': ['c']},
        ]})


@pytest.mark.parametrize('raw,expected', [('True', 'O'), ('false', 'X'), ('o', 'O'), ('X', 'X'), ('거짓', 'X')])
def test_payload_maps_ox_answers(raw, expected):
    payload = AIQuizPayload.model_validate({'questions': [
        {'type': 'ox', 'question_text': 'statement', 'correct_answers': [raw]},
    ]})
    q = payload.questions[0]
    assert q.correct_answers == [expected]
    assert q.options == ['O', 'X']


def test_payload_rejects_unknown_ox_answer():
    with pytest.raises(ValueError):
        AIQuizPayload.model_validate({'questions': [
            {'type': 'ox', 'question_text': 'statement', 'correct_answers': ['maybe']},
        ]})


def test_prompt_helpers():
    dist = get_question_type_distribution('medium', 10)
    assert dist == {'mcq': 6, 'ox': 3, 'short': 1}
    prompt = build_user_prompt('본문', QuizGenerationOptions(question_count=10, difficulty='hard'))
    assert '본문' in prompt and 'Number of questions: 10' in prompt
    assert build_batch_suffix([], 0) == ''
    suffix = build_batch_suffix([f't{i}' for i in range(15)], 1)
    assert 't9' in suffix and 't10' not in suffix
    assert 'batch 2' in suffix
