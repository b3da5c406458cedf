import threading

import pytest

from quizpool.ai import AIGenerationError, AITimeoutError
from quizpool.models import QuizGenerationOptions
from quizpool.quiz import BatchGenerationConfig, GenerationCancelledError, generate_question_batch
from quizpool.quiz.batch_generator import divide_focus_areas
from tests.fixtures.mock_ai import FakeQuizGenerator


def _options(count=5):
    return QuizGenerationOptions(question_count=count)


def test_batch_reaches_target(korean_text, fake_generator):
    result = generate_question_batch(korean_text, _options(), fake_generator, BatchGenerationConfig(target_question_count=10))
    assert len(result.questions) == 10
    assert result.shortfall_reason is None
    assert result.model == 'model-a'
    assert len({q.id for q in result.questions}) == 10
    assert result.tokens_used > 0


def test_batch_asks_at_most_questions_per_attempt(korean_text, fake_generator):
    generate_question_batch(korean_text, _options(), fake_generator, BatchGenerationConfig(target_question_count=20, questions_per_attempt=7))
    assert all(p.question_count <= 7 for p in fake_generator.prompts)


def test_failed_model_falls_back_to_next(korean_text):
    gen = FakeQuizGenerator(fail_models=['model-a'])
    result = generate_question_batch(korean_text, _options(), gen, BatchGenerationConfig(target_question_count=5))
    assert gen.calls[:2] == ['model-a', 'model-b']
    assert result.model == 'model-b'
    assert len(result.questions) == 5
    assert len(result.errors) == 1


def test_successful_attempt_keeps_current_model(korean_text):
    gen = FakeQuizGenerator(per_call=2)
    generate_question_batch(korean_text, _options(), gen, BatchGenerationConfig(target_question_count=6))
    assert set(gen.calls) == {'model-a'}


def test_all_models_failing_raises_aggregated_error(korean_text):
    gen = FakeQuizGenerator(fail_models=['model-a', 'model-b', 'model-c'], error_cls=AITimeoutError)
    with pytest.raises(AIGenerationError) as exc:
        generate_question_batch(korean_text, _options(), gen, BatchGenerationConfig(target_question_count=5, max_attempts=3))
    assert len(exc.value.errors) == 3
    assert {e['model'] for e in exc.value.errors} == {'model-a', 'model-b', 'model-c'}


def test_duplicates_lead_to_partial_result(korean_text):
    gen = FakeQuizGenerator(duplicate=True, per_call=3)
    result = generate_question_batch(korean_text, _options(), gen, BatchGenerationConfig(target_question_count=10, max_attempts=3))
    assert len(result.questions) == 3
    assert result.duplicates_removed == 6
    assert result.attempts == 3
    assert result.shortfall_reason


def test_later_batches_mention_covered_topics(korean_text, fake_generator):
    generate_question_batch(korean_text, _options(), fake_generator, BatchGenerationConfig(target_question_count=10, questions_per_attempt=3))
    assert len(fake_generator.prompts) > 1
    assert 'already exist' not in fake_generator.prompts[0].user
    assert 'already exist' in fake_generator.prompts[1].user


def test_cancel_event_stops_generation(korean_text, fake_generator):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(GenerationCancelledError):
        generate_question_batch(korean_text, _options(), fake_generator, cancel_event=cancel)
    assert fake_generator.calls == []


def test_divide_focus_areas():
    content = '첫 문단입니다.\n\n둘째 문단입니다.\n\n셋째 문단입니다.\n\n넷째 문단입니다.'
    areas = divide_focus_areas(content, 2)
    assert len(areas) == 2
    assert '첫 문단' in areas[0] and '둘째 문단' in areas[0]
    assert '넷째 문단' in areas[1]
    assert divide_focus_areas('한 문단뿐입니다.', 3) == ['한 문단뿐입니다.'] * 3
