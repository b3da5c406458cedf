import pytest

from quizpool.models import Question, QuestionType, SourceType
from quizpool.storage import BankState, PersistenceError, SQLiteBankStore, bank_state, hash_content


def _questions(n, prefix='q'):
    return [
        Question(id=f'{prefix}{i}', type=QuestionType.SHORT, question_text=f'질문 {i}: 광합성의 산물은?', correct_answers=['포도당'])
        for i in range(n)
    ]


def test_get_or_create_bank_is_idempotent(store):
    h = hash_content('광합성 본문')
    first = store.get_or_create_bank(h, '광합성 본문', 20)
    second = store.get_or_create_bank(h, '광합성 본문', 50)
    assert first.id == second.id
    assert second.max_capacity == 20
    assert store.get_bank_by_hash(h).id == first.id


def test_bank_lookup_misses(store):
    assert store.get_bank_by_hash('missing') is None
    assert store.get_bank('missing') is None


def test_save_respects_capacity_and_updates_count(store):
    bank = store.get_or_create_bank('h1', 'content', 5)
    saved = store.save_questions_to_bank(bank.id, _questions(8))
    assert saved == 5
    assert store.get_bank_question_count(bank.id) == 5
    assert store.get_bank(bank.id).generated_count == 5


def test_resaving_same_question_is_a_noop(store):
    bank = store.get_or_create_bank('h1', 'content', 10)
    qs = _questions(3)
    store.save_questions_to_bank(bank.id, qs)
    assert store.save_questions_to_bank(bank.id, qs) == 0
    assert store.get_bank_question_count(bank.id) == 3


def test_save_to_unknown_bank_fails(store):
    with pytest.raises(PersistenceError):
        store.save_questions_to_bank('nope', _questions(1))


def test_sequential_fetch_excludes_seen(store):
    bank = store.get_or_create_bank('h1', 'content', 10)
    store.save_questions_to_bank(bank.id, _questions(6))
    first = store.fetch_questions_from_bank(bank.id, 2)
    assert [q.id for q in first.questions] == ['q0', 'q1']
    assert first.remaining_count == 4
    seen = [q.id for q in first.questions]
    second = store.fetch_questions_from_bank(bank.id, 2, exclude_ids=seen)
    assert [q.id for q in second.questions] == ['q2', 'q3']
    assert second.remaining_count == 2


def test_fetch_more_than_remaining_returns_what_is_left(store):
    bank = store.get_or_create_bank('h1', 'content', 10)
    store.save_questions_to_bank(bank.id, _questions(5))
    result = store.fetch_questions_from_bank(bank.id, 5, exclude_ids=['q0', 'q1'])
    assert len(result.questions) == 3
    assert result.remaining_count == 0


def test_random_fetch_has_no_repeats(store):
    bank = store.get_or_create_bank('h1', 'content', 20)
    store.save_questions_to_bank(bank.id, _questions(10))
    result = store.fetch_questions_from_bank(bank.id, 10, random=True)
    assert len({q.id for q in result.questions}) == 10


def test_fetched_questions_round_trip_fields(store):
    bank = store.get_or_create_bank('h1', 'content', 10)
    q = Question(type=QuestionType.MCQ, question_text='맞는 것은?', options=['가', '나'], correct_answers=['가'],
                 source_type=SourceType.TRANSFORMED, original_id='seed-1')
    store.save_questions_to_bank(bank.id, [q])
    got = store.fetch_questions_from_bank(bank.id, 1).questions[0]
    assert got == q


def test_expired_banks_are_replaced(tmp_path):
    s = SQLiteBankStore(str(tmp_path / 'banks.db'), retention_days=0)
    try:
        bank = s.get_or_create_bank('h1', 'content', 10)
        assert s.get_bank_by_hash('h1') is None
        fresh = s.get_or_create_bank('h1', 'content', 10)
        assert fresh.id != bank.id
        assert s.cleanup_expired_banks() == 1
    finally:
        s.close()


def test_bank_state_transitions(store):
    assert bank_state(None) == BankState.ABSENT
    bank = store.get_or_create_bank('h1', 'content', 3)
    assert bank_state(bank) == BankState.CREATED
    store.save_questions_to_bank(bank.id, _questions(2))
    assert bank_state(store.get_bank(bank.id)) == BankState.PARTIALLY_FILLED
    store.save_questions_to_bank(bank.id, _questions(2, prefix='r'))
    assert bank_state(store.get_bank(bank.id)) == BankState.EXHAUSTED
