"""
Bank lifecycle and incremental retrieval.

States per content hash (see quizpool.storage.BankState):
  absent -> created -> partially_filled -> exhausted

- start request, bank holds enough questions: random sample, no generation
- start request, bank short and below capacity: generate, persist in one batch, then sample
- load more with exclude ids: sequential draw-down, never generates
- load more without exclude ids: random sample of the whole bank
"""
import os
import time
import random
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional

from quizpool.models import Question, QuizGenerationOptions
from quizpool.storage import BankState, BankStore, bank_state, hash_content
from quizpool.utils import get_logger, log_bank_operation
from .batch_generator import GenerationCancelledError
from .capacity import calculate_question_capacity
from .question_pool import PoolMetrics, QuestionPoolConfig, generate_question_pool
from .validation import validate_content, validate_load_more_count

LOG = get_logger()

MAX_BANK_CAPACITY = int(os.getenv('MAX_BANK_CAPACITY', '100'))
BANK_INITIAL_SESSION_MULTIPLE = int(os.getenv('BANK_INITIAL_SESSION_MULTIPLE', '3'))


class BankNotFoundError(LookupError):
    pass


@dataclass
class BankGenerationResult:
    bank_id: str
    questions: List[Question]
    is_from_cache: bool
    remaining_count: int
    total_count: int
    state: BankState
    metrics: Optional[PoolMetrics] = None
    shortfall_reason: Optional[str] = None


@dataclass
class LoadMoreResult:
    questions: List[Question]
    remaining_count: int


def _initial_target(session_size: int, max_capacity: int) -> int:
    return min(max_capacity, max(session_size, session_size * BANK_INITIAL_SESSION_MULTIPLE))


def get_or_generate_question_bank(content: str, options: QuizGenerationOptions, session_size: int,
                                  store: BankStore, generator, max_generate: Optional[int] = None,
                                  cancel_event: Optional[threading.Event] = None,
                                  rng: Optional[random.Random] = None) -> BankGenerationResult:
    validate_content(content)
    start = time.time()
    content_hash = hash_content(content)

    bank = store.get_bank_by_hash(content_hash)
    if bank is not None:
        count = store.get_bank_question_count(bank.id)
        if count >= session_size or count >= bank.max_capacity:
            fetched = store.fetch_questions_from_bank(bank.id, session_size, random=True)
            shortfall = None
            if len(fetched.questions) < session_size:
                shortfall = f'bank is exhausted at {count} questions'
            log_bank_operation('serve_cached', bank_id=bank.id, question_count=len(fetched.questions), remaining_count=fetched.remaining_count,
                               duration_ms=int((time.time() - start) * 1000))
            bank.generated_count = count
            return BankGenerationResult(
                bank_id=bank.id,
                questions=fetched.questions,
                is_from_cache=True,
                remaining_count=fetched.remaining_count,
                total_count=count,
                state=bank_state(bank),
                shortfall_reason=shortfall,
            )
        LOG.info('bank_top_up_needed', extra={'bank_id': bank.id, 'stored': count, 'session_size': session_size})

    capacity = calculate_question_capacity(content)
    ceiling = max_generate if max_generate is not None else capacity.max
    max_capacity = min(MAX_BANK_CAPACITY, max(ceiling, session_size))
    bank = store.get_or_create_bank(content_hash, content, max_capacity)

    existing = store.get_bank_question_count(bank.id)
    to_generate = max(0, _initial_target(session_size, bank.max_capacity) - existing)
    metrics = None
    shortfall = None
    if to_generate > 0:
        pool = generate_question_pool(
            content,
            options.model_copy(update={'question_count': to_generate}),
            generator,
            QuestionPoolConfig(target_count=to_generate),
            cancel_event=cancel_event,
            rng=rng,
        )
        if cancel_event is not None and cancel_event.is_set():
            # nothing from a cancelled request reaches the bank
            raise GenerationCancelledError('generation cancelled before persistence')
        saved = store.save_questions_to_bank(bank.id, pool.questions)
        metrics = pool.metrics
        shortfall = pool.metrics.shortfall_reason
        log_bank_operation('generate', bank_id=bank.id, question_count=saved, generated=len(pool.questions), existing=existing)

    fetched = store.fetch_questions_from_bank(bank.id, session_size, random=True)
    total = store.get_bank_question_count(bank.id)
    bank.generated_count = total
    if len(fetched.questions) < session_size and shortfall is None:
        shortfall = capacity.reason
    log_bank_operation('serve_generated', bank_id=bank.id, question_count=len(fetched.questions), remaining_count=fetched.remaining_count,
                       duration_ms=int((time.time() - start) * 1000))
    return BankGenerationResult(
        bank_id=bank.id,
        questions=fetched.questions,
        is_from_cache=False,
        remaining_count=fetched.remaining_count,
        total_count=total,
        state=bank_state(bank),
        metrics=metrics,
        shortfall_reason=shortfall,
    )


def load_more_questions(bank_id: str, count: int, store: BankStore, exclude_ids: Iterable[str] = (),
                        random: Optional[bool] = None) -> LoadMoreResult:
    """Draw ``count`` more questions from an existing bank; never generates.

    With exclude ids the draw is sequential in insertion order; without them
    it is a random sample. ``random`` overrides that choice when given.
    """
    validate_load_more_count(count)
    exclude = list(exclude_ids or ())
    if store.get_bank(bank_id) is None:
        raise BankNotFoundError(f'bank {bank_id} not found')
    use_random = (not exclude) if random is None else random
    fetched = store.fetch_questions_from_bank(bank_id, count, exclude, random=use_random)
    log_bank_operation('load_more', bank_id=bank_id, question_count=len(fetched.questions), remaining_count=fetched.remaining_count,
                       excluded=len(exclude), random=use_random)
    return LoadMoreResult(questions=fetched.questions, remaining_count=max(0, fetched.remaining_count))


def get_remaining_question_count(bank_id: str, store: BankStore, exclude_ids: Iterable[str] = ()) -> int:
    total = store.get_bank_question_count(bank_id)
    return max(0, total - len(set(exclude_ids or ())))
