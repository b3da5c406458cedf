"""Question pool pipeline.

Steps:
  1. process the text and compute capacity; long texts send only their top sentences to the model
  2. AI batch for min(requested, capacity.max) seed questions
  3. rule-based transforms pad the seed toward the requested count
  4. shuffle, keeping per-question provenance

Any gap between requested and delivered is reported in ``metrics.shortfall_reason``.
"""
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from quizpool.models import Quiz, QuizGenerationOptions, SourceType
from quizpool.nlp import process_text, should_preprocess
from quizpool.utils import get_logger, get_request_context, log_quiz_generation
from .batch_generator import BatchGenerationConfig, generate_question_batch
from .capacity import QuestionCapacity, TextQualityMetrics, analyze_text_quality, calculate_question_capacity
from .transformer import DEFAULT_TRANSFORMATION_OPTIONS, TransformationOptions, transform_questions

LOG = get_logger()

DEFAULT_QUIZ_TITLE = 'Generated quiz'


@dataclass
class QuestionPoolConfig:
    target_count: Optional[int] = None
    max_attempts: Optional[int] = None
    transformation_options: TransformationOptions = field(default_factory=lambda: DEFAULT_TRANSFORMATION_OPTIONS)
    bypass_capacity_check: bool = False


@dataclass
class PoolMetrics:
    requested: int
    ai_target: int
    ai_generated: int
    transformed: int
    attempts: int
    model: Optional[str]
    tokens_used: int
    generation_time_ms: int
    shortfall_reason: Optional[str] = None

    @property
    def delivered(self) -> int:
        return self.ai_generated + self.transformed


@dataclass
class QuestionPoolResult:
    questions: list
    metrics: PoolMetrics
    capacity: QuestionCapacity
    quality: Optional[TextQualityMetrics] = None
    title: Optional[str] = None


def generate_question_pool(content: str, options: QuizGenerationOptions, generator,
                           config: Optional[QuestionPoolConfig] = None,
                           cancel_event: Optional[threading.Event] = None,
                           rng: Optional[random.Random] = None) -> QuestionPoolResult:
    config = config or QuestionPoolConfig()
    rng = rng or random.Random()
    start = time.time()
    requested = config.target_count or options.question_count

    # capacity always needs the segmented text; only the prompt depends on should_preprocess
    processed = process_text(content)
    capacity = calculate_question_capacity(content, processed)
    quality = analyze_text_quality(content, processed) if processed.sentence_count else None

    ai_target = requested if config.bypass_capacity_check else min(requested, capacity.max)
    prompt_text = content
    if should_preprocess(content) and processed.top_sentences:
        prompt_text = '\n'.join(processed.top_sentences)

    batch_config = BatchGenerationConfig(target_question_count=ai_target)
    if config.max_attempts:
        batch_config.max_attempts = config.max_attempts
    batch = generate_question_batch(prompt_text, options, generator, batch_config, cancel_event=cancel_event)

    questions = list(batch.questions)
    transformed_count = 0
    if len(questions) < requested and questions:
        padded = transform_questions(questions, target_count=requested, options=config.transformation_options, rng=rng)
        transformed_count = sum(1 for q in padded if q.source_type == SourceType.TRANSFORMED)
        questions = padded
    rng.shuffle(questions)

    shortfall = None
    if len(questions) < requested:
        if capacity.max < requested and not config.bypass_capacity_check:
            shortfall = capacity.reason
        else:
            shortfall = batch.shortfall_reason or f'only {len(questions)} of {requested} questions could be produced'

    metrics = PoolMetrics(
        requested=requested,
        ai_target=ai_target,
        ai_generated=len(batch.questions),
        transformed=transformed_count,
        attempts=batch.attempts,
        model=batch.model,
        tokens_used=batch.tokens_used,
        generation_time_ms=int((time.time() - start) * 1000),
        shortfall_reason=shortfall,
    )
    log_quiz_generation(
        get_request_context().get('request_id'),
        question_count=len(questions),
        question_types=sorted({q.type.value for q in questions}),
        duration_ms=metrics.generation_time_ms,
        source_counts={'ai': metrics.ai_generated, 'transformed': metrics.transformed},
    )
    return QuestionPoolResult(questions=questions, metrics=metrics, capacity=capacity, quality=quality, title=batch.title)


def create_quiz_from_pool(pool: QuestionPoolResult, title: Optional[str] = None) -> Quiz:
    return Quiz(
        title=title or pool.title or DEFAULT_QUIZ_TITLE,
        questions=pool.questions,
        requested_question_count=pool.metrics.requested,
    )


def generate_quiz_pool(content: str, options: QuizGenerationOptions, generator,
                       cancel_event: Optional[threading.Event] = None):
    """One-shot convenience: pool with default config, wrapped as a Quiz."""
    pool = generate_question_pool(content, options, generator, cancel_event=cancel_event)
    return create_quiz_from_pool(pool), pool.metrics
