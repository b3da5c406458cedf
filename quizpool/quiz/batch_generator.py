import os
import re
import math
import time
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from quizpool.ai import (
    AIGenerationError,
    AIQuizPayload,
    PromptSpec,
    SYSTEM_PROMPT,
    build_batch_suffix,
    build_user_prompt,
)
from quizpool.models import Question, QuizGenerationOptions, new_id
from quizpool.nlp import tokenize
from quizpool.utils import get_logger
from .answer_matcher import normalize_answer

LOG = get_logger()

BATCH_MAX_ATTEMPTS = int(os.getenv('BATCH_MAX_ATTEMPTS', '5'))
BATCH_QUESTIONS_PER_ATTEMPT = int(os.getenv('BATCH_QUESTIONS_PER_ATTEMPT', '7'))
BATCH_OVERPRODUCTION_RATIO = float(os.getenv('BATCH_OVERPRODUCTION_RATIO', '1.5'))
TOPICS_PER_QUESTION = 3


class GenerationCancelledError(Exception):
    pass


@dataclass
class BatchGenerationConfig:
    target_question_count: int = 10
    max_attempts: int = BATCH_MAX_ATTEMPTS
    questions_per_attempt: int = BATCH_QUESTIONS_PER_ATTEMPT
    overproduction_ratio: float = BATCH_OVERPRODUCTION_RATIO


@dataclass
class BatchGenerationResult:
    questions: List[Question]
    model: Optional[str]
    attempts: int
    title: Optional[str] = None
    total_generated: int = 0
    duplicates_removed: int = 0
    tokens_used: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    shortfall_reason: Optional[str] = None

    @property
    def shortfall(self) -> bool:
        return self.shortfall_reason is not None


def _question_key(q: Question) -> str:
    return normalize_answer(q.question_text)


def divide_focus_areas(content: str, area_count: int) -> List[str]:
    """Group paragraphs into ``area_count`` focus areas; whole text when it has one paragraph."""
    paragraphs = [p for p in re.split(r'\n\s*\n+', content) if p.strip()]
    if len(paragraphs) <= 1 or area_count <= 1:
        return [content] * max(1, area_count)
    per_area = math.ceil(len(paragraphs) / area_count)
    areas = []
    for i in range(area_count):
        chunk = '\n\n'.join(paragraphs[i * per_area:(i + 1) * per_area]).strip()
        areas.append(chunk or content)
    return areas


def _covered_topics(questions: List[Question]) -> List[str]:
    topics = []
    for q in questions:
        topics.extend(tokenize(q.question_text)[:TOPICS_PER_QUESTION])
        topics.append(q.canonical_answer)
    return list(dict.fromkeys(topics))


def _check_cancelled(cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelledError('generation cancelled by caller')


def generate_question_batch(content: str, options: QuizGenerationOptions, generator,
                            config: Optional[BatchGenerationConfig] = None,
                            cancel_event: Optional[threading.Event] = None) -> BatchGenerationResult:
    """Accumulate distinct AI questions toward ``config.target_question_count``.

    Attempts run sequentially. A failed attempt moves on to the next model in
    ``generator.models``; a successful one keeps the current model. Running out
    of attempts with some questions collected is a partial success; with none
    collected it raises AIGenerationError carrying every attempt's error.
    """
    config = config or BatchGenerationConfig(target_question_count=options.question_count)
    target = max(1, config.target_question_count)
    models = list(getattr(generator, 'models', None) or [None])
    focus_areas = divide_focus_areas(content, config.max_attempts)

    collected: List[Question] = []
    seen_keys = set()
    errors: List[Dict[str, str]] = []
    model_index = 0
    attempts = 0
    total_generated = 0
    duplicates = 0
    tokens_used = 0
    title = None
    last_model = None
    start = time.time()

    while attempts < config.max_attempts and len(collected) < target:
        _check_cancelled(cancel_event)
        model = models[model_index % len(models)]
        remaining = target - len(collected)
        ask = max(1, min(config.questions_per_attempt, math.ceil(remaining * config.overproduction_ratio)))
        area = focus_areas[attempts % len(focus_areas)]
        suffix = build_batch_suffix(_covered_topics(collected), attempts)
        prompt = PromptSpec(
            system=SYSTEM_PROMPT,
            user=build_user_prompt(area, options.model_copy(update={'question_count': ask}), suffix),
            question_count=ask,
        )
        attempts += 1
        try:
            result = generator.generate(prompt, AIQuizPayload, model)
        except AIGenerationError as e:
            errors.append({'attempt': str(attempts), 'model': str(model), 'error_type': type(e).__name__, 'error': str(e)})
            LOG.warning('batch_attempt_failed', extra={'attempt': attempts, 'model': model, 'error_type': type(e).__name__})
            model_index += 1
            continue
        _check_cancelled(cancel_event)

        last_model = result.model
        title = title or result.payload.title
        tokens_used += result.tokens_used
        fresh = result.payload.to_questions()
        total_generated += len(fresh)
        added = 0
        for q in fresh:
            key = _question_key(q)
            if not key or key in seen_keys:
                duplicates += 1
                continue
            seen_keys.add(key)
            q.id = new_id()
            collected.append(q)
            added += 1
        LOG.info('batch_attempt_complete', extra={'attempt': attempts, 'model': result.model, 'requested': ask, 'received': len(fresh), 'added': added, 'total': len(collected)})

    if not collected and errors:
        raise AIGenerationError('all generation attempts failed', errors=errors)

    shortfall = None
    if len(collected) < target:
        shortfall = f'attempts exhausted after {attempts} tries: {len(collected)} of {target} questions'

    LOG.info('batch_generation_complete', extra={
        'target': target,
        'collected': len(collected),
        'attempts': attempts,
        'duplicates_removed': duplicates,
        'failed_attempts': len(errors),
        'duration_ms': int((time.time() - start) * 1000),
    })
    return BatchGenerationResult(
        questions=collected[:target],
        model=last_model,
        attempts=attempts,
        title=title,
        total_generated=total_generated,
        duplicates_removed=duplicates,
        tokens_used=tokens_used,
        errors=errors,
        shortfall_reason=shortfall,
    )
