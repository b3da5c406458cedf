import time
from dataclasses import dataclass
from typing import Optional

from quizpool.ai import AIQuizPayload, AISchemaValidationError, PromptSpec, SYSTEM_PROMPT, build_user_prompt
from quizpool.models import Quiz, QuizGenerationOptions
from quizpool.nlp import process_text, should_preprocess
from quizpool.storage import QuizCache, hash_content, hash_options
from quizpool.utils import get_logger, get_request_context, log_quiz_generation
from .question_pool import DEFAULT_QUIZ_TITLE
from .validation import validate_content, validate_quiz

LOG = get_logger()


@dataclass
class QuizGenerationResult:
    quiz: Quiz
    model: Optional[str]
    cache_hit: bool
    processed_text_length: int
    tokens_used: int = 0
    hit_count: int = 0


def generate_quiz(content: str, options: QuizGenerationOptions, generator,
                  cache: Optional[QuizCache] = None, bypass_cache: bool = False) -> QuizGenerationResult:
    """Single AI call with model fallback, fronted by the generation cache."""
    validate_content(content)
    start = time.time()
    content_hash = hash_content(content)
    options_hash = hash_options(options)

    if cache is not None and not bypass_cache:
        entry = cache.get(content_hash, options_hash)
        if entry is not None:
            log_quiz_generation(get_request_context().get('request_id'), question_count=len(entry['quiz'].questions),
                                question_types=sorted({q.type.value for q in entry['quiz'].questions}),
                                duration_ms=int((time.time() - start) * 1000), cache_hit=True)
            return QuizGenerationResult(
                quiz=entry['quiz'],
                model=entry.get('model'),
                cache_hit=True,
                processed_text_length=entry.get('processed_text_length') or len(content),
                hit_count=entry.get('hit_count', 0),
            )

    prompt_text = content
    if should_preprocess(content):
        processed = process_text(content)
        if processed.top_sentences:
            prompt_text = '\n'.join(processed.top_sentences)
            LOG.info('quiz_preprocessed', extra={'original_length': len(content), 'processed_length': len(prompt_text)})

    prompt = PromptSpec(system=SYSTEM_PROMPT, user=build_user_prompt(prompt_text, options), question_count=options.question_count)
    result = generator.generate_with_fallback(prompt, AIQuizPayload)
    quiz = Quiz(title=result.payload.title or DEFAULT_QUIZ_TITLE, questions=result.payload.to_questions()[:options.question_count])

    valid, errors = validate_quiz(quiz)
    if not valid:
        raise AISchemaValidationError(f'generated quiz failed validation: {errors}')

    if cache is not None:
        cache.set(content_hash, options_hash, quiz, model=result.model, processed_text_length=len(prompt_text))

    log_quiz_generation(get_request_context().get('request_id'), question_count=len(quiz.questions),
                        question_types=sorted({q.type.value for q in quiz.questions}),
                        duration_ms=int((time.time() - start) * 1000))
    return QuizGenerationResult(
        quiz=quiz,
        model=result.model,
        cache_hit=False,
        processed_text_length=len(prompt_text),
        tokens_used=result.tokens_used,
    )
