"""Text quality metrics and question capacity bounds.

Capacity is the min/optimal/max number of distinct questions a text can
support. The maximum is the more generous of a sentence/keyword estimate and
a character-count estimate, weighted by information density, then capped by
the number of salient sentences and a global ceiling.
"""
import os
import math
from dataclasses import dataclass, asdict
from typing import Optional, Tuple

from quizpool.nlp import ProcessedText, process_text, tokenize
from .validation import CONTENT_MIN_LENGTH

CHARS_PER_QUESTION = 100
SENTENCES_PER_QUESTION = 0.5
KEYWORDS_PER_QUESTION = 5
MIN_CAPACITY = 1
MAX_CAPACITY = int(os.getenv('MAX_QUESTION_CAPACITY', '100'))
BLANK_MULTIPLIER_MAX = 2.5
QUESTIONS_PER_SALIENT_SENTENCE = 5
DEFAULT_SESSION_SIZE = int(os.getenv('DEFAULT_SESSION_SIZE', '5'))
MIN_QUESTIONS = 3
PLENTY_THRESHOLD = 20


@dataclass
class TextQualityMetrics:
    character_count: int
    sentence_count: int
    unique_keyword_count: int
    avg_sentence_length: float
    information_density: float
    language: str


@dataclass
class QuestionCapacity:
    min: int
    max: int
    optimal: int
    reason: str

    def to_dict(self) -> dict:
        return asdict(self)


def analyze_text_quality(content: str, processed: Optional[ProcessedText] = None) -> TextQualityMetrics:
    processed = processed if processed is not None else process_text(content)
    tokens = tokenize(content)
    unique = set(tokens)
    sentence_count = processed.sentence_count
    return TextQualityMetrics(
        character_count=len(content),
        sentence_count=sentence_count,
        unique_keyword_count=len(unique),
        avg_sentence_length=len(content) / sentence_count if sentence_count else float(len(content)),
        information_density=len(unique) / len(tokens) if tokens else 0.0,
        language=processed.language,
    )


def _capacity_reason(metrics: TextQualityMetrics, max_capacity: int) -> str:
    if metrics.character_count < CHARS_PER_QUESTION:
        return 'Text is too short. Provide a longer passage.'
    if metrics.sentence_count < 3:
        return 'Too few sentences. Provide more content.'
    if metrics.unique_keyword_count < 10:
        return 'Not enough distinct keywords. Provide richer content.'
    if metrics.information_density < 0.3:
        return 'Information density is low. Reduce repeated content.'
    if max_capacity >= PLENTY_THRESHOLD:
        return 'Plenty of text to work with.'
    return f'This text supports at most {max_capacity} questions.'


def _minimal(reason: str) -> QuestionCapacity:
    return QuestionCapacity(min=1, max=1, optimal=1, reason=reason)


def calculate_question_capacity(content: str, processed: Optional[ProcessedText] = None) -> QuestionCapacity:
    content = content or ''
    if len(content.strip()) < CONTENT_MIN_LENGTH:
        return _minimal(f'Text is too short: at least {CONTENT_MIN_LENGTH} characters are needed.')
    processed = processed if processed is not None else process_text(content)
    if processed.sentence_count == 0:
        return _minimal('No usable sentences were found in the text.')

    m = analyze_text_quality(content, processed)

    sentence_based = math.floor(m.sentence_count / SENTENCES_PER_QUESTION)
    keyword_based = math.floor(m.unique_keyword_count / KEYWORDS_PER_QUESTION)
    char_based = math.floor(m.character_count / CHARS_PER_QUESTION)

    keywords_per_sentence = m.unique_keyword_count / m.sentence_count
    blank_multiplier = min(BLANK_MULTIPLIER_MAX, max(1.0, keywords_per_sentence / 2))
    adjusted_sentence = math.floor(sentence_based * blank_multiplier)

    raw_max = max(min(adjusted_sentence, keyword_based), char_based)
    density_weight = 0.6 + m.information_density * 0.4
    weighted = math.floor(raw_max * density_weight)

    ceiling = min(MAX_CAPACITY, m.sentence_count * QUESTIONS_PER_SALIENT_SENTENCE)
    max_q = max(MIN_CAPACITY, min(ceiling, weighted))
    min_q = min(MIN_QUESTIONS, max_q)
    midpoint = (min_q + max_q) / 2
    optimal = max(min_q, min(max_q, round((midpoint + DEFAULT_SESSION_SIZE) / 2)))

    return QuestionCapacity(min=min_q, max=max_q, optimal=optimal, reason=_capacity_reason(m, max_q))


def quick_capacity_check(content: str) -> QuestionCapacity:
    return calculate_question_capacity(content)


def is_within_capacity(content: str, requested: int) -> Tuple[bool, QuestionCapacity]:
    capacity = calculate_question_capacity(content)
    return requested <= capacity.max, capacity
