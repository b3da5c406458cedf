import os
import re
import unicodedata
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import List, Optional, Sequence

from quizpool.models import QuestionType

ANSWER_SIMILARITY_THRESHOLD = float(os.getenv('ANSWER_SIMILARITY_THRESHOLD', '0.5'))
ANSWER_MIN_FUZZY_LENGTH = int(os.getenv('ANSWER_MIN_FUZZY_LENGTH', '3'))

_JOSA_RE = re.compile(r'(은|는|이|가|을|를|의|에|에서|으로|로|와|과|도)$')
_PUNCT_RE = re.compile(r'''[.,!?;:'"()\[\]{}]''')
_WS_RE = re.compile(r'\s+')


class MatchType(str, Enum):
    EXACT = 'exact'
    SIMILAR = 'similar'
    WRONG = 'wrong'


@dataclass
class MatchResult:
    is_correct: bool
    match_type: MatchType
    similarity: float
    display_answer: str
    matched_answer: Optional[str] = None


def _strip_josa(text: str) -> str:
    m = _JOSA_RE.search(text)
    if m and m.start() >= 2:
        return text[:m.start()]
    return text


def normalize_answer(text: str) -> str:
    """NFC, collapse whitespace, lowercase, drop punctuation and a trailing particle.

    Particle stripping repeats until the text stops changing so the function
    is idempotent; it never strips a particle that is the whole answer.
    """
    normalized = unicodedata.normalize('NFC', (text or '').lower())
    normalized = _PUNCT_RE.sub('', normalized)
    normalized = _WS_RE.sub(' ', normalized).strip()
    while True:
        stripped = _strip_josa(normalized).strip()
        if stripped == normalized:
            return normalized
        normalized = stripped


def _similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    direct = SequenceMatcher(None, a, b).ratio()
    sorted_tokens = SequenceMatcher(None, ' '.join(sorted(a.split())), ' '.join(sorted(b.split()))).ratio()
    return max(direct, sorted_tokens)


def check_answer(user_answer: str, correct_answers: Sequence[str], question_type=None,
                 similarity_threshold: float = ANSWER_SIMILARITY_THRESHOLD,
                 min_fuzzy_length: int = ANSWER_MIN_FUZZY_LENGTH) -> MatchResult:
    answers: List[str] = list(correct_answers or [])
    display = answers[0] if answers else ''
    qtype = QuestionType(question_type) if question_type else None

    # closed option sets: exact membership only
    if qtype in (QuestionType.MCQ, QuestionType.OX):
        hit = user_answer in answers
        return MatchResult(
            is_correct=hit,
            match_type=MatchType.EXACT if hit else MatchType.WRONG,
            similarity=1.0 if hit else 0.0,
            display_answer=display,
            matched_answer=user_answer if hit else None,
        )

    user = normalize_answer(user_answer)
    normalized = [normalize_answer(a) for a in answers]
    for original, candidate in zip(answers, normalized):
        if candidate == user:
            return MatchResult(is_correct=True, match_type=MatchType.EXACT, similarity=1.0, display_answer=display, matched_answer=original)

    best_score, best_answer = 0.0, None
    for original, candidate in zip(answers, normalized):
        score = _similarity(user, candidate)
        if score > best_score:
            best_score, best_answer = score, original

    if len(user) < min_fuzzy_length:
        return MatchResult(is_correct=False, match_type=MatchType.WRONG, similarity=best_score, display_answer=display)

    if best_answer is not None and best_score >= similarity_threshold:
        return MatchResult(is_correct=True, match_type=MatchType.SIMILAR, similarity=best_score, display_answer=display, matched_answer=best_answer)
    return MatchResult(is_correct=False, match_type=MatchType.WRONG, similarity=best_score, display_answer=display)
