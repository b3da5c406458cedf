"""Sentence segmentation, salience scoring and deduplication.

``process_text`` is the entry point: split -> tokenize -> TF-IDF score ->
near-duplicate removal -> ranked sentence list plus the top sentences in
document order for prompt construction.
"""
import os
import re
import math
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from quizpool.utils import get_logger
from .tokenizer import detect_language, tokenize
from .tfidf import calculate_all_sentence_scores

LOG = get_logger()

MIN_SENTENCE_LENGTH = int(os.getenv('MIN_SENTENCE_LENGTH', '10'))
DUPLICATE_SIMILARITY_THRESHOLD = float(os.getenv('DUPLICATE_SIMILARITY_THRESHOLD', '0.8'))
PREPROCESS_MIN_LENGTH = int(os.getenv('PREPROCESS_MIN_LENGTH', '500'))

_BOUNDARY_RE = re.compile(r'[.!?。]+(?:\s+|$)')
_ABBREVIATIONS = frozenset([
    'mr', 'mrs', 'ms', 'dr', 'prof', 'sr', 'jr', 'st', 'vs', 'etc', 'e.g', 'i.e',
    'fig', 'no', 'vol', 'approx', 'inc', 'ltd', 'co', 'jan', 'feb', 'mar', 'apr',
    'jun', 'jul', 'aug', 'sep', 'sept', 'oct', 'nov', 'dec',
])
_LAST_WORD_RE = re.compile(r'([A-Za-z][A-Za-z.]*)$')


@dataclass
class ScoredSentence:
    text: str
    score: float
    tokens: List[str] = field(default_factory=list)
    # relative position in the source text, 0 <= position < 1
    position: float = 0.0
    index: int = 0


@dataclass
class ProcessedText:
    original_length: int
    sentences: List[ScoredSentence]
    top_sentences: List[str]
    language: str
    extraction_ratio: float
    raw_sentence_count: int = 0

    @property
    def sentence_count(self) -> int:
        return len(self.sentences)


def _is_abbreviation(chunk: str) -> bool:
    m = _LAST_WORD_RE.search(chunk)
    if not m:
        return False
    word = m.group(1).lower().rstrip('.')
    # single initials such as "J. Smith"
    if len(word) == 1:
        return True
    return word in _ABBREVIATIONS


def _split_paragraph(paragraph: str) -> List[str]:
    parts = []
    start = 0
    for m in _BOUNDARY_RE.finditer(paragraph):
        if m.group(0).strip() == '.' and _is_abbreviation(paragraph[start:m.start()]) and m.end() < len(paragraph):
            continue
        parts.append(paragraph[start:m.end()])
        start = m.end()
    if start < len(paragraph):
        parts.append(paragraph[start:])
    return parts


def split_sentences(text: str) -> List[str]:
    sentences = []
    for paragraph in re.split(r'\n+', text or ''):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        for part in _split_paragraph(paragraph):
            sentence = part.strip()
            if len(sentence) >= MIN_SENTENCE_LENGTH:
                sentences.append(sentence)
    return sentences


def _jaccard(a: Sequence[str], b: Sequence[str]) -> float:
    if not a or not b:
        return 0.0
    sa, sb = set(a), set(b)
    return len(sa & sb) / len(sa | sb)


def remove_duplicate_sentences(sentences: List[ScoredSentence], threshold: float = DUPLICATE_SIMILARITY_THRESHOLD) -> List[ScoredSentence]:
    """Drop near-duplicates, keeping the higher-scored sentence of each pair.

    Candidates are visited best-first so a kept sentence always outscores
    anything it suppresses; the result is returned in document order.
    """
    kept: List[ScoredSentence] = []
    for sentence in sorted(sentences, key=lambda s: (-s.score, s.index)):
        tokens = sentence.tokens or tokenize(sentence.text)
        if any(_jaccard(tokens, k.tokens or tokenize(k.text)) >= threshold for k in kept):
            continue
        kept.append(sentence)
    return sorted(kept, key=lambda s: s.index)


def calculate_extract_count(total_sentences: int) -> int:
    if total_sentences <= 5:
        return total_sentences
    return min(total_sentences, max(10, math.floor(total_sentences * 0.4)))


def extract_top_sentences(sentences: List[ScoredSentence], count: Optional[int] = None) -> List[ScoredSentence]:
    """Top ``count`` by score, ties broken by document order; returned in document order."""
    if not sentences:
        return []
    n = calculate_extract_count(len(sentences)) if count is None else count
    ranked = sorted(sentences, key=lambda s: (-s.score, s.index))
    return sorted(ranked[:n], key=lambda s: s.index)


def should_preprocess(text: str) -> bool:
    return len(text or '') >= PREPROCESS_MIN_LENGTH


def process_text(text: str) -> ProcessedText:
    start = time.time()
    text = text or ''
    language = detect_language(text)
    raw = split_sentences(text)
    if not raw:
        LOG.warning('nlp_no_sentences', extra={'text_length': len(text)})
        return ProcessedText(original_length=len(text), sentences=[], top_sentences=[], language=language, extraction_ratio=0.0)

    scored = [
        ScoredSentence(text=row['sentence'], score=row['score'], tokens=row['tokens'], position=i / len(raw), index=i)
        for i, row in enumerate(calculate_all_sentence_scores(raw))
    ]
    unique = remove_duplicate_sentences(scored)
    top = extract_top_sentences(unique)
    ranked = sorted(unique, key=lambda s: (-s.score, s.index))
    top_text = [s.text for s in top]
    ratio = sum(len(s) for s in top_text) / len(text) if text else 0.0

    LOG.debug('nlp_processed', extra={
        'language': language,
        'raw_sentences': len(raw),
        'duplicates_removed': len(scored) - len(unique),
        'top_sentences': len(top),
        'duration_ms': int((time.time() - start) * 1000),
    })
    return ProcessedText(
        original_length=len(text),
        sentences=ranked,
        top_sentences=top_text,
        language=language,
        extraction_ratio=min(1.0, ratio),
        raw_sentence_count=len(raw),
    )
