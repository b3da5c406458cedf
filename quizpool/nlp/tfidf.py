import math
from collections import Counter
from typing import Dict, List, Optional, Sequence

from .tokenizer import tokenize


def calculate_tf(tokens: Sequence[str]) -> Dict[str, float]:
    if not tokens:
        return {}
    total = len(tokens)
    return {term: count / total for term, count in Counter(tokens).items()}


def calculate_idf(documents: Sequence[Sequence[str]]) -> Dict[str, float]:
    """Smoothed IDF: ln((N + 1) / (df + 1)) + 1, always >= 1."""
    n = len(documents)
    df = Counter()
    for doc in documents:
        df.update(set(doc))
    return {term: math.log((n + 1) / (freq + 1)) + 1 for term, freq in df.items()}


def calculate_sentence_tfidf(tokens: Sequence[str], all_documents: Sequence[Sequence[str]] = (), idf_cache: Optional[Dict[str, float]] = None) -> float:
    if not tokens:
        return 0.0
    idf = idf_cache if idf_cache is not None else calculate_idf(all_documents)
    tf = calculate_tf(tokens)
    return sum(freq * idf.get(term, 1.0) for term, freq in tf.items())


def calculate_all_sentence_scores(sentences: Sequence[str]) -> List[dict]:
    """Score every sentence against one IDF table built from the whole corpus.

    Returns dicts with ``sentence``, ``score`` and ``tokens`` in input order.
    """
    tokenized = [tokenize(s) for s in sentences]
    idf = calculate_idf(tokenized)
    return [
        {'sentence': sentence, 'score': calculate_sentence_tfidf(tokens, idf_cache=idf), 'tokens': tokens}
        for sentence, tokens in zip(sentences, tokenized)
    ]
