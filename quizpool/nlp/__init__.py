"""
Text analysis: tokenization, TF-IDF scoring and sentence extraction.
"""
from .tokenizer import detect_language, tokenize, tokenize_korean, tokenize_english, remove_stopwords, KOREAN_STOPWORDS, ENGLISH_STOPWORDS
from .tfidf import calculate_tf, calculate_idf, calculate_sentence_tfidf, calculate_all_sentence_scores
from .text_processor import (
    ScoredSentence,
    ProcessedText,
    split_sentences,
    remove_duplicate_sentences,
    extract_top_sentences,
    calculate_extract_count,
    process_text,
    should_preprocess,
)

__all__ = [
    'detect_language', 'tokenize', 'tokenize_korean', 'tokenize_english', 'remove_stopwords',
    'KOREAN_STOPWORDS', 'ENGLISH_STOPWORDS',
    'calculate_tf', 'calculate_idf', 'calculate_sentence_tfidf', 'calculate_all_sentence_scores',
    'ScoredSentence', 'ProcessedText', 'split_sentences', 'remove_duplicate_sentences',
    'extract_top_sentences', 'calculate_extract_count', 'process_text', 'should_preprocess',
]
