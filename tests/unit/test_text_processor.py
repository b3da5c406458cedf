import math

import pytest

from quizpool.nlp import (
    ScoredSentence,
    calculate_all_sentence_scores,
    calculate_extract_count,
    calculate_idf,
    calculate_sentence_tfidf,
    calculate_tf,
    extract_top_sentences,
    process_text,
    remove_duplicate_sentences,
    should_preprocess,
    split_sentences,
)


def test_calculate_tf():
    tf = calculate_tf(['cell', 'cell', 'energy', 'light'])
    assert tf['cell'] == pytest.approx(0.5)
    assert tf['energy'] == pytest.approx(0.25)
    assert calculate_tf([]) == {}


def test_calculate_idf_rare_terms_weigh_more():
    docs = [['cell', 'energy'], ['cell', 'light'], ['cell', 'water']]
    idf = calculate_idf(docs)
    assert idf['cell'] == pytest.approx(1.0)
    assert idf['energy'] == pytest.approx(math.log(4 / 2) + 1)
    assert idf['energy'] > idf['cell']


def test_sentence_tfidf_empty_and_unknown_terms():
    assert calculate_sentence_tfidf([]) == 0.0
    # terms missing from the idf table count with weight 1
    assert calculate_sentence_tfidf(['novel'], idf_cache={}) == pytest.approx(1.0)


def test_all_sentence_scores_keep_input_order():
    sentences = ['Chlorophyll absorbs red and blue light.', 'Water moves through the xylem vessels.']
    rows = calculate_all_sentence_scores(sentences)
    assert [r['sentence'] for r in rows] == sentences
    assert all(r['score'] > 0 for r in rows)
    assert 'chlorophyll' in rows[0]['tokens']


def test_all_sentence_scores_are_deterministic(korean_text):
    sentences = split_sentences(korean_text)
    first = [r['score'] for r in calculate_all_sentence_scores(sentences)]
    second = [r['score'] for r in calculate_all_sentence_scores(sentences)]
    assert first == second


def test_single_sentence_corpus_scores_through_smoothing():
    rows = calculate_all_sentence_scores(['Chlorophyll absorbs red and blue light.'])
    score = rows[0]['score']
    assert score > 0
    assert not math.isnan(score)


def test_split_sentences_basic_and_min_length():
    text = 'Photosynthesis happens in leaves. Ok. Plants release oxygen into the air!'
    assert split_sentences(text) == ['Photosynthesis happens in leaves.', 'Plants release oxygen into the air!']


def test_split_sentences_keeps_abbreviations_together():
    text = 'The experiment was run by Dr. Kim in the lab. It took three weeks to finish.'
    assert split_sentences(text) == ['The experiment was run by Dr. Kim in the lab.', 'It took three weeks to finish.']


def test_split_sentences_splits_on_newlines():
    text = '첫 번째 문단의 문장입니다\n두 번째 문단의 문장입니다'
    assert len(split_sentences(text)) == 2


def test_remove_duplicate_sentences_keeps_higher_score_in_document_order():
    a = ScoredSentence(text='light energy drives photosynthesis', score=1.0, tokens=['light', 'energy', 'drives', 'photosynthesis'], index=0)
    b = ScoredSentence(text='water flows in xylem', score=0.5, tokens=['water', 'flows', 'xylem'], index=1)
    c = ScoredSentence(text='light energy drives photosynthesis!', score=2.0, tokens=['light', 'energy', 'drives', 'photosynthesis'], index=2)
    kept = remove_duplicate_sentences([a, b, c])
    assert [s.index for s in kept] == [1, 2]


def test_calculate_extract_count():
    assert calculate_extract_count(3) == 3
    assert calculate_extract_count(5) == 5
    assert calculate_extract_count(8) == 8
    assert calculate_extract_count(12) == 10
    assert calculate_extract_count(40) == 16


def test_extract_top_sentences_returns_document_order():
    sentences = [ScoredSentence(text=f's{i}', score=s, index=i) for i, s in enumerate([0.1, 0.9, 0.5, 0.7])]
    top = extract_top_sentences(sentences, count=2)
    assert [s.index for s in top] == [1, 3]
    assert extract_top_sentences([]) == []


def test_should_preprocess(korean_text):
    assert should_preprocess(korean_text)
    assert not should_preprocess('짧은 텍스트입니다.')


def test_process_text_korean(korean_text):
    processed = process_text(korean_text)
    assert processed.language == 'ko'
    assert processed.original_length == len(korean_text)
    assert processed.sentence_count >= 10
    scores = [s.score for s in processed.sentences]
    assert scores == sorted(scores, reverse=True)
    assert 0 < len(processed.top_sentences) <= processed.sentence_count
    positions = [korean_text.index(s) for s in processed.top_sentences]
    assert positions == sorted(positions)
    assert 0.0 < processed.extraction_ratio <= 1.0


def test_process_text_without_sentences():
    processed = process_text('짧다')
    assert processed.sentence_count == 0
    assert processed.top_sentences == []
    assert processed.extraction_ratio == 0.0
