"""Language detection and tokenization for Korean and English text.

Korean tokens are produced by splitting on Hangul runs and stripping a
trailing particle or verb ending. This is an approximation of morphological
analysis; it only has to be stable and good enough for keyword statistics.
"""
import re
from typing import Iterable, List

KOREAN_STOPWORDS = frozenset([
    # particles
    '이', '가', '을', '를', '의', '에', '에서', '로', '으로', '와', '과',
    '도', '만', '은', '는', '이다', '입니다', '있다', '없다', '하다',
    # conjunctions
    '그리고', '그러나', '그래서', '하지만', '또한', '또는', '및',
    # pronouns
    '나', '너', '우리', '저', '그', '이것', '저것', '그것',
    # adverbs
    '매우', '아주', '정말', '너무', '가장', '더', '덜',
    # misc
    '등', '것', '수', '때', '중', '후', '전', '안', '밖',
])

ENGLISH_STOPWORDS = frozenset([
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'shall', 'can', 'need', 'dare',
    'ought', 'used', 'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by',
    'from', 'as', 'into', 'through', 'during', 'before', 'after', 'above',
    'below', 'between', 'under', 'again', 'further', 'then', 'once',
    'and', 'but', 'or', 'nor', 'so', 'yet', 'both', 'either', 'neither',
    'not', 'only', 'own', 'same', 'than', 'too', 'very', 'just',
    'i', 'me', 'my', 'myself', 'we', 'our', 'ours', 'ourselves',
    'you', 'your', 'yours', 'yourself', 'yourselves',
    'he', 'him', 'his', 'himself', 'she', 'her', 'hers', 'herself',
    'it', 'its', 'itself', 'they', 'them', 'their', 'theirs', 'themselves',
    'this', 'that', 'these', 'those', 'what', 'which', 'who', 'whom',
])

# longest first so '에서는' wins over '는'
KOREAN_SUFFIXES = tuple(sorted([
    '에서는', '으로는', '에게서', '이라는', '으로써', '입니다', '합니다', '됩니다',
    '에서', '으로', '에게', '까지', '부터', '에는', '처럼', '보다', '이다', '이며',
    '하는', '하여', '하고', '한다', '했다', '되는', '된다', '되어', '라는', '와는', '과는',
    '은', '는', '이', '가', '을', '를', '의', '에', '로', '와', '과', '도', '만', '며',
], key=len, reverse=True))

LANG_KO = 'ko'
LANG_EN = 'en'
LANG_MIXED = 'mixed'

MIXED_THRESHOLD = 0.3

_HANGUL_RE = re.compile(r'[가-힣]')
_LATIN_RE = re.compile(r'[a-zA-Z]')
_WORD_RE = re.compile(r'[가-힣]+|[A-Za-z0-9]+')


def detect_language(text: str) -> str:
    length = len(text) or 1
    korean_ratio = len(_HANGUL_RE.findall(text)) / length
    english_ratio = len(_LATIN_RE.findall(text)) / length

    if korean_ratio > MIXED_THRESHOLD and english_ratio > MIXED_THRESHOLD:
        return LANG_MIXED
    if korean_ratio > english_ratio:
        return LANG_KO
    return LANG_EN


def _strip_korean_suffix(word: str) -> str:
    for suffix in KOREAN_SUFFIXES:
        if word.endswith(suffix) and word != suffix:
            stem = word[:-len(suffix)]
            # single-syllable particles only come off stems of two or more syllables
            if len(suffix) == 1 and len(stem) < 2:
                continue
            return stem
    return word


def tokenize_korean(text: str, include_latin: bool = True) -> List[str]:
    tokens = []
    for word in _WORD_RE.findall(text):
        if _HANGUL_RE.match(word):
            token = _strip_korean_suffix(word)
        elif include_latin and not word.isdigit():
            token = word.lower()
        else:
            continue
        if len(token) > 1 and token not in KOREAN_STOPWORDS:
            tokens.append(token)
    return tokens


def tokenize_english(text: str) -> List[str]:
    cleaned = re.sub(r'[^a-z0-9\s]', ' ', text.lower())
    return [t for t in cleaned.split() if len(t) > 2 and t not in ENGLISH_STOPWORDS]


def tokenize(text: str) -> List[str]:
    language = detect_language(text)
    if language == LANG_KO:
        return tokenize_korean(text)
    if language == LANG_EN:
        return tokenize_english(text)
    return tokenize_korean(text, include_latin=False) + tokenize_english(text)


def remove_stopwords(tokens: Iterable[str], language: str = LANG_MIXED) -> List[str]:
    if language == LANG_KO:
        stopwords = KOREAN_STOPWORDS
    elif language == LANG_EN:
        stopwords = ENGLISH_STOPWORDS
    else:
        stopwords = KOREAN_STOPWORDS | ENGLISH_STOPWORDS
    return [t for t in tokens if t.lower() not in stopwords]
