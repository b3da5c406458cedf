import re
import json
import hashlib
import unicodedata

from quizpool.models import QuizGenerationOptions


def normalize_content(content: str) -> str:
    text = unicodedata.normalize('NFC', content or '')
    return re.sub(r'\s+', ' ', text).strip()


def hash_content(content: str) -> str:
    """Stable SHA-256 of the normalized text; equal for whitespace-only variations."""
    return hashlib.sha256(normalize_content(content).encode('utf-8')).hexdigest()


def hash_options(options: QuizGenerationOptions) -> str:
    j = json.dumps({'difficulty': options.difficulty.value, 'question_count': options.question_count}, sort_keys=True)
    return hashlib.sha256(j.encode('utf-8')).hexdigest()[:16]
