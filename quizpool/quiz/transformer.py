"""Rule-based question transformations.

Each transform takes one seed question and returns a new question (or a list,
for mcq -> ox) or None when the question is not eligible. Transforms never
raise on malformed input. Every output gets a fresh id and carries its
provenance in ``source_type``, ``transform_type`` and ``original_id``.
"""
import math
import random
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from quizpool.models import OX_OPTIONS, Question, QuestionType, SourceType, TransformType, new_id
from quizpool.nlp import detect_language, tokenize
from quizpool.utils import get_logger
from .answer_matcher import normalize_answer

LOG = get_logger()

BLANK_RE = re.compile(r'\[_{2,}\]')
BLANK = '[____]'

# first matching pattern wins
_SWAP_REPLACEMENTS = [
    (re.compile(r'맞는\s*것'), '틀린 것'),
    (re.compile(r'옳은\s*것'), '옳지 않은 것'),
    (re.compile(r'올바른\s*것'), '올바르지 않은 것'),
    (re.compile(r'해당하는\s*것'), '해당하지 않는 것'),
    (re.compile(r'\bcorrect\b', re.IGNORECASE), 'incorrect'),
    (re.compile(r'\btrue\b', re.IGNORECASE), 'false'),
    (re.compile(r'\bright\b', re.IGNORECASE), 'wrong'),
]

_NEGATION_PAIRS_KO = [
    ('이다', '이 아니다'),
    ('있다', '없다'),
    ('맞다', '틀리다'),
    ('가능하다', '불가능하다'),
    ('포함한다', '포함하지 않는다'),
    ('한다', '하지 않는다'),
]

_NEGATION_PAIRS_EN = [
    ('is', 'is not'),
    ('are', 'are not'),
    ('can', 'cannot'),
    ('has', 'does not have'),
]


@dataclass
class TransformationOptions:
    enable_swap_answers: bool = True
    enable_blank_shift: bool = True
    enable_negation: bool = True
    enable_option_shuffle: bool = True
    # off by default: generated statements read awkwardly
    enable_type_conversion: bool = False
    multiplier: float = 2.0
    keep_seed: bool = True


DEFAULT_TRANSFORMATION_OPTIONS = TransformationOptions()


def _is_english(text: str) -> bool:
    return detect_language(text) == 'en'


def _derive(source: Question, transform: TransformType, **fields) -> Optional[Question]:
    data = {
        'id': new_id(),
        'type': source.type,
        'question_text': source.question_text,
        'options': source.options,
        'correct_answers': source.correct_answers,
        'explanation': source.explanation,
        'source_type': SourceType.TRANSFORMED,
        'transform_type': transform,
        'original_id': source.original_id or source.id,
    }
    data.update(fields)
    try:
        return Question(**data)
    except ValueError as e:
        LOG.debug('transform_rejected', extra={'transform': transform.value, 'source_id': source.id, 'error': str(e)})
        return None


def transform_swap_answer(question: Question, rng: Optional[random.Random] = None) -> Optional[Question]:
    """Ask for an option that is NOT the answer; every former distractor becomes acceptable."""
    rng = rng or random
    if question.type != QuestionType.MCQ or not question.options or len(question.options) < 2:
        return None
    distractors = [o for o in question.options if o not in question.correct_answers]
    if not distractors:
        return None
    chosen = rng.choice(distractors)

    text = question.question_text
    for pattern, replacement in _SWAP_REPLACEMENTS:
        if pattern.search(text):
            text = pattern.sub(replacement, text, count=1)
            break
    else:
        if _is_english(text):
            stem = text[:-1] if text.endswith('?') else text
            text = f'{stem} (choose the option that is NOT correct)?'
        elif text.endswith('?'):
            text = text[:-1] + ' 아닌 것은?'
        else:
            text = text + ' (해당하지 않는 것)'

    explanation = f'Original answer: {question.canonical_answer}.'
    if question.explanation:
        explanation = f'{explanation} {question.explanation}'
    return _derive(
        question, TransformType.SWAP_ANSWER,
        question_text=text,
        options=list(question.options),
        correct_answers=[chosen] + [d for d in distractors if d != chosen],
        explanation=explanation,
    )


def transform_shift_blank(question: Question, rng: Optional[random.Random] = None) -> Optional[Question]:
    """Fill the blank with its answer, then blank out a different keyword of the sentence."""
    rng = rng or random
    if question.type not in (QuestionType.FILL, QuestionType.SHORT):
        return None
    if not BLANK_RE.search(question.question_text):
        return None
    answer = question.canonical_answer
    filled = BLANK_RE.sub(lambda _m: answer, question.question_text)

    answer_norm = answer.lower()
    candidates = []
    for token in dict.fromkeys(tokenize(filled)):
        if len(token) < 2 or token.isdigit() or token in answer_norm or answer_norm in token:
            continue
        if re.search(re.escape(token), filled, re.IGNORECASE):
            candidates.append(token)
    if not candidates:
        return None

    keyword = rng.choice(candidates)
    m = re.search(re.escape(keyword), filled, re.IGNORECASE)
    new_answer = filled[m.start():m.end()]
    new_text = filled[:m.start()] + BLANK + filled[m.end():]
    return _derive(
        question, TransformType.SHIFT_BLANK,
        type=QuestionType.FILL,
        question_text=new_text,
        options=None,
        correct_answers=[new_answer],
        explanation=f'Shifted blank. Original blank: {answer}',
    )


def _negate_korean(text: str) -> Optional[str]:
    for positive, negative in _NEGATION_PAIRS_KO:
        if negative in text:
            i = text.rfind(negative)
            return text[:i] + positive + text[i + len(negative):]
        if positive in text:
            i = text.rfind(positive)
            return text[:i] + negative + text[i + len(positive):]
    return None


def _negate_english(text: str) -> Optional[str]:
    for positive, negative in _NEGATION_PAIRS_EN:
        neg_re = re.compile(r'\b' + re.escape(negative) + r'\b', re.IGNORECASE)
        if neg_re.search(text):
            return neg_re.sub(positive, text, count=1)
        pos_re = re.compile(r'\b' + re.escape(positive) + r'\b', re.IGNORECASE)
        if pos_re.search(text):
            return pos_re.sub(negative, text, count=1)
    return None


def transform_negate(question: Question, rng: Optional[random.Random] = None) -> Optional[Question]:
    if question.type != QuestionType.OX or question.canonical_answer not in OX_OPTIONS:
        return None
    text = question.question_text
    negated = _negate_english(text) if _is_english(text) else _negate_korean(text)
    if negated is None or negated == text:
        return None
    flipped = 'X' if question.canonical_answer == 'O' else 'O'
    return _derive(
        question, TransformType.NEGATE,
        question_text=negated,
        options=list(OX_OPTIONS),
        correct_answers=[flipped],
        explanation=f'Negated statement. Original answer: {question.canonical_answer}',
    )


def transform_shuffle_options(question: Question, rng: Optional[random.Random] = None) -> Optional[Question]:
    rng = rng or random
    if question.type != QuestionType.MCQ or not question.options or len(set(question.options)) < 2:
        return None
    shuffled = list(question.options)
    rng.shuffle(shuffled)
    if shuffled == question.options:
        shuffled = shuffled[1:] + shuffled[:1]
    return _derive(question, TransformType.SHUFFLE_OPTIONS, options=shuffled)


def _ox_statement(text: str, option: str) -> str:
    if _is_english(text):
        stem = text[:-1] if text.endswith('?') else text
        return f'{stem}: "{option}".'
    if '무엇' in text:
        return re.sub(r'무엇.*\?', f'"{option}"이다.', text, count=1)
    if text.endswith('?'):
        return f'{text[:-1]}의 답은 "{option}"이다.'
    return f'{text}: "{option}"'


def transform_mcq_to_ox(question: Question, rng: Optional[random.Random] = None) -> List[Question]:
    """One O/X statement per option asserting that option is the answer."""
    if question.type != QuestionType.MCQ or not question.options:
        return []
    out = []
    for option in question.options:
        q = _derive(
            question, TransformType.MCQ_TO_OX,
            type=QuestionType.OX,
            question_text=_ox_statement(question.question_text, option),
            options=list(OX_OPTIONS),
            correct_answers=['O' if option in question.correct_answers else 'X'],
        )
        if q is not None:
            out.append(q)
    return out


def _signature(q: Question) -> tuple:
    return (q.type.value, normalize_answer(q.question_text), tuple(q.options or ()), normalize_answer(q.canonical_answer))


def _enabled_transforms(options: TransformationOptions) -> List[Callable]:
    transforms = []
    if options.enable_swap_answers:
        transforms.append(transform_swap_answer)
    if options.enable_blank_shift:
        transforms.append(transform_shift_blank)
    if options.enable_negation:
        transforms.append(transform_negate)
    if options.enable_option_shuffle:
        transforms.append(transform_shuffle_options)
    if options.enable_type_conversion:
        transforms.append(transform_mcq_to_ox)
    return transforms


def transform_questions(seed: Sequence[Question], target_count: Optional[int] = None,
                        options: Optional[TransformationOptions] = None,
                        rng: Optional[random.Random] = None) -> List[Question]:
    """Grow ``seed`` with transformed variants up to ``target_count``.

    The default target is ``len(seed) * options.multiplier``. The seed is kept
    at the front of the output unless ``options.keep_seed`` is False, and is
    never truncated. Ids in the output are pairwise distinct.
    """
    options = options or DEFAULT_TRANSFORMATION_OPTIONS
    rng = rng or random.Random()
    seed = [q for q in seed if isinstance(q, Question)]
    target = target_count if target_count is not None else math.ceil(len(seed) * options.multiplier)

    output: List[Question] = list(seed) if options.keep_seed else []
    used_ids = {q.id for q in seed}
    seen = {_signature(q) for q in seed}
    transforms = _enabled_transforms(options)
    extra_target = target if not options.keep_seed else target - len(output)
    if not seed or not transforms or extra_target <= 0:
        return output

    added = 0
    max_attempts = len(seed) * len(transforms) * 3
    for attempt in range(max_attempts):
        if added >= extra_target:
            break
        source = seed[attempt % len(seed)]
        transform = transforms[(attempt // len(seed)) % len(transforms)]
        result = transform(source, rng)
        if result is None:
            continue
        for q in (result if isinstance(result, list) else [result]):
            sig = _signature(q)
            if sig in seen:
                continue
            while q.id in used_ids:
                q.id = new_id()
            seen.add(sig)
            used_ids.add(q.id)
            output.append(q)
            added += 1
            if added >= extra_target:
                break

    if added < extra_target:
        LOG.info('transform_shortfall', extra={'requested': extra_target, 'added': added, 'seed_count': len(seed)})
    return output
