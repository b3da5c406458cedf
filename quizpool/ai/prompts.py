import math
from typing import Dict, Iterable, List

from quizpool.models import Difficulty, QuizGenerationOptions

SYSTEM_PROMPT = (
    "You are an education specialist that writes study quizzes from a source text.\n"
    "Rules:\n"
    "1. Pick the most important sentences of the text and keep their meaning intact.\n"
    "2. For fill-in-the-blank questions replace the key term with [____].\n"
    "3. mcq: exactly 4 short options, one correct, plausible but clearly wrong distractors.\n"
    "4. ox: the question is a statement; options are [\"O\", \"X\"] and the answer is \"O\" or \"X\".\n"
    "5. short: no options; the answer is one or two words.\n"
    "6. Questions must be unambiguous; explanations short and clear.\n"
    "7. Write the questions in the same language as the source text.\n"
    "Return only a JSON object of the form "
    "{\"title\": str, \"questions\": [{\"type\": \"mcq|ox|short|fill\", \"question_text\": str, "
    "\"options\": [str] | null, \"correct_answers\": [str], \"explanation\": str | null}]}. "
    "The first entry of correct_answers is the canonical answer; add accepted alternate spellings after it."
)

DIFFICULTY_DESCRIPTIONS: Dict[str, str] = {
    Difficulty.EASY.value: 'easy: key terms and basic concepts, mostly multiple choice.',
    Difficulty.MEDIUM.value: 'medium: understanding and applying concepts, mix of multiple choice and O/X.',
    Difficulty.HARD.value: 'hard: advanced concepts and reasoning, includes short answer.',
}

# (mcq, ox, short) shares per difficulty
_TYPE_SHARES = {
    Difficulty.EASY.value: (0.8, 0.2, 0.0),
    Difficulty.MEDIUM.value: (0.6, 0.3, 0.1),
    Difficulty.HARD.value: (0.4, 0.3, 0.3),
}

MAX_SUFFIX_TOPICS = 10


def get_question_type_distribution(difficulty, total_count: int) -> Dict[str, int]:
    key = difficulty.value if isinstance(difficulty, Difficulty) else str(difficulty)
    mcq, ox, short = _TYPE_SHARES.get(key, _TYPE_SHARES[Difficulty.MEDIUM.value])
    return {
        'mcq': math.ceil(total_count * mcq),
        'ox': math.floor(total_count * ox),
        'short': math.floor(total_count * short),
    }


def build_user_prompt(content: str, options: QuizGenerationOptions, suffix: str = '') -> str:
    difficulty = options.difficulty.value
    dist = get_question_type_distribution(difficulty, options.question_count)
    return (
        "Create a study quiz from the text below.\n\n"
        f"Text:\n```\n{content}\n```\n\n"
        "Requirements:\n"
        f"- Number of questions: {options.question_count}\n"
        f"- Difficulty: {DIFFICULTY_DESCRIPTIONS[difficulty]}\n"
        f"- Suggested type mix: {dist['mcq']} mcq, {dist['ox']} ox, {dist['short']} short or fill\n"
        "- Title: a short title that represents the text\n"
        "- Cover the core content of the text; mark blanks exactly as [____]; give mcq questions 4 options"
        f"{suffix}"
    )


def build_batch_suffix(covered_topics: Iterable[str], batch_index: int) -> str:
    topics: List[str] = list(dict.fromkeys(t for t in covered_topics if t))[:MAX_SUFFIX_TOPICS]
    if not topics:
        return ''
    return (
        f"\n\nAdditional instructions (batch {batch_index + 1}):\n"
        f"- Questions already exist on these topics, use other parts of the text: {', '.join(topics)}\n"
        "- Do not repeat earlier questions; take a new angle."
    )
