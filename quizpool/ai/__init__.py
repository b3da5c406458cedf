"""
AI quiz generation: prompts, response schemas and the model-fallback generator.
"""
from .generator import (
    QuizGenerator,
    PromptSpec,
    GenerationResult,
    AIGenerationError,
    AIProviderError,
    AIRateLimitError,
    AISchemaValidationError,
    AITimeoutError,
)
from .prompts import SYSTEM_PROMPT, DIFFICULTY_DESCRIPTIONS, build_user_prompt, build_batch_suffix, get_question_type_distribution
from .schemas import AIQuestion, AIQuizPayload

__all__ = [
    'QuizGenerator', 'PromptSpec', 'GenerationResult',
    'AIGenerationError', 'AIProviderError', 'AIRateLimitError', 'AISchemaValidationError', 'AITimeoutError',
    'SYSTEM_PROMPT', 'DIFFICULTY_DESCRIPTIONS', 'build_user_prompt', 'build_batch_suffix', 'get_question_type_distribution',
    'AIQuestion', 'AIQuizPayload',
]
