"""
Quiz pipeline: validation, capacity, answer matching, transformation,
batch generation, pool orchestration and bank-backed retrieval.
"""
from .validation import (
    InputValidationError,
    validate_content,
    validate_question_count,
    validate_difficulty,
    validate_load_more_count,
    validate_quiz,
    validate_session_size,
)
from .capacity import QuestionCapacity, TextQualityMetrics, analyze_text_quality, calculate_question_capacity, quick_capacity_check, is_within_capacity
from .answer_matcher import MatchResult, MatchType, normalize_answer, check_answer
from .transformer import (
    TransformationOptions,
    DEFAULT_TRANSFORMATION_OPTIONS,
    transform_questions,
    transform_swap_answer,
    transform_shift_blank,
    transform_negate,
    transform_shuffle_options,
    transform_mcq_to_ox,
)
from .batch_generator import BatchGenerationConfig, BatchGenerationResult, GenerationCancelledError, generate_question_batch
from .question_pool import QuestionPoolConfig, QuestionPoolResult, PoolMetrics, generate_question_pool, create_quiz_from_pool, generate_quiz_pool
from .bank_service import BankGenerationResult, LoadMoreResult, BankNotFoundError, get_or_generate_question_bank, load_more_questions, get_remaining_question_count
from .quiz_service import QuizGenerationResult, generate_quiz

__all__ = [
    'InputValidationError', 'validate_content', 'validate_question_count', 'validate_difficulty', 'validate_load_more_count', 'validate_quiz', 'validate_session_size',
    'QuestionCapacity', 'TextQualityMetrics', 'analyze_text_quality', 'calculate_question_capacity', 'quick_capacity_check', 'is_within_capacity',
    'MatchResult', 'MatchType', 'normalize_answer', 'check_answer',
    'TransformationOptions', 'DEFAULT_TRANSFORMATION_OPTIONS', 'transform_questions',
    'transform_swap_answer', 'transform_shift_blank', 'transform_negate', 'transform_shuffle_options', 'transform_mcq_to_ox',
    'BatchGenerationConfig', 'BatchGenerationResult', 'GenerationCancelledError', 'generate_question_batch',
    'QuestionPoolConfig', 'QuestionPoolResult', 'PoolMetrics', 'generate_question_pool', 'create_quiz_from_pool', 'generate_quiz_pool',
    'BankGenerationResult', 'LoadMoreResult', 'BankNotFoundError', 'get_or_generate_question_bank', 'load_more_questions', 'get_remaining_question_count',
    'QuizGenerationResult', 'generate_quiz',
]
