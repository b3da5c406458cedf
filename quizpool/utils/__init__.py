"""Utility subpackage for quizpool modules"""

from .logger import (
    get_logger,
    log_request,
    log_error,
    log_llm_call,
    log_model_fallback,
    log_quiz_generation,
    log_bank_operation,
    log_cache_event,
    set_request_context,
    get_request_context,
)

__all__ = [
    'get_logger',
    'log_request',
    'log_error',
    'log_llm_call',
    'log_model_fallback',
    'log_quiz_generation',
    'log_bank_operation',
    'log_cache_event',
    'set_request_context',
    'get_request_context',
]
