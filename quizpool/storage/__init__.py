"""
Persistence: content hashing, the question bank repository and the generation cache.
"""
from .hashing import normalize_content, hash_content, hash_options
from .bank_store import BankStore, SQLiteBankStore, QuestionBank, FetchResult, BankState, bank_state, PersistenceError
from .quiz_cache import QuizCache

__all__ = [
    'normalize_content', 'hash_content', 'hash_options',
    'BankStore', 'SQLiteBankStore', 'QuestionBank', 'FetchResult', 'BankState', 'bank_state', 'PersistenceError',
    'QuizCache',
]
