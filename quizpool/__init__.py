"""
Question-pool generation and retrieval for text-based quizzes.

Subpackages:
- nlp: tokenization, TF-IDF scoring and sentence extraction
- ai: prompt construction and model-fallback quiz generation
- storage: content hashing, question bank repository, generation cache
- quiz: capacity analysis, answer matching, transformation, pool and bank services
"""

__version__ = '1.0.0'
