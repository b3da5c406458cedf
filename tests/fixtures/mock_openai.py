import json
from types import SimpleNamespace

import httpx
import openai

MOCK_QUIZ_RESPONSE = json.dumps({
    'title': 'Photosynthesis',
    'questions': [
        {'type': 'mcq', 'question_text': 'Where does photosynthesis happen?', 'options': ['Chloroplast', 'Nucleus', 'Ribosome', 'Vacuole'],
         'correct_answers': ['Chloroplast'], 'explanation': 'Chloroplasts hold chlorophyll.'},
        {'type': 'ox', 'question_text': 'Photosynthesis releases oxygen.', 'options': ['O', 'X'], 'correct_answer': 'O'},
        {'type': 'fill', 'question_text': 'Plants store glucose as [____].', 'correct_answers': ['starch']},
    ],
})

_REQUEST = httpx.Request('POST', 'https://api.openai.test/v1/chat/completions')


def rate_limit_error():
    return openai.RateLimitError('rate limited', response=httpx.Response(429, request=_REQUEST), body=None)


def timeout_error():
    return openai.APITimeoutError(request=_REQUEST)


def build_response(content, prompt_tokens=10, completion_tokens=20):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(role='assistant', content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class MockOpenAIClient:
    """Replays ``outcomes`` in order: strings become responses, exceptions are raised."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []
        self.timeouts = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def with_options(self, timeout=None, **kwargs):
        self.timeouts.append(timeout)
        return self

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return build_response(outcome)
