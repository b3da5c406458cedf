"""AI quiz generation with per-call timeout, rate-limit retry and model fallback.

The generator is a thin capability: given a prompt and an output schema it
returns a validated structured result or raises one of the exceptions below.
Callers that need more than one attempt either use ``generate_with_fallback``
or walk ``models`` themselves (see quizpool.quiz.batch_generator).
"""
import os
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

import openai
from openai import OpenAI
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from quizpool.utils import get_logger, get_request_context, log_llm_call, log_model_fallback

LOG = get_logger()


# Exceptions
class AIGenerationError(Exception):
    """Base class; raised directly when every attempt across every model failed."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []


class AIProviderError(AIGenerationError):
    pass


class AIRateLimitError(AIProviderError):
    pass


class AISchemaValidationError(AIGenerationError):
    pass


class AITimeoutError(AIGenerationError):
    pass


# Env
AI_MODELS = [m.strip() for m in os.getenv('AI_MODELS', 'gpt-4o-mini,gpt-4.1-mini,gpt-3.5-turbo').split(',') if m.strip()]
AI_TIMEOUT = float(os.getenv('AI_TIMEOUT', '30'))
AI_MAX_TOKENS = int(os.getenv('AI_MAX_TOKENS', '4000'))
AI_TEMPERATURE = float(os.getenv('AI_TEMPERATURE', '0.5'))
AI_RETRY_ATTEMPTS = int(os.getenv('AI_RETRY_ATTEMPTS', '2'))
AI_RETRY_MAX_WAIT = int(os.getenv('AI_RETRY_MAX_WAIT', '10'))


@dataclass
class PromptSpec:
    system: str
    user: str
    question_count: int = 0

    def to_messages(self) -> List[dict]:
        return [
            {'role': 'system', 'content': self.system},
            {'role': 'user', 'content': self.user},
        ]


@dataclass
class GenerationResult:
    payload: Any
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    duration_ms: int = 0
    attempted_models: List[str] = field(default_factory=list)

    @property
    def tokens_used(self) -> int:
        return self.prompt_tokens + self.completion_tokens


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith('```'):
        first_nl = text.find('\n')
        if first_nl != -1:
            text = text[first_nl + 1:]
        if text.endswith('```'):
            text = text[:-3]
    return text.strip()


class QuizGenerator:
    def __init__(self, models: Optional[List[str]] = None, client: Optional[OpenAI] = None, timeout: float = AI_TIMEOUT):
        self.models = list(models or AI_MODELS)
        if not self.models:
            raise AIGenerationError('no AI models configured')
        self.timeout = timeout
        self.temperature = AI_TEMPERATURE
        self._client = client
        LOG.info('QuizGenerator initialized', extra={'models': self.models, 'timeout': self.timeout})

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not os.getenv('OPENAI_API_KEY'):
                raise AIProviderError('OPENAI_API_KEY not set')
            self._client = OpenAI(base_url=os.getenv('OPENAI_BASE_URL') or None)
        return self._client

    @retry(stop=stop_after_attempt(AI_RETRY_ATTEMPTS),
           wait=wait_exponential(multiplier=1, min=1, max=AI_RETRY_MAX_WAIT),
           retry=retry_if_exception_type(AIRateLimitError),
           reraise=True)
    def _complete(self, messages: List[dict], model: str):
        try:
            return self.client.with_options(timeout=self.timeout).chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=AI_MAX_TOKENS,
                response_format={'type': 'json_object'},
            )
        except openai.APITimeoutError as e:
            raise AITimeoutError(f'{model} timed out after {self.timeout}s') from e
        except openai.RateLimitError as e:
            LOG.warning('ai_rate_limited', extra={'model': model})
            raise AIRateLimitError(str(e)) from e
        except openai.OpenAIError as e:
            raise AIProviderError(str(e)) from e

    def generate(self, prompt: PromptSpec, schema: Type[BaseModel], model: Optional[str] = None) -> GenerationResult:
        model = model or self.models[0]
        start = time.time()
        resp = self._complete(prompt.to_messages(), model)
        duration = int((time.time() - start) * 1000)

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise AISchemaValidationError(f'{model} returned an empty response')
        try:
            payload = schema.model_validate(json.loads(_strip_code_fence(content)))
        except (json.JSONDecodeError, ValidationError) as e:
            raise AISchemaValidationError(f'{model} response does not match schema: {e}') from e

        usage = getattr(resp, 'usage', None)
        prompt_tokens = getattr(usage, 'prompt_tokens', 0) or 0
        completion_tokens = getattr(usage, 'completion_tokens', 0) or 0
        log_llm_call(
            request_id=get_request_context().get('request_id'),
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            duration_ms=duration,
        )
        return GenerationResult(payload=payload, model=model, prompt_tokens=prompt_tokens, completion_tokens=completion_tokens, duration_ms=duration, attempted_models=[model])

    def generate_with_fallback(self, prompt: PromptSpec, schema: Type[BaseModel]) -> GenerationResult:
        """Try each configured model in priority order, never in parallel."""
        errors = []
        chain = []
        for model in self.models:
            chain.append(model)
            try:
                result = self.generate(prompt, schema, model)
            except AIGenerationError as e:
                LOG.warning('ai_model_failed', extra={'model': model, 'error_type': type(e).__name__, 'error': str(e)})
                errors.append({'model': model, 'error_type': type(e).__name__, 'error': str(e)})
                continue
            result.attempted_models = chain
            log_model_fallback(chain, final_model=model, succeeded=True)
            return result
        log_model_fallback(chain, final_model=None, succeeded=False)
        raise AIGenerationError('all AI models failed', errors=errors)
