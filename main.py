import os
import time
import asyncio
import functools
import threading
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quizpool.ai import AIGenerationError, QuizGenerator
from quizpool.models import QuizGenerationOptions
from quizpool.quiz import (
    BankNotFoundError,
    GenerationCancelledError,
    InputValidationError,
    analyze_text_quality,
    calculate_question_capacity,
    create_quiz_from_pool,
    generate_question_pool,
    generate_quiz,
    get_or_generate_question_bank,
    load_more_questions,
    validate_content,
    validate_difficulty,
    validate_question_count,
    validate_session_size,
)
from quizpool.quiz.validation import CONTENT_MIN_LENGTH
from quizpool.storage import BankStore, PersistenceError, QuizCache, SQLiteBankStore
from quizpool.utils import get_logger, log_error, log_request, set_request_context

LOG = get_logger()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra='ignore')

    HOST: str = '0.0.0.0'
    PORT: int = 8000
    ENVIRONMENT: str = 'development'
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGIN: str = '*'
    QUIZPOOL_DB_PATH: str = 'quizpool.db'
    POOL_MIN_QUESTION_COUNT: int = 10
    POOL_CAPACITY_RATIO: float = 0.8


settings = Settings()

app = FastAPI(title='Quizpool Service', version='1.0.0', description='Quiz question pool generation and bank-backed retrieval')

origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

GENERATION_FAILED_MESSAGE = 'Question generation failed, please try again later'
STORAGE_UNAVAILABLE_MESSAGE = 'Question storage is temporarily unavailable, please retry'


@app.middleware('http')
async def add_request_id_and_logging(request: Request, call_next):
    # prefer incoming X-Request-ID header for cross-service tracing
    request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
    request.state.request_id = request_id
    set_request_context(request_id)
    start = time.time()
    LOG.info('http_request_start', extra={'method': request.method, 'path': request.url.path, 'request_id': request_id})
    try:
        response: Response = await call_next(request)
    except Exception:
        LOG.exception('unhandled_request_error', extra={'request_id': request_id})
        body = {'success': False, 'error': 'Internal server error', 'request_id': request_id}
        return JSONResponse(status_code=500, content=body, headers={'X-Request-ID': request_id})
    duration = int((time.time() - start) * 1000)
    log_request(request_id, request.method, request.url.path, response.status_code, duration, ip=request.client.host if request.client else None)
    response.headers['X-Request-ID'] = request_id
    return response


_store: Optional[BankStore] = None
_store_lock = threading.Lock()


def get_store() -> BankStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = SQLiteBankStore(settings.QUIZPOOL_DB_PATH)
        return _store


def get_generator() -> QuizGenerator:
    return QuizGenerator()


def get_cache() -> QuizCache:
    return QuizCache.get_instance()


class AnalyzeRequest(BaseModel):
    content: str


class GenerateRequest(BaseModel):
    content: str
    question_count: int = 5
    difficulty: str = 'medium'
    bypass_cache: bool = False


class BankRequest(BaseModel):
    content: str
    session_size: int = 5
    difficulty: str = 'medium'
    max_generate: Optional[int] = Field(default=None, ge=1)


class LoadMoreRequest(BaseModel):
    bank_id: str
    count: int = 5
    exclude_ids: List[str] = []
    random: Optional[bool] = None


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', None) or os.urandom(8).hex()


def _error(status_code: int, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'error': message, 'request_id': request_id})


def _shortfall(requested: int, delivered: int, reason: Optional[str]) -> Optional[dict]:
    if delivered >= requested and not reason:
        return None
    return {'requested': requested, 'delivered': delivered, 'reason': reason}


async def _run_cancellable(func, *args, **kwargs):
    """Run a blocking pipeline call in a worker thread; request cancellation sets its cancel event."""
    cancel_event = threading.Event()
    try:
        return await asyncio.to_thread(functools.partial(func, *args, cancel_event=cancel_event, **kwargs))
    except asyncio.CancelledError:
        cancel_event.set()
        LOG.info('request_cancelled', extra={'func': getattr(func, '__name__', str(func))})
        raise


@app.get('/health')
async def health():
    return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'), 'service': 'quizpool'}


@app.post('/quiz/analyze')
async def analyze_endpoint(req: AnalyzeRequest, request: Request):
    request_id = _request_id(request)
    capacity = await asyncio.to_thread(calculate_question_capacity, req.content)
    quality = None
    if len(req.content.strip()) >= CONTENT_MIN_LENGTH:
        metrics = await asyncio.to_thread(analyze_text_quality, req.content)
        quality = {
            'character_count': metrics.character_count,
            'sentence_count': metrics.sentence_count,
            'unique_keyword_count': metrics.unique_keyword_count,
            'information_density': round(metrics.information_density, 3),
            'language': metrics.language,
        }
    return {'success': True, 'capacity': capacity.to_dict(), 'quality': quality, 'request_id': request_id}


@app.post('/quiz/generate')
async def generate_endpoint(req: GenerateRequest, request: Request,
                            generator: QuizGenerator = Depends(get_generator),
                            cache: QuizCache = Depends(get_cache)):
    request_id = _request_id(request)
    try:
        validate_content(req.content)
        options = QuizGenerationOptions(question_count=validate_question_count(req.question_count), difficulty=validate_difficulty(req.difficulty))
        capacity = await asyncio.to_thread(calculate_question_capacity, req.content)
        use_pool = options.question_count > settings.POOL_MIN_QUESTION_COUNT or options.question_count >= settings.POOL_CAPACITY_RATIO * capacity.max
        LOG.info('quiz_generation_start', extra={'request_id': request_id, 'question_count': options.question_count, 'path': 'pool' if use_pool else 'single', 'capacity_max': capacity.max})

        if use_pool:
            pool = await _run_cancellable(generate_question_pool, req.content, options, generator)
            quiz = create_quiz_from_pool(pool)
            metadata = {
                'path': 'pool',
                'model_used': pool.metrics.model,
                'ai_generated': pool.metrics.ai_generated,
                'transformed': pool.metrics.transformed,
                'attempts': pool.metrics.attempts,
                'processing_time_ms': pool.metrics.generation_time_ms,
                'cache_hit': False,
            }
            shortfall = _shortfall(options.question_count, len(quiz.questions), pool.metrics.shortfall_reason)
        else:
            result = await asyncio.to_thread(generate_quiz, req.content, options, generator, cache, req.bypass_cache)
            quiz = result.quiz
            metadata = {
                'path': 'single',
                'model_used': result.model,
                'cache_hit': result.cache_hit,
                'processed_text_length': result.processed_text_length,
            }
            shortfall = _shortfall(options.question_count, len(quiz.questions), None)
    except InputValidationError as e:
        return _error(400, str(e), request_id)
    except AIGenerationError as e:
        log_error(e, {'request_id': request_id, 'stage': 'quiz_generation'})
        return _error(502, GENERATION_FAILED_MESSAGE, request_id)
    except GenerationCancelledError:
        return _error(499, 'Request cancelled', request_id)

    return {
        'success': True,
        'quiz': quiz.model_dump(mode='json'),
        'capacity': capacity.to_dict(),
        'metadata': metadata,
        'shortfall': shortfall,
        'request_id': request_id,
    }


@app.post('/quiz/bank')
async def bank_endpoint(req: BankRequest, request: Request,
                        store: BankStore = Depends(get_store),
                        generator: QuizGenerator = Depends(get_generator)):
    request_id = _request_id(request)
    try:
        validate_content(req.content)
        session_size = validate_session_size(req.session_size)
        options = QuizGenerationOptions(question_count=session_size, difficulty=validate_difficulty(req.difficulty))
        result = await _run_cancellable(get_or_generate_question_bank, req.content, options, session_size, store, generator, max_generate=req.max_generate)
    except InputValidationError as e:
        return _error(400, str(e), request_id)
    except AIGenerationError as e:
        log_error(e, {'request_id': request_id, 'stage': 'bank_generation'})
        return _error(502, GENERATION_FAILED_MESSAGE, request_id)
    except PersistenceError as e:
        log_error(e, {'request_id': request_id, 'stage': 'bank_store'})
        return _error(503, STORAGE_UNAVAILABLE_MESSAGE, request_id)
    except GenerationCancelledError:
        return _error(499, 'Request cancelled', request_id)

    return {
        'success': True,
        'bank_id': result.bank_id,
        'questions': [q.model_dump(mode='json') for q in result.questions],
        'is_from_cache': result.is_from_cache,
        'remaining_count': result.remaining_count,
        'total_count': result.total_count,
        'state': result.state.value,
        'shortfall': _shortfall(session_size, len(result.questions), result.shortfall_reason),
        'request_id': request_id,
    }


@app.post('/quiz/load-more')
async def load_more_endpoint(req: LoadMoreRequest, request: Request, store: BankStore = Depends(get_store)):
    request_id = _request_id(request)
    try:
        result = await asyncio.to_thread(load_more_questions, req.bank_id, req.count, store, req.exclude_ids, req.random)
    except InputValidationError as e:
        return _error(400, str(e), request_id)
    except BankNotFoundError:
        return _error(404, 'Question bank not found', request_id)
    except PersistenceError as e:
        log_error(e, {'request_id': request_id, 'stage': 'load_more', 'bank_id': req.bank_id})
        return _error(503, STORAGE_UNAVAILABLE_MESSAGE, request_id)

    return {
        'success': True,
        'questions': [q.model_dump(mode='json') for q in result.questions],
        'remaining_count': result.remaining_count,
        'request_id': request_id,
    }


if __name__ == '__main__':
    import uvicorn

    workers = int(os.getenv('WORKERS', '1'))
    if settings.ENVIRONMENT == 'development':
        workers = 1
    reload_enabled = (settings.ENVIRONMENT == 'development') and (workers == 1)

    uvicorn.run(
        'main:app',
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=reload_enabled,
        workers=workers,
    )
