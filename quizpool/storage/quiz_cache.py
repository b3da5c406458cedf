import os
import json
import time
from typing import Any, Dict, Optional

import redis

from quizpool.models import Quiz
from quizpool.utils import get_logger, log_cache_event

LOG = get_logger()

QUIZ_CACHE_TTL = int(os.getenv('QUIZ_CACHE_TTL', str(30 * 24 * 3600)))
REDIS_CACHE_ENABLED = os.getenv('REDIS_CACHE_ENABLED', 'true').lower() in ('1', 'true', 'yes')
KEY_PREFIX = 'quizcache'


class QuizCache:
    """Generation cache keyed by (content hash, options hash).

    Backed by redis when reachable, otherwise by a process-local dict. Cache
    failures never fail a request: they are logged and treated as a miss.
    """

    _instance = None

    def __init__(self, client=None, ttl: int = QUIZ_CACHE_TTL, enabled: bool = REDIS_CACHE_ENABLED):
        self.ttl = ttl
        self._client = None
        self._in_memory: Dict[str, Dict[str, Any]] = {}
        self._in_memory_hits: Dict[str, int] = {}
        if client is not None:
            self._client = client
            return
        if not enabled:
            LOG.info('quiz_cache_in_memory', extra={'reason': 'disabled'})
            return
        host = os.getenv('REDIS_HOST', 'localhost')
        port = int(os.getenv('REDIS_PORT', '6379'))
        try:
            self._client = redis.Redis(host=host, port=port, password=os.getenv('REDIS_PASSWORD') or None, decode_responses=True)
            self._client.ping()
            LOG.info('quiz_cache_connected', extra={'host': host, 'port': port})
        except redis.RedisError as e:
            LOG.warning('quiz_cache_unavailable', extra={'error': str(e)})
            self._client = None

    @classmethod
    def get_instance(cls) -> 'QuizCache':
        if cls._instance is None:
            cls._instance = QuizCache()
        return cls._instance

    @property
    def uses_redis(self) -> bool:
        return self._client is not None

    def _key(self, content_hash: str, options_hash: str) -> str:
        return f'{KEY_PREFIX}:{content_hash}:{options_hash}'

    def get(self, content_hash: str, options_hash: str) -> Optional[Dict[str, Any]]:
        """Return ``{'quiz': Quiz, 'model': str, 'hit_count': int, ...}`` or None."""
        key = self._key(content_hash, options_hash)
        try:
            if self._client is not None:
                raw = self._client.get(key)
                entry = json.loads(raw) if raw else None
            else:
                entry = self._in_memory.get(key)
            if entry is None or entry.get('expires_at', 0) <= time.time():
                log_cache_event('cache_miss', key)
                return None
            if self._client is not None:
                hits = self._client.incr(f'{key}:hits')
                self._client.expire(f'{key}:hits', self.ttl)
            else:
                hits = self._in_memory_hits.get(key, 0) + 1
                self._in_memory_hits[key] = hits
            log_cache_event('cache_hit', key, hit_count=hits)
            result = dict(entry)
            result['quiz'] = Quiz.model_validate(entry['quiz_data'])
            result['hit_count'] = int(hits)
            return result
        except Exception as e:
            LOG.warning('cache_get_failed', extra={'key': key, 'error': str(e)})
            return None

    def set(self, content_hash: str, options_hash: str, quiz: Quiz, model: Optional[str] = None, processed_text_length: Optional[int] = None, ttl: Optional[int] = None):
        key = self._key(content_hash, options_hash)
        ttl = ttl or self.ttl
        entry = {
            'content_hash': content_hash,
            'options_hash': options_hash,
            'quiz_data': quiz.model_dump(mode='json'),
            'model': model,
            'processed_text_length': processed_text_length,
            'expires_at': time.time() + ttl,
        }
        try:
            if self._client is not None:
                self._client.setex(key, ttl, json.dumps(entry))
            else:
                self._in_memory[key] = entry
            log_cache_event('cache_set', key, ttl=ttl)
        except Exception as e:
            LOG.warning('cache_set_failed', extra={'key': key, 'error': str(e)})

    def invalidate(self, content_hash: str, options_hash: str):
        key = self._key(content_hash, options_hash)
        try:
            if self._client is not None:
                self._client.delete(key)
                self._client.delete(f'{key}:hits')
            else:
                self._in_memory.pop(key, None)
                self._in_memory_hits.pop(key, None)
            log_cache_event('cache_invalidate', key)
        except Exception as e:
            LOG.warning('cache_invalidate_failed', extra={'key': key, 'error': str(e)})

    def cleanup_expired(self) -> int:
        now = time.time()
        removed = 0
        try:
            if self._client is not None:
                for key in self._client.scan_iter(match=f'{KEY_PREFIX}:*'):
                    if key.endswith(':hits'):
                        continue
                    raw = self._client.get(key)
                    if raw and json.loads(raw).get('expires_at', 0) <= now:
                        self._client.delete(key)
                        self._client.delete(f'{key}:hits')
                        removed += 1
            else:
                for key in [k for k, v in self._in_memory.items() if v.get('expires_at', 0) <= now]:
                    self._in_memory.pop(key, None)
                    self._in_memory_hits.pop(key, None)
                    removed += 1
        except Exception as e:
            LOG.warning('cache_cleanup_failed', extra={'error': str(e)})
        if removed:
            LOG.info('cache_cleanup', extra={'removed': removed})
        return removed
