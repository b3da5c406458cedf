import os
import random
import pytest
from unittest.mock import MagicMock
from pathlib import Path

from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
os.environ.setdefault('REDIS_CACHE_ENABLED', 'false')


@pytest.fixture(autouse=True)
def silence_logger(monkeypatch):
    # Patch any project logger acquisition to avoid noisy logs
    import quizpool.utils.logger as logger_mod
    monkeypatch.setattr(logger_mod, 'get_logger', lambda *a, **k: MagicMock())
    yield


@pytest.fixture
def korean_text():
    from tests.fixtures.sample_data import KOREAN_PHOTOSYNTHESIS
    return KOREAN_PHOTOSYNTHESIS


@pytest.fixture
def english_text():
    from tests.fixtures.sample_data import ENGLISH_WATER_CYCLE
    return ENGLISH_WATER_CYCLE


@pytest.fixture
def seed_questions():
    from tests.fixtures.sample_data import seed_questions as build
    return build()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def fake_generator():
    from tests.fixtures.mock_ai import FakeQuizGenerator
    return FakeQuizGenerator()


@pytest.fixture
def store():
    from quizpool.storage import SQLiteBankStore
    s = SQLiteBankStore(':memory:')
    yield s
    s.close()


@pytest.fixture
def mock_redis_client():
    from tests.fixtures.mock_redis import MockRedisClient
    return MockRedisClient()


@pytest.fixture
def quiz_cache(mock_redis_client):
    from quizpool.storage import QuizCache
    return QuizCache(client=mock_redis_client, ttl=3600)
