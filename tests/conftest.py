import os
import pytest
from pathlib import Path

from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

# module-level config is read at import time, so these must be set before
# any studyaid import
os.environ.setdefault('TESTING', '1')
os.environ.setdefault('OPENAI_API_KEY', 'sk-test')
os.environ['OPENAI_RETRY_ATTEMPTS'] = '2'
os.environ['OPENAI_RETRY_MULTIPLIER'] = '0'
os.environ['REDIS_CACHE_ENABLED'] = 'false'
os.environ['LOG_FILE_ENABLED'] = 'false'

from tests.fixtures.mock_openai import FakeOpenAI
from tests.fixtures.mock_redis import MockRedisClient
from tests.fixtures.sample_data import SAMPLE_TEXT, SAMPLE_KEYWORDS


@pytest.fixture
def fake_openai(monkeypatch):
    """Route every OpenAI client through one shared fake; returns its completions recorder."""
    from studyaid.semantic.keyword_extractor import KeywordExtractor
    from studyaid.flashcards.generator import FlashcardGenerator

    fake = FakeOpenAI()
    monkeypatch.setattr('studyaid.semantic.keyword_extractor.OpenAI', lambda *a, **k: fake)
    monkeypatch.setattr('studyaid.flashcards.generator.OpenAI', lambda *a, **k: fake)
    monkeypatch.setattr(KeywordExtractor, '_instance', None)
    monkeypatch.setattr(FlashcardGenerator, '_instance', None)
    return fake.chat.completions


@pytest.fixture
def mock_redis_client(monkeypatch):
    from studyaid.semantic.cache_manager import CacheManager

    client = MockRedisClient()
    monkeypatch.setenv('REDIS_CACHE_ENABLED', 'true')
    monkeypatch.setattr('redis.Redis', lambda *a, **k: client)
    monkeypatch.setattr(CacheManager, '_instance', None)
    return client


@pytest.fixture
def db(tmp_path, monkeypatch):
    from studyaid.storage import Database

    database = Database(str(tmp_path / 'study_aid_test.db'))
    database.init_schema()
    monkeypatch.setattr(Database, '_instance', database)
    return database


@pytest.fixture
def user(db):
    return db.upsert_user('u1', 'u1@example.com', name='Test User', profile_image='https://img.test/u1.png')


@pytest.fixture
def other_user(db):
    return db.upsert_user('u2', 'u2@example.com', name='Other User')


@pytest.fixture
def anon_client(db, monkeypatch):
    from fastapi.testclient import TestClient
    import main as app_main
    from studyaid.semantic.cache_manager import CacheManager
    from studyaid.storage import get_database

    monkeypatch.setattr(CacheManager, '_instance', None)
    app_main.app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app_main.app)
    app_main.app.dependency_overrides.clear()


@pytest.fixture
def client(anon_client, user):
    import main as app_main
    from studyaid.auth import current_user

    app_main.app.dependency_overrides[current_user] = lambda: user
    return anon_client


@pytest.fixture
def sample_text():
    return SAMPLE_TEXT


@pytest.fixture
def sample_keywords():
    return [dict(k) for k in SAMPLE_KEYWORDS]
