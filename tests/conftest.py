"""
Pytest fixtures and configuration for GameCompare tests
"""
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add app directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'app')))

from rate_limiter import RateLimitDecision  # noqa: E402
from services.catalogue.base import TrendingSource  # noqa: E402
from settings import AppConfig, DEFAULT_SETTINGS, SourceConfig, deep_merge  # noqa: E402

GENEROUS_LIMITS = {
    key: {'max_rps': 100, 'burst': 100}
    for key in ('rawg', 'giantbomb', 'thegamesdb', 'nexarda', 'itad', 'pricecharting', 'nintendo_eshop')
}


class RecordingDispatcher:
    """Stands in for CeleryDispatcher; keeps every dispatch instead of queueing it"""

    def __init__(self):
        self.dispatched = []
        self.released = []

    def dispatch(self, job_cls, context=None, key=None, countdown=None):
        context = dict(context or {})
        self.dispatched.append((job_cls, context, key or job_cls.idempotency_key_for(context)))
        return None

    def release(self, key):
        self.released.append(key)

    def of(self, job_cls):
        return [context for cls, context, _ in self.dispatched if cls is job_cls]


class FrozenClock:
    """Callable clock for the rate limiter; ``advance()`` moves it forward"""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class StubLimiter:
    """Grants every permit except for the providers listed in ``denied``"""

    def __init__(self, denied=(), retry_after=7):
        self.denied = set(denied)
        self.retry_after = retry_after
        self.calls = []

    def attempt(self, provider, max_rps, burst):
        self.calls.append(provider)
        if provider in self.denied:
            return RateLimitDecision(allowed=False, retry_after=self.retry_after)
        return RateLimitDecision(allowed=True, retry_after=0)


class StaticSource(TrendingSource):
    """Trending source serving a fixed list of entries"""

    def __init__(self, key, entries=(), error=None, enabled=True):
        self.key = key
        super().__init__(SourceConfig(key=key, enabled=enabled))
        self.entries = list(entries)
        self.error = error
        self.requests = []

    def fetch(self, query, options=None):
        self.requests.append((query, dict(options or {})))
        if self.error is not None:
            raise self.error
        return self.entries[:int(query)]


def make_config(overrides=None, defaults=True):
    """AppConfig over DEFAULT_SETTINGS (or an empty mapping) with generous limits"""
    base = deep_merge(DEFAULT_SETTINGS, {}) if defaults else {}
    base = deep_merge(base, {'providers': {'limits': GENEROUS_LIMITS}})
    return AppConfig.from_dict(deep_merge(base, overrides or {}))


@pytest.fixture
def app():
    """Flask app bound to an in-memory SQLite database"""
    import redis_cache
    from app import create_app
    from db import db

    # no Redis in tests: claims are always granted and the cache is bypassed
    redis_cache.set_client(None)

    _app = create_app({'SQLALCHEMY_DATABASE_URI': 'sqlite://', 'TESTING': True}, start_scheduler=False)
    with _app.app_context():
        yield _app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def dispatcher():
    from dispatcher import get_dispatcher, set_dispatcher

    previous = get_dispatcher()
    recording = RecordingDispatcher()
    set_dispatcher(recording)
    yield recording
    set_dispatcher(previous)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def limiter():
    return StubLimiter()


@pytest.fixture
def config():
    return make_config()
