# =====================================================================
# molert Pytest Configuration and Fixtures
# =====================================================================
# Shared fixtures for all tests: an in-memory Redis stand-in with a
# controllable clock, a recording webhook session, configuration and
# sample alerts.
# =====================================================================

import pytest
import redis
from prometheus_client import REGISTRY

from molert.config import Config
from molert.notifier import Notifier
from molert.registry import AlertRegistry


# --- Prometheus Metrics Cleanup ---

@pytest.fixture(autouse=True, scope="function")
def cleanup_prometheus_metrics():
    """
    Remove the Flask exporter collectors after each test.

    prometheus_flask_exporter registers its collectors on every create_app()
    call; without this, the second app in a session raises 'Duplicated
    timeseries in CollectorRegistry'. molert_ metrics are module level and
    registered once, so they are kept.
    """
    yield

    collectors_to_remove = []
    for collector, names in list(REGISTRY._collector_to_names.items()):
        if any(name.startswith('flask_') for name in names):
            collectors_to_remove.append(collector)

    for collector in collectors_to_remove:
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass


# --- Redis Stand-in ---

class FakeRedis:
    """
    In-memory subset of redis.Redis used by the registry.

    Supports sets, hashes and key expiry. Time only moves through
    ``advance()``; an expired key disappears the next time it is touched,
    as it would in Redis. Commands listed in ``failing`` raise
    ``redis.exceptions.ConnectionError``.
    """

    def __init__(self):
        self.now = 0.0
        self.sets = {}
        self.hashes = {}
        self.expiry = {}
        self.failing = set()
        self.calls = []

    def advance(self, seconds):
        self.now += seconds

    def _command(self, name):
        self.calls.append(name)
        if name in self.failing:
            raise redis.exceptions.ConnectionError(f"{name} failed")

    def _purge(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= self.now:
            self.hashes.pop(key, None)
            self.expiry.pop(key, None)

    def ping(self):
        self._command('ping')
        return True

    def sadd(self, name, *values):
        self._command('sadd')
        members = self.sets.setdefault(name, set())
        added = len(set(values) - members)
        members.update(values)
        return added

    def srem(self, name, *values):
        self._command('srem')
        members = self.sets.get(name, set())
        removed = len(members & set(values))
        members.difference_update(values)
        return removed

    def smembers(self, name):
        self._command('smembers')
        return set(self.sets.get(name, set()))

    def hget(self, name, key):
        self._command('hget')
        self._purge(name)
        return self.hashes.get(name, {}).get(key)

    def hmget(self, name, keys, *args):
        self._command('hmget')
        self._purge(name)
        fields = list(keys) + list(args)
        data = self.hashes.get(name, {})
        return [data.get(f) for f in fields]

    def hset(self, name, key=None, value=None, mapping=None):
        self._command('hset')
        self._purge(name)
        data = self.hashes.setdefault(name, {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = len(set(items) - set(data))
        data.update(items)
        return added

    def ttl(self, name):
        self._command('ttl')
        self._purge(name)
        if name not in self.hashes:
            return -2
        if name not in self.expiry:
            return -1
        return int(round(self.expiry[name] - self.now))

    def expire(self, name, seconds):
        self._command('expire')
        self._purge(name)
        if name not in self.hashes:
            return False
        self.expiry[name] = self.now + int(seconds)
        return True

    def persist(self, name):
        self._command('persist')
        self._purge(name)
        return self.expiry.pop(name, None) is not None


@pytest.fixture
def fake_redis():
    return FakeRedis()


# --- Webhook Stand-in ---

class FakeResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400


class RecordingSession:
    """Records webhook posts instead of sending them."""

    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.posts = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status_code)


@pytest.fixture
def webhook_session():
    return RecordingSession()


# --- Configuration ---

@pytest.fixture
def relay_env(monkeypatch):
    """Minimal valid environment for Config()."""
    env = {
        "SLACK_WEBHOOK_URL": "https://hooks.example.com/services/T000/B000/XXXX",
        "EXTERNAL_URL": "http://molert.example.com:19093",
        "ALERT_EXPIRATION": "180",
        "SCAN_FREQUENCY": "60",
        "SILENCE_DURATION": "3600",
    }
    for name in ("REDIS_URL", "REDIS_HOST", "REDIS_PORT", "LISTEN_ADDR", "REDIS_PASS",
                 "REDIS_PASS_CURRENT", "REDIS_PASS_NEXT", "REDIS_TLS_ENABLED", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env


@pytest.fixture
def relay_config(relay_env):
    return Config()


@pytest.fixture
def registry(fake_redis):
    return AlertRegistry(fake_redis, expiration=180, silence_duration=3600)


@pytest.fixture
def notifier(webhook_session):
    return Notifier(
        "https://hooks.example.com/services/T000/B000/XXXX",
        silence_duration=3600,
        external_url="http://molert.example.com:19093",
        session=webhook_session,
    )


# --- Sample Data Fixtures ---

@pytest.fixture
def sample_alert_data():
    """An alert as Prometheus posts it."""
    return {
        "labels": {
            "alertname": "DiskFull",
            "instance": "db-01:9100",
            "env": "production",
            "channels": "ops, releases",
        },
        "annotations": {
            "summary": "disk full",
            "description": "/var is at 98% on db-01",
        },
        "startsAt": "2025-11-08T12:00:00.123456789Z",
        "endsAt": "0001-01-01T00:00:00Z",
        "generatorURL": "http://prometheus.example.com/graph?g0.expr=disk_full",
    }


# --- Pytest Configuration ---

def pytest_configure(config):
    """Pytest configuration hook"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (mock all external dependencies)"
    )
