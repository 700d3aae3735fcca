import pytest
import redis

import molert.redis_connector as rc


pytestmark = pytest.mark.unit


class FakePool:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.password = kwargs.get('password')


class FakeRedisClient:
    def __init__(self, connection_pool):
        self.pool = connection_pool

    def ping(self):
        return True


@pytest.fixture
def fake_pool(monkeypatch):
    monkeypatch.setattr(redis, 'ConnectionPool', FakePool)
    monkeypatch.setattr(redis, 'Redis', FakeRedisClient)


def test_redis_without_password(fake_pool):
    pool = rc.get_redis_pool(host='h', port=6379)

    assert pool.password is None
    assert pool.kwargs['decode_responses'] is True
    assert 'connection_class' not in pool.kwargs


def test_redis_uses_current_when_valid(fake_pool):
    pool = rc.get_redis_pool(host='h', port=6379, password_current='cur', password_next='next')

    assert pool.password == 'cur'


def test_redis_falls_back_to_next(fake_pool, monkeypatch):
    def fake_redis_ctor(connection_pool):
        if connection_pool.password == 'cur':
            raise redis.exceptions.AuthenticationError('auth failed')
        return FakeRedisClient(connection_pool)

    monkeypatch.setattr(redis, 'Redis', fake_redis_ctor)

    pool = rc.get_redis_pool(host='h', port=6379, password_current='cur', password_next='next')

    assert pool.password == 'next'


def test_redis_both_passwords_fail(fake_pool, monkeypatch):
    def fake_redis_ctor(connection_pool):
        raise redis.exceptions.AuthenticationError('auth failed')

    monkeypatch.setattr(redis, 'Redis', fake_redis_ctor)

    with pytest.raises(RuntimeError):
        rc.get_redis_pool(host='h', port=6379, password_current='cur', password_next='next')


def test_redis_current_only_reraises(fake_pool, monkeypatch):
    def fake_redis_ctor(connection_pool):
        raise redis.exceptions.ConnectionError('refused')

    monkeypatch.setattr(redis, 'Redis', fake_redis_ctor)

    with pytest.raises(redis.exceptions.ConnectionError):
        rc.get_redis_pool(host='h', port=6379, password_current='cur')


def test_redis_tls(fake_pool):
    pool = rc.get_redis_pool(host='h', port=6380, tls_enabled=True, ca_cert_path='/etc/ca.pem')

    assert pool.kwargs['connection_class'] is redis.SSLConnection
    assert pool.kwargs['ssl_ca_certs'] == '/etc/ca.pem'
