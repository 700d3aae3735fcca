#!/usr/bin/env python3
"""
molert - Redis connection pool for the alert registry

The registry keeps every alert hash and the alert_urls set in one Redis, so
the relay opens a single validated pool at startup and fails fast if the
store is unreachable. Pools use decode_responses so hash fields come back as
str, which is what the registry compares ("true"/"false", alert JSON).

A local Redis usually has no password; the pool is then opened as is. With
REDIS_PASS_CURRENT/REDIS_PASS_NEXT set, CURRENT is tried first and NEXT is
the fallback during a password rotation. REDIS_TLS_ENABLED switches to
SSLConnection, verified against REDIS_CA_CERT_PATH when given.
"""

from typing import Optional
import logging
import redis


def get_redis_pool(
    *,
    host: str,
    port: int,
    tls_enabled: bool = False,
    ca_cert_path: Optional[str] = None,
    password_current: Optional[str] = None,
    password_next: Optional[str] = None,
    max_connections: int = 10,
    logger: Optional[logging.Logger] = None,
) -> redis.ConnectionPool:
    log = logger or logging.getLogger(__name__)

    def _build_pool(password: Optional[str]) -> redis.ConnectionPool:
        kwargs = {
            'host': host,
            'port': port,
            'password': password,
            'decode_responses': True,
            'socket_connect_timeout': 5,
            'socket_keepalive': True,
            'max_connections': max_connections,
        }
        if tls_enabled:
            kwargs['connection_class'] = redis.SSLConnection
            kwargs['ssl_cert_reqs'] = 'required'
            if ca_cert_path:
                kwargs['ssl_ca_certs'] = ca_cert_path
        pool = redis.ConnectionPool(**kwargs)
        client = redis.Redis(connection_pool=pool)
        client.ping()
        return pool

    if not password_current and not password_next:
        log.info("Attempting Redis pool without password...")
        return _build_pool(None)

    last_error: Optional[Exception] = None

    if password_current:
        try:
            log.info("Attempting Redis pool with CURRENT password...")
            return _build_pool(password_current)
        except Exception as e:
            last_error = e
            log.warning(f"Redis connection with CURRENT password failed: {e}")

    if password_next:
        try:
            log.info("Attempting Redis pool with NEXT password...")
            return _build_pool(password_next)
        except Exception as e:
            last_error = e
            log.error(f"Redis connection with NEXT password failed: {e}")

    if not password_next and password_current and last_error:
        raise last_error

    raise RuntimeError("Failed to create Redis pool with provided passwords")
