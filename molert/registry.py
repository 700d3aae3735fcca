#!/usr/bin/env python3
"""
molert - Alert registry

Owns the alert lifecycle inside Redis. Layout:

    alert_urls          SET   every alert key seen and not yet pruned
    <generatorURL>      HASH  alert   -> alert JSON
                              silence -> "true" | "false"
                        TTL   freshness window while active,
                              silence window while silenced

Expiry is delegated to Redis: when the hash's TTL runs out Redis deletes it,
and the next ``list()`` that finds the key without a payload removes it from
the known-keys set.

Concurrency: every individual Redis command is atomic, but the multi-step
sequences below (check-then-write in ``upsert``, flag-then-TTL in
``silence``) are not. A silence request racing an upsert for the same key
can leave the silence flag and the TTL reflecting different requests; the
last write wins per field. This is an accepted limitation, no lock or
transaction wraps these sequences.
"""

import logging
from dataclasses import dataclass
from typing import List

import redis

from molert.metrics import METRIC_ALERTS_PRUNED, METRIC_KNOWN_ALERTS
from molert.models import Alert, AlertDecodeError, Silence

logger = logging.getLogger(__name__)

FIELD_ALERT = 'alert'
FIELD_SILENCE = 'silence'

# Redis TTL replies
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


@dataclass
class AlertState:
    """
    One entry of a registry listing.

    ttl is 0 for an active alert (eligible for notification now). For a
    silenced alert it is the remaining silence in seconds, or -1 when the
    silence has no expiry.
    """

    alert: Alert
    ttl: int
    silenced: bool = False

    @property
    def eligible(self) -> bool:
        return not self.silenced

    def to_dict(self):
        return {"alert": self.alert.to_dict(), "ttl": self.ttl, "silenced": self.silenced}


class AlertRegistry:
    """Alert lifecycle operations on top of an explicit Redis client."""

    def __init__(
        self,
        redis_client: redis.Redis,
        *,
        expiration: int,
        silence_duration: int,
        urls_key: str = 'alert_urls',
    ):
        self.redis = redis_client
        self.expiration = expiration
        self.silence_duration = silence_duration
        self.urls_key = urls_key

    def upsert(self, alert: Alert) -> bool:
        """
        Record a firing alert.

        A silenced alert only has its key re-added to the known-keys set; its
        payload and silence window are left alone. Otherwise the payload is
        written, the silence flag reset to false, and the freshness window
        started if none is running. A running window is never extended.

        Returns:
            True if the payload was written, False if skipped or failed.
        """
        key = alert.key
        try:
            data = alert.to_json()
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize alert {key}: {e}")
            return False

        try:
            self.redis.sadd(self.urls_key, key)

            if self.redis.hget(key, FIELD_SILENCE) == 'true':
                logger.info(f"Alert {key} already silenced, this will be ignored")
                return False

            self.redis.hset(key, mapping={FIELD_ALERT: data, FIELD_SILENCE: 'false'})
            logger.debug(f"Alert {key} saved")

            ttl = self.redis.ttl(key)
            if ttl is not None and ttl >= 0:
                logger.debug(f"Expiration for {key} already set to {ttl}s, leaving it")
                return True

            self.redis.expire(key, self.expiration)
            logger.info(f"Expiration for {key} set to {self.expiration}s")
            return True

        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to save alert {key}: {e}")
            return False

    def list(self) -> List[AlertState]:
        """
        Snapshot of every known alert.

        Keys whose payload has expired are pruned from the known-keys set and
        left out. Undecodable payloads are logged and skipped. Store errors
        on a single key skip that key; an error reading the set itself
        yields an empty listing.
        """
        try:
            keys = self.redis.smembers(self.urls_key)
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to read {self.urls_key}: {e}")
            return []

        states = []
        for key in keys:
            try:
                state = self._read(key)
            except redis.exceptions.RedisError as e:
                logger.error(f"Failed to read alert {key}: {e}")
                continue
            if state is not None:
                states.append(state)

        METRIC_KNOWN_ALERTS.set(len(states))
        return states

    def _read(self, key: str):
        payload, silence = self.redis.hmget(key, [FIELD_ALERT, FIELD_SILENCE])
        if not payload:
            self._prune(key)
            return None

        try:
            alert = Alert.from_json(payload)
        except AlertDecodeError as e:
            logger.warning(f"Skipping alert {key} with unreadable payload: {e}")
            return None

        if silence != 'true':
            return AlertState(alert=alert, ttl=0)

        ttl = self.redis.ttl(key)
        if ttl == TTL_MISSING:
            # Silence window ran out between the two reads
            self._prune(key)
            return None
        # TTL rounds sub-second remainders to 0, which must not read as active
        if ttl == 0:
            ttl = 1
        return AlertState(alert=alert, ttl=ttl, silenced=True)

    def _prune(self, key: str) -> None:
        removed = self.redis.srem(self.urls_key, key)
        METRIC_ALERTS_PRUNED.inc()
        logger.info(f"Removed {key} from {self.urls_key}: {removed}")

    def silence(self, request: Silence) -> bool:
        """
        Mark an alert silenced and apply the silence window.

        duration < 0 removes any expiry, 0 applies the default silence
        duration, > 0 applies exactly that many seconds (a small value such
        as 1 effectively un-silences the alert soon). A store failure stops
        the remaining steps.
        """
        key = request.url
        try:
            self.redis.hset(key, FIELD_SILENCE, 'true')
            logger.info(f"Alert {key} was silenced")

            if request.duration < 0:
                self.redis.persist(key)
                logger.info(f"Silenced {key} forever")
            elif request.duration == 0:
                self.redis.expire(key, self.silence_duration)
                logger.info(f"Silenced {key} for default duration ({self.silence_duration}s)")
            else:
                self.redis.expire(key, request.duration)
                logger.info(f"Silenced {key} for {request.duration} seconds")
            return True

        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to silence alert {key}: {e}")
            return False

    def ping(self) -> bool:
        return bool(self.redis.ping())
