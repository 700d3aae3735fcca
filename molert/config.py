#!/usr/bin/env python3
"""
molert - Service configuration

Settings are read from environment variables. Command-line flags (see
``molert serve --help``) override the environment when given.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


def parse_address(address: str, default_port: int) -> Tuple[str, int]:
    """Split ``host:port`` into its parts. A bare host gets ``default_port``."""
    address = address.strip()
    if not address:
        raise ValueError("address is empty")

    host, sep, port = address.rpartition(':')
    if not sep:
        return address, default_port
    if not port.isdigit():
        raise ValueError(f"invalid port in address {address!r}")
    return host or '0.0.0.0', int(port)


class Config:
    """Relay configuration loaded from environment variables."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        overrides = {k: v for k, v in (overrides or {}).items() if v not in (None, '')}
        try:
            # Webhook
            self.SLACK_WEBHOOK_URL = overrides.get('slack_webhook', os.environ.get('SLACK_WEBHOOK_URL', ''))
            self.SLACK_WEBHOOK_TIMEOUT = float(os.environ.get('SLACK_WEBHOOK_TIMEOUT', 10))
            self.NOTIFY_USERNAME = os.environ.get('NOTIFY_USERNAME', 'alert-bot')
            self.NOTIFY_ICON_EMOJI = os.environ.get('NOTIFY_ICON_EMOJI', ':loudspeaker:')
            self.NOTIFY_COLOR = os.environ.get('NOTIFY_COLOR', 'warning')

            # Redis
            redis_url = overrides.get('redis_url', os.environ.get('REDIS_URL', ''))
            if redis_url:
                self.REDIS_HOST, self.REDIS_PORT = parse_address(redis_url, 6379)
            else:
                self.REDIS_HOST = os.environ.get('REDIS_HOST', '127.0.0.1')
                self.REDIS_PORT = int(os.environ.get('REDIS_PORT', 6379))
            self.REDIS_TLS_ENABLED = _env_bool('REDIS_TLS_ENABLED')
            self.REDIS_CA_CERT_PATH = os.environ.get('REDIS_CA_CERT_PATH')
            self.REDIS_PASS_CURRENT = os.environ.get('REDIS_PASS_CURRENT') or os.environ.get('REDIS_PASS')
            self.REDIS_PASS_NEXT = os.environ.get('REDIS_PASS_NEXT')
            self.REDIS_MAX_CONNECTIONS = int(os.environ.get('REDIS_MAX_CONNECTIONS', 10))
            self.ALERT_URLS_KEY = os.environ.get('ALERT_URLS_KEY', 'alert_urls')

            # Lifecycle
            self.ALERT_EXPIRATION = int(overrides.get('expiration', os.environ.get('ALERT_EXPIRATION', 180)))
            self.SCAN_FREQUENCY = int(overrides.get('frequency', os.environ.get('SCAN_FREQUENCY', 60)))
            self.SILENCE_DURATION = int(overrides.get('silence_duration', os.environ.get('SILENCE_DURATION', 3600)))
            self.EXTERNAL_URL = overrides.get('external_url', os.environ.get('EXTERNAL_URL', '')).rstrip('/')

            # HTTP gateway
            self.LISTEN_ADDR = overrides.get('listen_addr', os.environ.get('LISTEN_ADDR', '0.0.0.0:19093'))
            self.LISTEN_HOST, self.LISTEN_PORT = parse_address(self.LISTEN_ADDR, 19093)

            self.LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

            self._validate()

        except (ValueError, TypeError) as e:
            logger.error(f"FATAL: Configuration error: {e}")
            sys.exit(1)

    def _validate(self):
        """Validate critical configuration values."""
        if not self.SLACK_WEBHOOK_URL:
            raise ValueError("SLACK_WEBHOOK_URL is required but not set")

        if self.ALERT_EXPIRATION < 1:
            raise ValueError(f"ALERT_EXPIRATION must be positive, got: {self.ALERT_EXPIRATION}")
        if self.SCAN_FREQUENCY < 1:
            raise ValueError(f"SCAN_FREQUENCY must be positive, got: {self.SCAN_FREQUENCY}")
        if self.SILENCE_DURATION < 1:
            raise ValueError(f"SILENCE_DURATION must be positive, got: {self.SILENCE_DURATION}")

        for name, port in (('LISTEN_ADDR', self.LISTEN_PORT), ('REDIS_PORT', self.REDIS_PORT)):
            if port < 1 or port > 65535:
                raise ValueError(f"{name} port must be between 1-65535, got: {port}")

        if self.REDIS_MAX_CONNECTIONS < 1:
            raise ValueError(f"REDIS_MAX_CONNECTIONS too low (min 1): {self.REDIS_MAX_CONNECTIONS}")

        if self.LOG_LEVEL not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got: {self.LOG_LEVEL}")

        if not self.EXTERNAL_URL:
            logger.warning("EXTERNAL_URL not set. Silence commands sent to recipients will lack a target URL.")

        if self.REDIS_TLS_ENABLED and self.REDIS_CA_CERT_PATH and not os.path.exists(self.REDIS_CA_CERT_PATH):
            logger.warning(
                f"REDIS_CA_CERT_PATH specified but not found: {self.REDIS_CA_CERT_PATH}. "
                "Will use system default CAs."
            )

        logger.info("Configuration loaded and validated successfully")

    def as_dict(self) -> Dict[str, Any]:
        """Configuration values safe to expose (passwords and webhook redacted)."""
        hidden = {'REDIS_PASS_CURRENT', 'REDIS_PASS_NEXT', 'SLACK_WEBHOOK_URL'}
        return {
            k: ('***' if k in hidden and v else v)
            for k, v in vars(self).items()
            if k.isupper()
        }
