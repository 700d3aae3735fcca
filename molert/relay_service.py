#!/usr/bin/env python3
"""
=====================================================================
molert Relay Service
=====================================================================
Receives alerts from Prometheus, tracks them in Redis, and forwards
unsilenced alerts to a Slack-compatible webhook on a fixed interval.

Endpoints:
- POST /, /api/v1/alerts, /api/v2/alerts : submit a JSON array of alerts
- POST /silence                          : silence one alert
- GET  /alerts                           : current registry snapshot
- GET  /health                           : store connectivity
- GET  /metrics                          : Prometheus metrics

The gateway is fire-and-forget: submit and silence always answer "ok";
failures are visible in logs and metrics only.
=====================================================================
"""

import logging
import signal
import sys
import uuid
from typing import Optional

import redis
from flask import Flask, jsonify, request
from prometheus_flask_exporter import PrometheusMetrics

from molert import __version__
from molert.config import Config
from molert.logging_utils import setup_json_logging
from molert.metrics import METRIC_ALERTS_RECEIVED, METRIC_SILENCE_REQUESTS
from molert.models import Alert, AlertDecodeError, Silence
from molert.notifier import Notifier
from molert.redis_connector import get_redis_pool
from molert.registry import AlertRegistry
from molert.scheduler import Scheduler
from molert.tracing_utils import setup_tracing

logger = logging.getLogger(__name__)

SERVICE_NAME = "molert"


# =====================================================================
# REDIS CONNECTION
# =====================================================================

def create_redis_client(config: Config) -> redis.Redis:
    """Connect to Redis or exit. The relay cannot run without its store."""
    try:
        logger.info(
            f"Creating Redis connection pool: {config.REDIS_HOST}:{config.REDIS_PORT} "
            f"(TLS: {config.REDIS_TLS_ENABLED}, Max Connections: {config.REDIS_MAX_CONNECTIONS})"
        )
        pool = get_redis_pool(
            host=config.REDIS_HOST,
            port=config.REDIS_PORT,
            tls_enabled=config.REDIS_TLS_ENABLED,
            ca_cert_path=config.REDIS_CA_CERT_PATH,
            password_current=config.REDIS_PASS_CURRENT,
            password_next=config.REDIS_PASS_NEXT,
            max_connections=config.REDIS_MAX_CONNECTIONS,
            logger=logger,
        )
        logger.info("Successfully created and tested Redis connection pool")
        return redis.Redis(connection_pool=pool)

    except Exception as e:
        logger.error(f"FATAL: Could not connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}: {e}")
        sys.exit(1)


# =====================================================================
# FLASK APPLICATION FACTORY
# =====================================================================

def create_app(
    config: Optional[Config] = None,
    redis_client: Optional[redis.Redis] = None,
    notifier: Optional[Notifier] = None,
) -> Flask:
    """Creates and configures the Flask application."""

    app = Flask(__name__)

    config = config or Config()
    app.config["CONFIG"] = config

    setup_tracing(service_name=SERVICE_NAME, version=__version__, app=app)

    if redis_client is None:
        redis_client = create_redis_client(config)

    app.registry = AlertRegistry(
        redis_client,
        expiration=config.ALERT_EXPIRATION,
        silence_duration=config.SILENCE_DURATION,
        urls_key=config.ALERT_URLS_KEY,
    )
    app.notifier = notifier or Notifier.from_config(config)
    app.scheduler = Scheduler(app.registry, app.notifier, config.SCAN_FREQUENCY)

    PrometheusMetrics(app)
    logger.info("Prometheus metrics endpoint initialized at /metrics")

    # ================================================================
    # REQUEST HANDLERS
    # ================================================================

    @app.before_request
    def assign_correlation_id():
        request.correlation_id = request.headers.get('X-Correlation-ID', str(uuid.uuid4()))

    @app.after_request
    def echo_correlation_id(response):
        response.headers['X-Correlation-ID'] = request.correlation_id
        return response

    @app.route('/', methods=['POST'])
    @app.route('/api/v1/alerts', methods=['POST'])
    @app.route('/api/v2/alerts', methods=['POST'])
    def handle_alerts():
        """Save every alert in the posted JSON array."""
        payload = request.get_json(force=True, silent=True)
        if not isinstance(payload, list):
            logger.warning(f"Expected a JSON array of alerts, got: {request.get_data(as_text=True)[:200]}")
            METRIC_ALERTS_RECEIVED.labels(status='invalid').inc()
            return "ok", 200

        for item in payload:
            try:
                alert = Alert.from_dict(item)
            except AlertDecodeError as e:
                logger.warning(f"Skipping malformed alert: {e}")
                METRIC_ALERTS_RECEIVED.labels(status='invalid').inc()
                continue

            if not alert.key:
                logger.warning("Skipping alert without generatorURL")
                METRIC_ALERTS_RECEIVED.labels(status='invalid').inc()
                continue

            saved = app.registry.upsert(alert)
            METRIC_ALERTS_RECEIVED.labels(status='saved' if saved else 'skipped').inc()

        return "ok", 200

    @app.route('/silence', methods=['POST'])
    def handle_silence():
        """Silence one alert for the requested duration."""
        try:
            silence = Silence.from_dict(request.get_json(force=True, silent=True))
        except AlertDecodeError as e:
            logger.warning(f"Failed to decode silence request: {e}")
            METRIC_SILENCE_REQUESTS.labels(mode='invalid').inc()
            return "ok", 200

        if not silence.url:
            logger.warning("Silence request without url ignored")
            METRIC_SILENCE_REQUESTS.labels(mode='invalid').inc()
            return "ok", 200

        if silence.duration < 0:
            mode = 'forever'
        elif silence.duration == 0:
            mode = 'default'
        else:
            mode = 'custom'

        if not app.registry.silence(silence):
            mode = 'error'
        METRIC_SILENCE_REQUESTS.labels(mode=mode).inc()
        return "ok", 200

    @app.route('/alerts', methods=['GET'])
    def list_alerts():
        """Current snapshot of every known alert."""
        return jsonify([state.to_dict() for state in app.registry.list()]), 200

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for load balancers and orchestrators."""
        try:
            app.registry.ping()
            return jsonify({
                "status": "healthy",
                "service": SERVICE_NAME,
                "version": __version__,
                "redis": "connected"
            }), 200
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return jsonify({
                "status": "unhealthy",
                "service": SERVICE_NAME,
                "version": __version__,
                "redis": "disconnected",
                "error": str(e)
            }), 503

    @app.route('/', methods=['GET'])
    def index():
        """Service information endpoint."""
        return jsonify({
            "service": "molert relay",
            "version": __version__,
            "config": config.as_dict(),
            "endpoints": {
                "alerts": "POST / (JSON array of alerts), also /api/v1/alerts and /api/v2/alerts",
                "silence": "POST /silence",
                "list": "GET /alerts",
                "health": "GET /health",
                "metrics": "GET /metrics",
            }
        }), 200

    return app


# =====================================================================
# GRACEFUL SHUTDOWN HANDLING
# =====================================================================

def setup_signal_handlers(app):
    """Stop the scheduler on SIGTERM/SIGINT."""

    def shutdown_handler(signum, frame):
        sig_name = 'SIGTERM' if signum == signal.SIGTERM else 'SIGINT'
        logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        app.scheduler.stop()
        logger.info("Graceful shutdown complete")
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    logger.info("Signal handlers registered for graceful shutdown")


# =====================================================================
# MAIN ENTRY POINT
# =====================================================================

def serve(overrides=None) -> None:
    """Run the gateway and the scheduler in this process."""
    setup_json_logging(service_name=SERVICE_NAME, version=__version__)

    config = Config(overrides)
    logging.getLogger().setLevel(config.LOG_LEVEL)

    app = create_app(config)
    setup_signal_handlers(app)
    app.scheduler.start()

    logger.info(f"listening on {config.LISTEN_HOST}:{config.LISTEN_PORT}")
    app.run(host=config.LISTEN_HOST, port=config.LISTEN_PORT, threaded=True)


if __name__ == '__main__':
    serve()
