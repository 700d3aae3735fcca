#!/usr/bin/env python3
"""Prometheus metrics shared by the gateway, registry, notifier and scheduler."""

from prometheus_client import Counter, Gauge, Histogram

METRIC_ALERTS_RECEIVED = Counter(
    'molert_alerts_received_total',
    'Alerts received by the gateway',
    ['status']  # saved, skipped, invalid
)

METRIC_SILENCE_REQUESTS = Counter(
    'molert_silence_requests_total',
    'Silence requests applied',
    ['mode']  # forever, default, custom, invalid, error
)

METRIC_ALERTS_PRUNED = Counter(
    'molert_alerts_pruned_total',
    'Stale alert keys removed from the known-keys set'
)

METRIC_KNOWN_ALERTS = Gauge(
    'molert_known_alerts',
    'Alerts returned by the last registry listing'
)

METRIC_SCANS = Counter(
    'molert_scans_total',
    'Scheduler scans started'
)

METRIC_SCAN_DURATION = Histogram(
    'molert_scan_duration_seconds',
    'Duration of one scan and notify pass',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

METRIC_NOTIFICATIONS = Counter(
    'molert_notifications_total',
    'Webhook messages attempted',
    ['status']  # success, fail_http, fail_transport, fail_marshal
)

METRIC_WEBHOOK_LATENCY = Histogram(
    'molert_webhook_latency_seconds',
    'Latency of webhook POSTs',
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)
