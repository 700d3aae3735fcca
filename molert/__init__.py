"""
molert - a minimal alert relay.

Receives Prometheus alerts, tracks their lifecycle in Redis and
periodically forwards unsilenced alerts to a Slack-compatible webhook.
"""

__version__ = "1.0.0"
