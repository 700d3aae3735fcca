#!/usr/bin/env python3
"""
molert - Slack webhook notifier

Turns a stored alert into one webhook message per recipient and posts each
message once. Delivery is best effort: failures are logged and counted,
never retried.
"""

import json
import logging
import time
from typing import List

import requests

from molert.metrics import METRIC_NOTIFICATIONS, METRIC_WEBHOOK_LATENCY
from molert.models import Alert, Attachment, Message

logger = logging.getLogger(__name__)

MESSAGE_PREVIEW_LENGTH = 200


def split_recipients(value: str) -> List[str]:
    """Split a comma-separated label into trimmed, non-empty names."""
    return [part.strip() for part in value.split(',') if part.strip()]


class Notifier:
    """Builds and delivers webhook messages for alerts."""

    def __init__(
        self,
        webhook_url: str,
        *,
        silence_duration: int,
        external_url: str = '',
        username: str = 'alert-bot',
        icon_emoji: str = ':loudspeaker:',
        color: str = 'warning',
        timeout: float = 10.0,
        session=None,
    ):
        self.webhook_url = webhook_url
        self.silence_duration = silence_duration
        self.external_url = external_url.rstrip('/')
        self.username = username
        self.icon_emoji = icon_emoji
        self.color = color
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "Notifier":
        return cls(
            config.SLACK_WEBHOOK_URL,
            silence_duration=config.SILENCE_DURATION,
            external_url=config.EXTERNAL_URL,
            username=config.NOTIFY_USERNAME,
            icon_emoji=config.NOTIFY_ICON_EMOJI,
            color=config.NOTIFY_COLOR,
            timeout=config.SLACK_WEBHOOK_TIMEOUT,
        )

    def silence_command(self, alert: Alert) -> str:
        """Shell command a recipient can paste to silence this alert."""
        body = json.dumps({"url": alert.key, "duration": self.silence_duration})
        command = f"curl -XPOST -H 'Content-Type: application/json' -d '{body}'"
        if self.external_url:
            command = f"{command} {self.external_url}/silence"
        return command

    def to_messages(self, alert: Alert) -> List[Message]:
        """
        Fan an alert out to its recipients.

        One message per entry of the ``users`` label (addressed ``@name``)
        and per entry of the ``channels`` label. No recipients, no messages.
        """
        attachment = Attachment(
            color=self.color,
            title=alert.annotations.get('summary', ''),
            text=alert.annotations.get('description', ''),
            title_link=alert.generator_url,
            footer=alert.labels.get('env', ''),
            ts=int(alert.starts_at.timestamp()) if alert.starts_at else None,
        )
        text = self.silence_command(alert)

        recipients = []
        if 'users' in alert.labels:
            recipients += [f"@{user}" for user in split_recipients(alert.labels['users'])]
        if 'channels' in alert.labels:
            recipients += split_recipients(alert.labels['channels'])

        return [
            Message(
                channel=recipient,
                text=text,
                username=self.username,
                icon_emoji=self.icon_emoji,
                attachments=[attachment],
            )
            for recipient in recipients
        ]

    def send(self, message: Message) -> bool:
        """POST one message to the webhook. Returns True on a 2xx reply."""
        try:
            data = json.dumps(message.to_dict())
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to marshal message for {message.channel}, alert will not be sent: {e}")
            METRIC_NOTIFICATIONS.labels(status='fail_marshal').inc()
            return False

        start_time = time.time()
        try:
            response = self.session.post(
                self.webhook_url,
                data=data,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send alert to {message.channel}: {e}")
            METRIC_NOTIFICATIONS.labels(status='fail_transport').inc()
            return False
        finally:
            METRIC_WEBHOOK_LATENCY.observe(time.time() - start_time)

        if not response.ok:
            logger.error(
                f"Webhook rejected alert for {message.channel}: "
                f"{response.status_code} - {response.text[:MESSAGE_PREVIEW_LENGTH]}"
            )
            METRIC_NOTIFICATIONS.labels(status='fail_http').inc()
            return False

        logger.info(f"Sent alert to {message.channel}")
        METRIC_NOTIFICATIONS.labels(status='success').inc()
        return True

    def notify(self, alert: Alert) -> int:
        """Send every message for an alert. Returns how many were delivered."""
        return sum(1 for message in self.to_messages(alert) if self.send(message))
