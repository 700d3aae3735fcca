#!/usr/bin/env python3
"""
molert - Data model

Alert and Silence records as received from Prometheus / operators, plus the
outbound Slack webhook payload shapes (Message, Attachment).

Alerts are keyed by their generatorURL. Timestamps are kept as timezone-aware
datetimes and serialized back in RFC 3339 form.
"""

import json
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class AlertDecodeError(ValueError):
    """Raised when an alert or silence payload cannot be decoded."""


# Prometheus timestamps may carry nanoseconds; datetime stops at microseconds.
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp string into UTC. Empty values return None."""
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise AlertDecodeError(f"timestamp must be a string, got {type(value).__name__}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r".\1", text)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise AlertDecodeError(f"invalid timestamp {value!r}: {e}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        raise AlertDecodeError(f"timestamp {value!r} out of range: {e}") from e


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _string_map(data: Dict[str, Any], name: str) -> Dict[str, str]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise AlertDecodeError(f"{name} must be an object")
    return {str(k): str(v) for k, v in raw.items()}


@dataclass
class Alert:
    """A single firing alert. ``generator_url`` is its identity."""

    generator_url: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.generator_url

    @classmethod
    def from_dict(cls, data: Any) -> "Alert":
        if not isinstance(data, dict):
            raise AlertDecodeError("alert must be a JSON object")

        generator_url = data.get("generatorURL") or ""
        if not isinstance(generator_url, str):
            raise AlertDecodeError("generatorURL must be a string")

        return cls(
            generator_url=generator_url,
            labels=_string_map(data, "labels"),
            annotations=_string_map(data, "annotations"),
            starts_at=parse_timestamp(data.get("startsAt")),
            ends_at=parse_timestamp(data.get("endsAt")),
        )

    @classmethod
    def from_json(cls, payload: str) -> "Alert":
        try:
            data = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as e:
            raise AlertDecodeError(f"invalid alert JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "startsAt": format_timestamp(self.starts_at),
            "endsAt": format_timestamp(self.ends_at),
            "generatorURL": self.generator_url,
        }
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


@dataclass
class Silence:
    """
    A request to silence one alert.

    duration < 0 silences indefinitely, 0 uses the configured default,
    and > 0 silences for exactly that many seconds.
    """

    url: str
    duration: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "Silence":
        if not isinstance(data, dict):
            raise AlertDecodeError("silence must be a JSON object")

        url = data.get("url") or ""
        if not isinstance(url, str):
            raise AlertDecodeError("url must be a string")

        duration = data.get("duration", 0)
        if duration is None:
            duration = 0
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            raise AlertDecodeError(f"duration must be an integer, got {duration!r}")
        if isinstance(duration, float) and not (math.isfinite(duration) and duration.is_integer()):
            raise AlertDecodeError(f"duration must be a whole number of seconds, got {duration!r}")

        return cls(url=url, duration=int(duration))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url}
        if self.duration:
            data["duration"] = self.duration
        return data


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop empty values so the webhook only sees fields that are set."""
    return {k: v for k, v in data.items() if v not in (None, "", [], 0)}


@dataclass
class Attachment:
    color: str = ""
    title: str = ""
    text: str = ""
    title_link: str = ""
    footer: str = ""
    ts: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "color": self.color,
            "title": self.title,
            "text": self.text,
            "title_link": self.title_link,
            "footer": self.footer,
            "ts": self.ts,
        })


@dataclass
class Message:
    """One outbound webhook post, addressed to a single user or channel."""

    channel: str
    text: str = ""
    username: str = ""
    icon_emoji: str = ""
    attachments: List[Attachment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "text": self.text,
            "channel": self.channel,
            "username": self.username,
            "icon_emoji": self.icon_emoji,
            "attachments": [a.to_dict() for a in self.attachments],
        })
