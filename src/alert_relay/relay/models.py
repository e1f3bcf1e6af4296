"""Data models for the relay module."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from alert_relay.relay.exceptions import DecodeError


def _as_str(value: Any) -> str:
    """Coerce an optional JSON scalar into a string."""
    if value is None:
        return ""
    return str(value)


def _as_mapping(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"'{name}' must be an object")
    return value


@dataclass(frozen=True)
class Alert:
    """A single alert from an Alertmanager webhook.

    Attributes:
        severity: Value of the ``severity`` label (warning, info, critical...).
        summary: Short human summary annotation.
        description: Longer description annotation.
        generator_url: Link to the expression that caused the alert.
    """

    severity: str
    summary: str
    description: str
    generator_url: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        """Create an Alert from a webhook alert object.

        Missing labels, annotations or fields decode as empty strings.
        """
        if not isinstance(data, dict):
            raise DecodeError("alert entries must be objects")
        labels = _as_mapping(data.get("labels"), "labels")
        annotations = _as_mapping(data.get("annotations"), "annotations")
        return cls(
            severity=_as_str(labels.get("severity")),
            summary=_as_str(annotations.get("summary")),
            description=_as_str(annotations.get("description")),
            generator_url=_as_str(data.get("generatorURL")),
        )


@dataclass(frozen=True)
class AlertBatch:
    """One webhook delivery: a group status and its alerts, in order."""

    status: str
    alerts: tuple[Alert, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Any) -> AlertBatch:
        """Create an AlertBatch from a decoded webhook body.

        Raises:
            DecodeError: If the payload does not have the webhook shape.
        """
        if not isinstance(data, dict):
            raise DecodeError("webhook body must be a JSON object")

        alerts_data = data.get("alerts")
        if alerts_data is None:
            alerts_data = []
        if not isinstance(alerts_data, list):
            raise DecodeError("'alerts' must be an array")

        return cls(
            status=_as_str(data.get("status")),
            alerts=tuple(Alert.from_dict(a) for a in alerts_data),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> AlertBatch:
        """Decode an AlertBatch from a raw webhook body.

        Raises:
            DecodeError: If the body is not valid JSON or has the wrong shape.
        """
        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            raise DecodeError(f"Invalid JSON payload: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class RenderedMessage:
    """A formatted message for one alert, ready for delivery.

    Attributes:
        text: Rendered HTML text sent to chats.
        severity: Display label (title-cased when the severity is known).
        severity_icon: Icon for the severity, empty when unknown.
        status: Status of the batch the alert arrived in.
    """

    text: str
    severity: str
    severity_icon: str
    status: str
