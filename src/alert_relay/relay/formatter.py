"""Alert message formatter for Telegram delivery.

This module turns an AlertBatch into one HTML message per alert. The
layout comes from a message template: either the built-in default or a
``message-template.html`` file in a templates directory, using
``$name`` placeholders.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Iterator
from pathlib import Path
from string import Template

from alert_relay.relay.exceptions import TemplateError
from alert_relay.relay.models import Alert, AlertBatch, RenderedMessage

logger = logging.getLogger(__name__)

TEMPLATE_FILENAME = "message-template.html"

SEVERITY_ICONS: dict[str, str] = {
    "warning": "⚠️",
    "info": "ℹ️",
    "critical": "⛔",
}

DEFAULT_TEMPLATE = (
    "$header\n"
    "Status: <b>$status</b>\n"
    "Message: <blockquote>$summary</blockquote>\n"
    "---\n"
    "<blockquote>$description</blockquote>\n"
    '<a href="$generator_url">Metric that caused alert</a>'
)

# Placeholders available to message templates
TEMPLATE_FIELDS = (
    "header",
    "severity",
    "severity_icon",
    "status",
    "summary",
    "description",
    "generator_url",
)


def get_severity_icon(severity: str) -> str:
    """Get the icon for a severity, or an empty string if unknown."""
    return SEVERITY_ICONS.get(severity, "")


def get_severity_label(severity: str) -> str:
    """Get the display label: title-cased when known, raw otherwise."""
    if severity in SEVERITY_ICONS:
        return severity.title()
    return severity


def build_header(severity: str) -> str:
    """Build the message header line for a severity.

    Known severities render as ``<icon> <b>Label</b> <icon>``; unknown
    ones pass through as escaped raw text without an icon.
    """
    icon = get_severity_icon(severity)
    label = html.escape(get_severity_label(severity))
    if not icon:
        return label
    return f"{icon} <b>{label}</b> {icon}"


class MessageTemplate:
    """A ``string.Template`` based message layout."""

    def __init__(self, source: str = DEFAULT_TEMPLATE, *, name: str = "<default>") -> None:
        self.source = source
        self.name = name
        self._template = Template(source)

    @classmethod
    def load(cls, templates_dir: Path | str | None) -> MessageTemplate:
        """Load the message template from a directory.

        Args:
            templates_dir: Directory holding ``message-template.html``, or
                None to use the built-in layout.

        Raises:
            TemplateError: If the file cannot be read or references
                unknown placeholders.
        """
        if templates_dir is None:
            return cls()

        path = Path(templates_dir) / TEMPLATE_FILENAME
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateError(f"Cannot read template {path}: {e}") from e

        template = cls(source, name=str(path))
        template.validate()
        logger.info("Loaded message template from %s", path)
        return template

    def validate(self) -> None:
        """Render once with empty fields to catch bad placeholders early."""
        self.render(dict.fromkeys(TEMPLATE_FIELDS, ""))

    def render(self, fields: dict[str, str]) -> str:
        """Render the template.

        Raises:
            TemplateError: On unknown placeholders or malformed ``$`` usage.
        """
        try:
            return self._template.substitute(fields)
        except KeyError as e:
            raise TemplateError(f"Unknown placeholder {e} in template {self.name}") from e
        except ValueError as e:
            raise TemplateError(f"Malformed template {self.name}: {e}") from e


class AlertFormatter:
    """Formats alert batches into per-alert Telegram HTML messages."""

    def __init__(self, template: MessageTemplate | None = None) -> None:
        """Initialize the formatter.

        Args:
            template: Message layout. Defaults to the built-in template.
        """
        self.template = template or MessageTemplate()

    def format_alert(self, alert: Alert, status: str) -> RenderedMessage:
        """Render a single alert.

        Args:
            alert: The alert to render.
            status: Status of the batch the alert belongs to.

        Returns:
            RenderedMessage with the HTML text and display fields.
        """
        icon = get_severity_icon(alert.severity)
        label = get_severity_label(alert.severity)

        text = self.template.render(
            {
                "header": build_header(alert.severity),
                "severity": html.escape(label),
                "severity_icon": icon,
                "status": html.escape(status),
                "summary": html.escape(alert.summary),
                "description": html.escape(alert.description),
                "generator_url": html.escape(alert.generator_url, quote=True),
            }
        )
        return RenderedMessage(
            text=text,
            severity=label,
            severity_icon=icon,
            status=status,
        )

    def format(self, batch: AlertBatch) -> Iterator[RenderedMessage]:
        """Lazily render one message per alert, in input order.

        Args:
            batch: Decoded webhook batch.

        Yields:
            RenderedMessage for each alert.
        """
        for alert in batch.alerts:
            yield self.format_alert(alert, batch.status)
