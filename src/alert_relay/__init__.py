"""Alert Relay - Alertmanager webhook to Telegram fan-out bridge."""

__version__ = "0.1.0"
