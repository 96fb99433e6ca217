"""Alert system module."""

from .base import AlertService, AlertSeverity, NullAlertService
from .telegram import TelegramAlertService, create_alert_service

__all__ = [
    "AlertService",
    "AlertSeverity",
    "NullAlertService",
    "TelegramAlertService",
    "create_alert_service",
]
