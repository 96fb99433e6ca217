"""
Base alert interface.
"""

from abc import ABC, abstractmethod
from enum import Enum


class AlertSeverity(Enum):
    """Alert severity levels."""
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertService(ABC):
    """
    Abstract base class for alert services.

    Implementations must never raise from send(); delivery problems are
    logged and reported through the return value.
    """

    @abstractmethod
    async def send(
        self,
        severity: AlertSeverity,
        title: str,
        message: str,
    ) -> bool:
        """
        Send an alert.

        Returns:
            True if sent (or intentionally skipped)
        """
        pass

    async def send_info(self, title: str, message: str) -> bool:
        return await self.send(AlertSeverity.INFO, title, message)

    async def send_warning(self, title: str, message: str) -> bool:
        return await self.send(AlertSeverity.WARNING, title, message)

    async def send_critical(self, title: str, message: str) -> bool:
        return await self.send(AlertSeverity.CRITICAL, title, message)

    async def close(self) -> None:
        return None


class NullAlertService(AlertService):
    """Alert service used when alerting is disabled."""

    async def send(
        self,
        severity: AlertSeverity,
        title: str,
        message: str,
    ) -> bool:
        return True
