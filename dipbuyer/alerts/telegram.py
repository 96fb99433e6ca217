"""
Telegram alert service.

Sends trade notifications to a chat via the Bot API.
"""

import asyncio
import html
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from ..config.schema import TelegramConfig
from ..utils.logging import get_logger
from .base import AlertService, AlertSeverity, NullAlertService

logger = get_logger(__name__)


SEVERITY_PREFIX = {
    AlertSeverity.INFO: "\U0001F7E2",      # Green circle
    AlertSeverity.WARNING: "\U0001F7E1",   # Yellow circle
    AlertSeverity.CRITICAL: "\U0001F534",  # Red circle
}


class TelegramAlertService(AlertService):
    """
    Telegram Bot API alert service.

    INFO messages are delivered silently; at most one message per
    second is sent.
    """

    MIN_INTERVAL_SECONDS = 1.0

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        send_info: bool = True,
        send_warning: bool = True,
        send_critical: bool = True,
    ):
        self.chat_id = chat_id
        self._enabled = {
            AlertSeverity.INFO: send_info,
            AlertSeverity.WARNING: send_warning,
            AlertSeverity.CRITICAL: send_critical,
        }
        self._url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        self._last_sent: Optional[datetime] = None
        self._session: Optional[aiohttp.ClientSession] = None

    def format_message(self, severity: AlertSeverity, title: str, message: str) -> str:
        """HTML body for the Bot API; title and message are escaped."""
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        return (
            f"{SEVERITY_PREFIX[severity]} <b>{severity.value} | {html.escape(title)}</b>\n\n"
            f"{html.escape(message)}\n\n"
            f"<i>{stamp}</i>"
        )

    async def _throttle(self) -> None:
        if self._last_sent:
            elapsed = (datetime.now(timezone.utc) - self._last_sent).total_seconds()
            if elapsed < self.MIN_INTERVAL_SECONDS:
                await asyncio.sleep(self.MIN_INTERVAL_SECONDS - elapsed)
        self._last_sent = datetime.now(timezone.utc)

    async def send(
        self,
        severity: AlertSeverity,
        title: str,
        message: str,
    ) -> bool:
        """Send an alert; returns False on delivery failure."""
        if not self._enabled.get(severity, True):
            logger.debug("alert_skipped", severity=severity.value, title=title)
            return True

        await self._throttle()

        body = {
            "chat_id": self.chat_id,
            "text": self.format_message(severity, title, message),
            "parse_mode": "HTML",
            "disable_notification": severity == AlertSeverity.INFO,
        }

        try:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
            async with self._session.post(
                self._url,
                json=body,
                timeout=aiohttp.ClientTimeout(total=10),
            ) as response:
                if response.status != 200:
                    logger.error(
                        "telegram_send_failed",
                        status=response.status,
                        error=await response.text(),
                    )
                    return False
        except asyncio.TimeoutError:
            logger.error("telegram_timeout", title=title)
            return False
        except aiohttp.ClientError as e:
            logger.error("telegram_client_error", error=str(e))
            return False

        logger.debug("alert_sent", severity=severity.value, title=title)
        return True

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


def create_alert_service(config: TelegramConfig) -> AlertService:
    """
    Create an alert service from configuration.

    Returns:
        TelegramAlertService, or NullAlertService when disabled or incomplete
    """
    if not config.enabled:
        logger.info("alerts_disabled")
        return NullAlertService()

    if not config.bot_token.get_secret_value() or not config.chat_id:
        logger.warning("telegram_config_incomplete")
        return NullAlertService()

    return TelegramAlertService(
        bot_token=config.bot_token.get_secret_value(),
        chat_id=config.chat_id,
        send_info=config.send_info,
        send_warning=config.send_warning,
        send_critical=config.send_critical,
    )
