"""
Monitoring - Error Telemetry.

============================================================
RESPONSIBILITY
============================================================
Reports sync failures to the operator.

- LoggingErrorReporter: structured log record only
- TelegramErrorReporter: Telegram message plus log record
- CompositeErrorReporter: fan-out to several reporters

============================================================
DESIGN PRINCIPLES
============================================================
- Reporting never raises into the sync loop
- Pruned-data stops are not reported (the loop filters them)
- Rate limited per minute

============================================================
"""

import asyncio
import html
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import aiohttp

from core.exceptions import ChainSyncException


logger = logging.getLogger(__name__)


def describe_exception(exc: BaseException) -> Dict[str, Any]:
    """Serializable summary of an exception."""
    if isinstance(exc, ChainSyncException):
        return exc.to_dict()
    return {"type": type(exc).__name__, "message": str(exc)}


# ============================================================
# REPORTER INTERFACE
# ============================================================

class ErrorReporter(ABC):
    """Sink for failures that halt the sync loop."""

    @abstractmethod
    async def capture_exception(
        self,
        exc: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    async def close(self) -> None:
        """Release resources."""
        pass


class LoggingErrorReporter(ErrorReporter):
    """Reports by logging at ERROR level."""

    def __init__(self) -> None:
        self.captured: List[Dict[str, Any]] = []

    async def capture_exception(
        self,
        exc: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        record = {"error": describe_exception(exc), "context": context or {}}
        self.captured.append(record)
        logger.error(f"Captured exception: {record}")


class CompositeErrorReporter(ErrorReporter):
    """Forwards every report to each child reporter."""

    def __init__(self, reporters: List[ErrorReporter]) -> None:
        self._reporters = list(reporters)

    async def capture_exception(
        self,
        exc: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        for reporter in self._reporters:
            await reporter.capture_exception(exc, context)

    async def close(self) -> None:
        for reporter in self._reporters:
            await reporter.close()


# ============================================================
# TELEGRAM
# ============================================================

class TelegramErrorReporter(ErrorReporter):
    """
    Sends failures via the Telegram bot API.

    Features:
    - Rate limiting (max_alerts_per_minute)
    - HTML formatted messages
    """

    API_URL = "https://api.telegram.org/bot{token}/sendMessage"

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        chain_id: str = "",
        max_alerts_per_minute: int = 5,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._bot_token = bot_token or ""
        self._chat_id = chat_id or ""
        self._chain_id = chain_id
        self._max_alerts_per_minute = max_alerts_per_minute

        self._session = session
        self._owns_session = session is None
        self._sent_times: List[datetime] = []

    @property
    def is_configured(self) -> bool:
        """Check if Telegram is configured."""
        return bool(self._bot_token and self._chat_id)

    async def capture_exception(
        self,
        exc: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.error(f"Sync failure: {exc!r} context={context or {}}")

        if not self.is_configured:
            logger.debug("Telegram not configured, failure logged only")
            return

        if not self._can_send():
            logger.warning(f"Telegram alert rate limited: {exc!r}")
            return

        await self._send(self._format_message(exc, context or {}))

    async def _send(self, message: str) -> bool:
        """Send message via Telegram API."""
        try:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
                self._owns_session = True

            url = self.API_URL.format(token=self._bot_token)
            payload = {
                "chat_id": self._chat_id,
                "text": message,
                "parse_mode": "HTML",
            }

            async with self._session.post(url, json=payload) as response:
                if response.status == 200:
                    self._sent_times.append(datetime.utcnow())
                    logger.info("Failure alert sent to Telegram")
                    return True

                body = await response.text()
                logger.error(f"Telegram API error {response.status}: {body}")
                return False

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send Telegram alert: {e}")
            return False

    def _format_message(self, exc: BaseException, context: Dict[str, Any]) -> str:
        """Format failure message for Telegram."""
        details = describe_exception(exc)
        lines = [
            f"🚨 <b>{html.escape(details.get('type', type(exc).__name__))}</b>",
            f"<b>Chain:</b> {html.escape(self._chain_id)}",
            f"<b>Time:</b> {datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S')} UTC",
            "",
            html.escape(str(details.get("message", exc))),
        ]

        if context:
            lines.append("\n<b>Context:</b>")
            for key, value in context.items():
                lines.append(f"  • {html.escape(str(key))}: {html.escape(str(value))}")

        return "\n".join(lines)

    def _can_send(self) -> bool:
        """Check if we can send an alert (rate limiting)."""
        minute_ago = datetime.utcnow() - timedelta(minutes=1)
        self._sent_times = [t for t in self._sent_times if t > minute_ago]
        return len(self._sent_times) < self._max_alerts_per_minute

    async def close(self) -> None:
        """Close HTTP session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()


__all__ = [
    "ErrorReporter",
    "LoggingErrorReporter",
    "CompositeErrorReporter",
    "TelegramErrorReporter",
    "describe_exception",
]
