"""
Run summary delivery.

The orchestrator hands one plain-text summary per run to a Notifier. A
notifier never fails the run: delivery errors are logged and dropped.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from compsync.config import settings

logger = logging.getLogger(__name__)

# Discord rejects message content longer than this
DISCORD_MESSAGE_LIMIT = 2000


class Notifier(Protocol):
    async def send(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Writes the summary to the log. Used when no webhook is configured."""

    async def send(self, message: str) -> None:
        logger.info("Sync run summary:\n%s", message)


class DiscordWebhookNotifier:
    """
    Posts the summary to a Discord channel webhook.

    Args:
        webhook_url: Channel webhook URL
        timeout: Request timeout in seconds
        client: Optional shared httpx.AsyncClient (tests pass one with a
            MockTransport); a short-lived client is used otherwise
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client = client

    @staticmethod
    def format_content(message: str) -> str:
        if len(message) <= DISCORD_MESSAGE_LIMIT:
            return message
        marker = "\n... (truncated)"
        return message[: DISCORD_MESSAGE_LIMIT - len(marker)] + marker

    async def _post(self, client: httpx.AsyncClient, content: str) -> None:
        response = await client.post(self.webhook_url, json={"content": content})
        response.raise_for_status()

    async def send(self, message: str) -> None:
        content = self.format_content(message)
        try:
            if self._client is not None:
                await self._post(self._client, content)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    await self._post(client, content)
        except httpx.HTTPError as e:
            logger.error("Failed to deliver sync summary to Discord: %s", e)


def build_notifier(webhook_url: Optional[str] = None) -> Notifier:
    """Discord notifier when a webhook is configured, else the log."""
    url = webhook_url or settings.discord_webhook_url
    if url:
        return DiscordWebhookNotifier(url)
    return LoggingNotifier()
