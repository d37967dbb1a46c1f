"""Outbound chat messaging.

Goals, commands and listeners talk to users through a MessageClient.
Messages are plain text. The Slack client posts to an incoming webhook;
the logging client is used when no chat integration is configured.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class MessageSendError(Exception):
    """Raised when a chat message cannot be delivered.

    Attributes:
        status_code: HTTP status code from the chat service, if any.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MessageClient(ABC):
    """Sends plain-text messages to chat channels."""

    @abstractmethod
    async def send(self, text: str, channel: Optional[str] = None) -> None:
        """Send a message.

        Args:
            text: Message text.
            channel: Target channel; None means the default channel.
        """

    async def close(self) -> None:
        """Release resources held by the client."""


class LoggingMessageClient(MessageClient):
    """Message client that writes messages to the log."""

    async def send(self, text: str, channel: Optional[str] = None) -> None:
        logger.info(
            "Channel message: %s",
            text,
            extra={"channel": channel or "default"},
        )


class SlackWebhookMessageClient(MessageClient):
    """Message client posting to a Slack incoming webhook.

    Attributes:
        webhook_url: The incoming webhook URL.
        timeout: Request timeout in seconds.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, text: str, channel: Optional[str] = None) -> None:
        """Post the message to the webhook.

        Raises:
            MessageSendError: If the request fails or Slack rejects it.
        """
        body: Dict[str, Any] = {"text": text}
        if channel:
            body["channel"] = channel

        try:
            response = await self.client.post(self.webhook_url, json=body)
        except httpx.HTTPError as exc:
            raise MessageSendError(f"Failed to post message: {exc}") from exc

        if response.status_code >= 400:
            raise MessageSendError(
                f"Slack webhook returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def create_message_client(slack_webhook_url: Optional[str] = None) -> MessageClient:
    """Create the Slack client when a webhook is configured, else a logging client."""
    if slack_webhook_url:
        return SlackWebhookMessageClient(slack_webhook_url)
    return LoggingMessageClient()
