"""Invocation contexts handed to push tests, commands and listeners."""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from src.sdm.config import DeliverySettings
from src.sdm.messaging import MessageClient
from src.sdm.project import LocalProject
from src.sdm.push.models import ChannelLinkEvent, PushEvent


class _AddressesChannels:
    message_client: MessageClient

    async def address_channels(self, text: str, channel: Optional[str] = None) -> None:
        """Send a plain-text message through the invocation's message client."""
        await self.message_client.send(text, channel=channel)


@dataclass
class PushListenerInvocation(_AddressesChannels):
    """Context for evaluating push tests and running push listeners.

    Attributes:
        push: The push being handled.
        project: Checkout of the pushed commit.
        configuration: Machine configuration.
        message_client: Channel for user-facing messages.
    """

    push: PushEvent
    project: LocalProject
    configuration: DeliverySettings
    message_client: MessageClient


@dataclass
class CommandInvocation(_AddressesChannels):
    """Context for a command or generator run.

    Attributes:
        parameters: Validated command parameters.
        configuration: Machine configuration.
        message_client: Channel for user-facing messages.
    """

    parameters: Optional[BaseModel]
    configuration: DeliverySettings
    message_client: MessageClient


@dataclass
class ChannelLinkInvocation(_AddressesChannels):
    event: ChannelLinkEvent
    configuration: DeliverySettings
    message_client: MessageClient

    async def address_channels(self, text: str, channel: Optional[str] = None) -> None:
        """Send to the newly linked channel unless another channel is given."""
        await self.message_client.send(text, channel=channel or self.event.channel)
