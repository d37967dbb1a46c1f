"""GitHub webhook intake for the delivery machine.

This module receives and parses:
- push events - new commits on a branch, which trigger goal planning
- channel-link events - a repository was linked to a chat channel
"""

from .handler import WebhookHandler, create_webhook_handler
from .models import ChannelLinkEvent, PushEvent

__all__ = [
    "ChannelLinkEvent",
    "PushEvent",
    "WebhookHandler",
    "create_webhook_handler",
]
