"""GitHub webhook handler for push events.

This module provides the WebhookHandler class for validating and parsing
GitHub push webhooks and channel-link notifications.

GitHub Webhook Payload Structure (push event):
{
  "ref": "refs/heads/main",
  "before": "9049f1265b7d61be4a8904a9a27120d2064dab3b",
  "after": "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
  "deleted": false,
  "repository": {
    "name": "repo-name",
    "owner": {"login": "owner-name"},
    "html_url": "https://github.com/owner-name/repo-name"
  },
  "pusher": {"name": "username"},
  "commits": [{"id": "...", "message": "Fix build"}]
}
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional

from .models import ChannelLinkEvent, PushEvent

logger = logging.getLogger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"
NULL_SHA = "0" * 40


class WebhookHandler:
    """Handler for validating and parsing GitHub webhook events.

    Attributes:
        secret: Webhook secret for signature validation. When None,
                signatures are not checked.
    """

    def __init__(self, secret: Optional[str] = None) -> None:
        self.secret = secret

    def verify_signature(self, body: bytes, signature_header: Optional[str]) -> bool:
        """Validate the X-Hub-Signature-256 header against the raw body.

        Args:
            body: The raw request body.
            signature_header: Header value in format "sha256=<hexdigest>".

        Returns:
            True if no secret is configured or the signature matches.
        """
        if not self.secret:
            return True

        if not signature_header or not signature_header.startswith("sha256="):
            logger.warning("Missing or malformed webhook signature header")
            return False

        expected = hmac.new(
            self.secret.encode("utf-8"), body, hashlib.sha256
        ).hexdigest()
        received = signature_header[len("sha256="):]
        return hmac.compare_digest(expected, received)

    def parse_push_event(self, payload: Dict[str, Any]) -> Optional[PushEvent]:
        """Parse a GitHub push event from a webhook payload.

        Returns:
            PushEvent if parsing succeeds, None otherwise.
            Returns None for:
            - Malformed payload structure or missing required fields
            - Tag pushes (refs outside refs/heads/)
            - Branch deletions
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        ref = payload.get("ref")
        if not isinstance(ref, str) or not ref.startswith(BRANCH_REF_PREFIX):
            logger.debug("Ignoring push to non-branch ref: %s", ref)
            return None
        branch = ref[len(BRANCH_REF_PREFIX):]
        if not branch:
            logger.warning("Empty branch name in ref: %s", ref)
            return None

        sha = payload.get("after")
        if payload.get("deleted") is True or sha == NULL_SHA:
            logger.debug("Ignoring branch deletion: %s", branch)
            return None
        if not isinstance(sha, str) or len(sha) < 7:
            logger.warning("Invalid 'after' sha in payload: %s", sha)
            return None

        repo_data = payload.get("repository")
        if not isinstance(repo_data, dict):
            logger.warning(
                "Missing or invalid 'repository' field in payload: %s",
                type(repo_data),
            )
            return None

        repo_name = repo_data.get("name")
        if not isinstance(repo_name, str) or not repo_name.strip():
            logger.warning("Invalid or empty repository name: %s", repo_name)
            return None

        owner = self._extract_owner(repo_data.get("owner"))
        if owner is None:
            return None

        before = payload.get("before")
        if not isinstance(before, str) or before == NULL_SHA:
            before = None

        event = PushEvent(
            owner=owner,
            repository=repo_name.strip(),
            branch=branch,
            sha=sha,
            before=before,
            pusher=self._extract_pusher(payload.get("pusher")),
            commit_messages=self._extract_commit_messages(payload.get("commits")),
            web_url=self._extract_web_url(repo_data, owner, repo_name.strip()),
        )

        logger.info(
            "Parsed push event",
            extra={"push_id": event.push_id, "branch": branch},
        )
        return event

    def parse_channel_link_event(
        self, payload: Dict[str, Any]
    ) -> Optional[ChannelLinkEvent]:
        """Parse a channel-link notification body.

        Expected shape: {"owner": "...", "repository": "...", "channel": "..."}
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        fields = {}
        for name in ("owner", "repository", "channel"):
            value = payload.get(name)
            if not isinstance(value, str) or not value.strip():
                logger.warning("Invalid or empty channel-link field %s: %s", name, value)
                return None
            fields[name] = value.strip()

        return ChannelLinkEvent(**fields)

    def _extract_owner(self, owner_data: Any) -> Optional[str]:
        """Extract the owner from repository.owner.

        Push payloads carry "login" for organizations and users on newer
        deliveries, and only "name" on some older ones.
        """
        if not isinstance(owner_data, dict):
            logger.warning("Missing or invalid repository owner data: %s", type(owner_data))
            return None

        for key in ("login", "name"):
            value = owner_data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

        logger.warning("Repository owner has neither login nor name")
        return None

    def _extract_pusher(self, pusher_data: Any) -> str:
        if isinstance(pusher_data, dict):
            name = pusher_data.get("name")
            if isinstance(name, str):
                return name.strip()
        return ""

    def _extract_commit_messages(self, commits_data: Any) -> List[str]:
        if not isinstance(commits_data, list):
            return []

        messages = []
        for commit in commits_data:
            if isinstance(commit, dict) and isinstance(commit.get("message"), str):
                messages.append(commit["message"])
        return messages

    def _extract_web_url(self, repo_data: Dict[str, Any], owner: str, repo: str) -> str:
        """Derive the GitHub web host from the repository's html_url."""
        html_url = repo_data.get("html_url")
        suffix = f"/{owner}/{repo}"
        if isinstance(html_url, str) and html_url.endswith(suffix):
            return html_url[: -len(suffix)]
        return "https://github.com"


def create_webhook_handler(secret: Optional[str] = None) -> WebhookHandler:
    """Factory function to create a WebhookHandler instance."""
    return WebhookHandler(secret=secret)
