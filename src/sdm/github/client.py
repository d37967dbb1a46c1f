"""GitHub API client for commit statuses and repository creation.

This module provides an async wrapper around the GitHub REST API for:
- Posting commit statuses that summarize goal progress
- Creating repositories for generated projects
- Resolving the login the token authenticates as

Transient failures are retried with exponential backoff and jitter; rate
limit responses surface as RateLimitError.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

COMMIT_STATES = ("error", "failure", "pending", "success")

# GitHub rejects status descriptions longer than this.
MAX_STATUS_DESCRIPTION = 140


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, None when no response was received.
        response_body: Response body from GitHub.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """Raised when the GitHub rate limit is exhausted.

    Attributes:
        reset_at: Unix timestamp when the limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class GitHubClient:
    """Async GitHub API client with retry and rate limit handling.

    Attributes:
        token: GitHub API token.
        base_url: API root; set it for GitHub Enterprise Server.
        max_retries: Retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Upper bound for a single backoff delay.
        timeout: Request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     await client.create_commit_status(
        ...         "owner", "repo", sha, "pending", "sdm/zeus", "Planned 4 goals"
        ...     )
    """

    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._login: Optional[str] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                    "User-Agent": "Zeus-SDM/1.0",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _backoff(self, attempt: int) -> float:
        """Full-jitter exponential backoff for the given 0-based attempt."""
        return random.uniform(0, min(self.base_delay * (2 ** attempt), self.max_delay))

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        reset_at = _int_header(response.headers, "x-ratelimit-reset")
        retry_after = _int_header(response.headers, "retry-after")
        if retry_after is None and reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={"reset_at": reset_at, "retry_after": retry_after},
        )
        return RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return (
            response.status_code == 403
            and _int_header(response.headers, "x-ratelimit-remaining") == 0
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Raises:
            RateLimitError: If GitHub reports the rate limit as exhausted.
            GitHubAPIError: On any other error response, or when retries
                            run out.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method, path, json=json_data)
            except httpx.RequestError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        "GitHub request error, retrying",
                        extra={"error": str(exc), "attempt": attempt + 1, "delay": delay, "path": path},
                    )
                    await asyncio.sleep(delay)
                continue

            if self._is_rate_limited(response):
                raise self._rate_limit_error(response)

            if response.status_code in self.RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                delay = self._backoff(attempt)
                logger.warning(
                    "Retryable error from GitHub API",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                body = response.text
                logger.error(
                    "GitHub API error",
                    extra={
                        "status_code": response.status_code,
                        "method": method,
                        "path": path,
                        "response_body": body[:500],
                    },
                )
                raise GitHubAPIError(
                    message=f"GitHub API error: {response.status_code}",
                    status_code=response.status_code,
                    response_body=body,
                    request_url=str(response.url),
                )

            return response

        logger.error(
            "GitHub API request failed after all retries",
            extra={"method": method, "path": path, "last_error": str(last_error)},
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_error}",
            request_url=f"{self.base_url}{path}",
        )

    async def get_authenticated_login(self) -> str:
        """Login of the user the token belongs to. Cached after the first call."""
        if self._login is None:
            response = await self._request("GET", "/user")
            self._login = response.json()["login"]
        return self._login

    async def create_commit_status(
        self,
        owner: str,
        repo: str,
        sha: str,
        state: str,
        context: str,
        description: str,
        target_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a commit status.

        Args:
            owner: Repository owner.
            repo: Repository name.
            sha: Commit to attach the status to.
            state: One of error, failure, pending, success.
            context: Status context; statuses with the same context replace
                     each other.
            description: Short description, truncated to GitHub's limit.
            target_url: Optional link shown with the status.

        Raises:
            ValueError: If state is not a GitHub commit state.
            GitHubAPIError: If the request fails.
        """
        if state not in COMMIT_STATES:
            raise ValueError(f"Invalid commit state {state!r}")

        payload: Dict[str, Any] = {
            "state": state,
            "context": context,
            "description": description[:MAX_STATUS_DESCRIPTION],
        }
        if target_url:
            payload["target_url"] = target_url

        response = await self._request("POST", f"/repos/{owner}/{repo}/statuses/{sha}", payload)
        logger.info(
            "Created commit status",
            extra={"repository": f"{owner}/{repo}", "sha": sha, "state": state, "context": context},
        )
        return response.json()

    async def create_repository(
        self,
        owner: str,
        name: str,
        private: bool = False,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a repository owned by the token's user or an organization.

        When owner is the authenticated login the repository is created
        under the user account, otherwise under the organization owner.

        Returns:
            Repository data from GitHub, including html_url and clone_url.
        """
        login = await self.get_authenticated_login()
        if owner.lower() == login.lower():
            path = "/user/repos"
        else:
            path = f"/orgs/{owner}/repos"

        payload: Dict[str, Any] = {"name": name, "private": private, "auto_init": False}
        if description:
            payload["description"] = description

        response = await self._request("POST", path, payload)
        result = response.json()
        logger.info(
            "Created repository",
            extra={"repository": f"{owner}/{name}", "private": private, "url": result.get("html_url")},
        )
        return result

    async def health_check(self) -> bool:
        """Whether the API is reachable with the configured token."""
        try:
            response = await self.client.get("/user")
        except httpx.HTTPError as exc:
            logger.warning("GitHub API health check failed", extra={"error": str(exc)})
            return False
        return response.status_code == 200
