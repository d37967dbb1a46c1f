"""Delivery machine configuration using pydantic-settings.

This module defines the DeliverySettings class that reads configuration
from environment variables with the SDM_ prefix. The settings instance is
the single configuration object handed to the machine assembly function.

Requirements:
- GitHub API token and base URLs for status reporting and repo creation
- Workspace and deployment base paths, Maven command and timeouts
- Seed repository coordinates for the Spring generators
- Event sinks and logging configuration for the service layer
"""

from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.sdm.events.emitter import EventSinkType


class DeliverySettings(BaseSettings):
    """Delivery machine configuration from environment variables.

    All environment variables are prefixed with SDM_ (e.g., SDM_GITHUB_TOKEN).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token for statuses, repo creation and git pushes
    """

    model_config = SettingsConfigDict(
        env_prefix="SDM_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # GitHub API token, also used for authenticated git clone and push
    github_token: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Base URL for repository web and clone URLs
    github_web_url: str = "https://github.com"

    # Secret for validating webhook signatures; unset disables validation
    github_webhook_secret: Optional[str] = None

    # -------------------------------------------------------------------------
    # Workspace Configuration
    # -------------------------------------------------------------------------
    # Base path for temporary checkouts of pushed commits and seeds
    workspace_base_path: str = "/var/lib/zeus/workspaces"

    # Author recorded on autofix and generator commits
    git_author_name: str = "Zeus SDM"
    git_author_email: str = "zeus-sdm@users.noreply.github.com"

    # -------------------------------------------------------------------------
    # Build Configuration
    # -------------------------------------------------------------------------
    # Maven executable used when the project carries no ./mvnw wrapper
    maven_command: str = "mvn"

    # Timeout in seconds for a Maven build
    build_timeout_seconds: int = 1800

    # -------------------------------------------------------------------------
    # Deployment Configuration
    # -------------------------------------------------------------------------
    # Base path holding one directory per branch deployment
    deploy_base_path: str = "/var/lib/zeus/deployments"

    # Host name used in deployment URLs
    deploy_host: str = "localhost"

    # Lowest port handed to a branch deployment
    deploy_base_port: int = 8080

    # Seconds to wait for a deployed application to report startup
    deploy_startup_timeout_seconds: int = 300

    # -------------------------------------------------------------------------
    # Generator Configuration
    # -------------------------------------------------------------------------
    # Chat team the generated application.yml is bound to
    team_id: Optional[str] = None

    # Seed repositories for the Spring generators
    spring_seed_owner: str = "atomist-seeds"
    funky_spring_seed_owner: str = "Zeus-Cloud-Team"
    spring_seed_repo: str = "spring-rest"
    spring_seed_branch: str = "master"

    # -------------------------------------------------------------------------
    # Messaging and Observability
    # -------------------------------------------------------------------------
    # Slack incoming webhook for channel messages; unset logs messages only
    slack_webhook_url: Optional[str] = None

    # Event sinks to emit delivery events to
    event_sinks: List[EventSinkType] = [EventSinkType.LOGGING, EventSinkType.METRICS]

    # Log level and renderer for the service
    log_level: str = "INFO"
    log_format: str = "json"

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("github_base_url", "github_web_url")
    @classmethod
    def validate_github_urls(cls, v: str) -> str:
        """Validate GitHub URLs and strip trailing slashes."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("GitHub URLs must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("slack_webhook_url")
    @classmethod
    def validate_slack_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate the Slack webhook URL when one is set."""
        if v is None or not v.strip():
            return None
        if not v.startswith("https://"):
            raise ValueError("slack_webhook_url must start with https://")
        return v

    @field_validator("workspace_base_path", "deploy_base_path")
    @classmethod
    def validate_base_paths(cls, v: str) -> str:
        """Validate that base paths are absolute."""
        if not Path(v).is_absolute():
            raise ValueError("base paths must be absolute")
        return v

    @field_validator("build_timeout_seconds", "deploy_startup_timeout_seconds")
    @classmethod
    def validate_timeouts(cls, v: int) -> int:
        """Validate that timeouts are positive."""
        if v < 1:
            raise ValueError("timeouts must be at least 1 second")
        return v

    @field_validator("port", "deploy_base_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v


def get_settings() -> DeliverySettings:
    """Create and return a DeliverySettings instance.

    Returns:
        DeliverySettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return DeliverySettings()
