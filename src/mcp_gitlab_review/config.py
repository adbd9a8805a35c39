"""GitLab MCP server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def normalize_api_url(url: str) -> str:
    """Return the REST v4 base for an instance URL.

    ``https://host``, ``https://host/api`` and ``https://host/api/v4`` (with or
    without a trailing slash) all resolve to ``https://host/api/v4``.
    """
    trimmed = url.strip().rstrip("/")
    if trimmed.endswith("/api/v4"):
        return trimmed
    if trimmed.endswith("/api"):
        return f"{trimmed}/v4"
    return f"{trimmed}/api/v4"


@dataclass(frozen=True)
class GitLabConfig:
    """Configuration for the GitLab MCP server, loaded from environment variables.

    Built once at startup and shared read-only by every tool call.
    """

    url: str = ""
    token: str = ""
    read_only: bool = False
    timeout: float = 30
    ssl_verify: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> GitLabConfig:
        url = os.getenv("GITLAB_URL", "").strip().rstrip("/")
        token = (
            os.getenv("GITLAB_TOKEN")
            or os.getenv("GITLAB_PAT")
            or os.getenv("GITLAB_PERSONAL_ACCESS_TOKEN")
            or os.getenv("GITLAB_API_TOKEN", "")
        ).strip()
        read_only = os.getenv("GITLAB_READ_ONLY", "false").lower() in (
            "true",
            "1",
            "yes",
        )
        raw_timeout = os.getenv("GITLAB_TIMEOUT", "30")
        try:
            timeout = float(raw_timeout)
        except ValueError:
            msg = f"GITLAB_TIMEOUT must be a number of seconds, got {raw_timeout!r}"
            raise ValueError(msg) from None
        ssl_verify = os.getenv("GITLAB_SSL_VERIFY", "true").lower() not in (
            "false",
            "0",
            "no",
        )
        log_level = os.getenv("GITLAB_LOG_LEVEL", "INFO").upper()

        return cls(
            url=url,
            token=token,
            read_only=read_only,
            timeout=timeout,
            ssl_verify=ssl_verify,
            log_level=log_level,
        )

    @property
    def api_url(self) -> str:
        return normalize_api_url(self.url)

    def validate(self) -> None:
        if not self.url:
            msg = "GITLAB_URL environment variable is required"
            raise ValueError(msg)
        if not self.token:
            msg = (
                "GitLab token is required. Set one of: GITLAB_TOKEN, GITLAB_PAT, "
                "GITLAB_PERSONAL_ACCESS_TOKEN, or GITLAB_API_TOKEN"
            )
            raise ValueError(msg)
        if self.timeout <= 0:
            msg = "GITLAB_TIMEOUT must be greater than zero"
            raise ValueError(msg)
        if self.log_level not in LOG_LEVELS:
            msg = f"GITLAB_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
