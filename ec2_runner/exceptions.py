"""Custom exception hierarchy for ec2-github-runner.

All runner-specific exceptions inherit from RunnerError, so callers can
catch them with a single except clause. AWS SDK errors are not wrapped:
they propagate as botocore exceptions.
"""

from __future__ import annotations


class RunnerError(Exception):
    """Base exception for all ec2-github-runner errors."""


class ConfigurationError(RunnerError):
    """Raised for invalid configuration or missing required inputs."""


class GitHubAPIError(RunnerError):
    """Raised when a GitHub REST API call fails.

    ``status_code`` is None when no response was received (connect error,
    timeout); ``body`` then holds the transport error.
    """

    def __init__(self, status_code: int | None, body: str, context: str = "") -> None:
        self.status_code = status_code
        self.body = body
        prefix = f"{context}: " if context else ""
        if status_code is None:
            super().__init__(f"{prefix}GitHub API request failed: {body}")
        else:
            super().__init__(f"{prefix}GitHub API returned {status_code}: {body}")

    @property
    def transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        return self.status_code is None or self.status_code >= 500


class RunnerRegistrationError(RunnerError):
    """Raised when the runner does not come online within the timeout."""

    def __init__(self, label: str, timeout: float) -> None:
        self.label = label
        self.timeout = timeout
        super().__init__(
            f"GitHub runner with label {label} was not registered after {timeout:g}s"
        )
