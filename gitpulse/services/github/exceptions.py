"""Exceptions for GitHub service."""

from typing import Any


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


class GitHubAuthError(GitHubAPIError):
    """Token rejected by GitHub (401, or 403 without a rate-limit signal).

    Session-fatal: once the token is rejected no later call can succeed, so
    batches abort instead of recording the error per unit.
    """

    def __init__(
        self,
        message: str = "Invalid or expired GitHub token. Please check your Personal Access Token.",
        status_code: int = 401,
    ):
        super().__init__(message, status_code)


class GitHubRateLimitError(GitHubAPIError):
    """Primary or secondary rate limit hit.

    `partial` is populated by the activity fetcher with the result assembled
    from units that completed before the limit was reached.
    """

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded. Please try again later.",
        status_code: int = 403,
        rate_limit_reset: int | None = None,
        retry_after: int | None = None,
    ):
        self.retry_after = retry_after  # Seconds, from Retry-After (secondary limits)
        self.partial: Any = None
        super().__init__(message, status_code, rate_limit_reset=rate_limit_reset)
