import time

from fastapi import HTTPException, status

from gitpulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
)


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, detail: str | None = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail or f"{resource} not found",
        )


class MissingTokenError(HTTPException):
    """Raised when a request carries no GitHub bearer token."""

    def __init__(self, message: str = "GitHub token required (Authorization: Bearer <token>)"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class GitHubTokenRejectedError(HTTPException):
    """Raised when GitHub rejects the caller's token."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class RateLimitedError(HTTPException):
    """Raised when GitHub rate limits the caller."""

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=message,
            headers={"Retry-After": str(retry_after)} if retry_after is not None else None,
        )


class UpstreamError(HTTPException):
    """Raised when GitHub fails in a way the caller can't fix."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=message,
        )


class ValidationError(HTTPException):
    """Raised when request validation fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
        )


def to_http_exception(error: GitHubAPIError) -> HTTPException:
    """Map a pipeline error to the HTTP error returned to the dashboard."""
    if isinstance(error, GitHubRateLimitError):
        retry_after = error.retry_after
        if retry_after is None and error.rate_limit_reset is not None:
            retry_after = max(0, error.rate_limit_reset - int(time.time()))
        return RateLimitedError(error.message, retry_after)
    if isinstance(error, GitHubAuthError):
        return GitHubTokenRejectedError(error.message)
    if error.status_code == 404:
        return NotFoundError("Resource", detail=error.message)
    return UpstreamError(error.message)
