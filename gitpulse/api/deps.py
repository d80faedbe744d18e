"""Request dependencies: GitHub token extraction and service construction.

The dashboard sends its GitHub token as `Authorization: Bearer <token>` on
every request. The token is used for the duration of the request only and is
never stored server-side.
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gitpulse.core.exceptions import MissingTokenError
from gitpulse.services.github import GitHubService

security = HTTPBearer(auto_error=False)


async def get_github_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Extract the caller's GitHub token from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()
    return credentials.credentials


async def get_github_service(token: str = Depends(get_github_token)) -> GitHubService:
    """GitHubService bound to the caller's token."""
    return GitHubService(token)
