"""Token validation endpoint."""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends

from gitpulse.api.deps import get_github_service
from gitpulse.services.github import GitHubService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/validate")
async def validate_token(
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """
    Check the caller's GitHub token.

    Always answers 200: an invalid or rate-limited token comes back as
    `valid: false` with the reason in `error`.
    """
    return asdict(await github.validate_token())
