from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GITPULSE_",
        case_sensitive=False,
    )

    # GitHub API
    github_api_url: str = "https://api.github.com"
    github_api_version: str = "2022-11-28"
    # Sent as User-Agent on every request (GitHub rejects requests without one)
    user_agent: str = "GitPulse-Dashboard"

    # Activity cache - freshness window for fetched activity snapshots
    cache_ttl_seconds: int = 300  # 5 min
    cache_maxsize: int = 256

    # Pagination
    page_size: int = 100  # GitHub max per_page
    # Ceiling on pages per scope, so very active orgs can't trigger unbounded fetches
    max_pages: int = 5
    # Ceiling on org repo enumeration (10 pages = 1000 repos)
    max_repo_pages: int = 10
    # Ceiling on a single file's commit history (10 pages = 1000 commits)
    max_file_history_pages: int = 10

    # Batching - bounded concurrency against GitHub's secondary rate limits
    repo_batch_size: int = 5
    # Search API allows 30 requests/minute, so member fan-out stays small
    member_batch_size: int = 3
    review_batch_size: int = 5
    # Pause between batches (seconds)
    batch_delay_seconds: float = 0.1
    # Number of most recent PRs whose reviews are fetched in a repo scan
    review_pr_limit: int = 10

    # Lookback windows
    default_lookback_days: int = 365
    recent_window_hours: int = 24

    # Files larger than this come back from the contents API without inline content
    max_file_bytes: int = 1_000_000

    # "search" uses search/commits + search/issues; "repos" crawls each org repo
    fetch_strategy: Literal["search", "repos"] = "search"

    # Application
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]


settings = Settings()
