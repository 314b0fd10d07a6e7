"""Repository discovery: HTTP plumbing, listing strategies and the cached fetcher."""

from batch_installer.sync.client import build_client, get_with_retry, is_rate_limited
from batch_installer.sync.fetcher import FetchFailure, FetchResult, RepositoryFetcher
from batch_installer.sync.html_listing import ScrapedRepository, parse_repository_list
from batch_installer.sync.strategies import (
    ApiListStrategy,
    RepositoryListStrategy,
    WebListStrategy,
)

__all__ = [
    "ApiListStrategy",
    "FetchFailure",
    "FetchResult",
    "RepositoryFetcher",
    "RepositoryListStrategy",
    "ScrapedRepository",
    "WebListStrategy",
    "build_client",
    "get_with_retry",
    "is_rate_limited",
    "parse_repository_list",
]
