"""Repository fetcher: cached, dual-strategy listing of an account's repositories."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from batch_installer.config import DEFAULT_CONFIG, FetchMode
from batch_installer.entities.repository import RepositoryDescriptor, SourceStrategy
from batch_installer.errors import FailureKind, FetchError
from batch_installer.sync.client import build_client
from batch_installer.sync.strategies import ApiListStrategy, WebListStrategy

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from batch_installer.config import InstallerConfig
    from batch_installer.memory.cache_store import CacheStore
    from batch_installer.sync.strategies import RepositoryListStrategy

logger = logging.getLogger(__name__)

LISTING_PREFIX = "listing:"
REPOSITORY_PREFIX = "repo:"

_REMEDIATION: dict[FailureKind, list[str]] = {
    FailureKind.ACCOUNT_NOT_FOUND: [
        "Check the spelling of the account name.",
        "Verify the account exists and has public repositories.",
        "Try the web fetch mode if the API cannot see the account.",
    ],
    FailureKind.RATE_LIMITED: [
        "Wait for the rate limit window to reset (usually one hour).",
        "Switch to the web fetch mode.",
        "Reduce how often the repository list is refreshed.",
    ],
    FailureKind.INVALID_RESPONSE: [
        "Retry later; the upstream may be changing its page layout.",
        "Switch fetch mode and compare results.",
    ],
    FailureKind.NETWORK_FAILURE: [
        "Check network connectivity to github.com.",
        "Retry in a few minutes.",
    ],
}


@dataclass
class FetchFailure:
    """A categorized listing failure returned to callers instead of raised."""

    kind: FailureKind
    message: str
    status_code: int | None = None

    @property
    def suggest_switch_mode(self) -> bool:
        return self.kind in (FailureKind.RATE_LIMITED, FailureKind.ACCOUNT_NOT_FOUND)

    def remediation(self) -> list[str]:
        """Human-readable hints for resolving the failure."""
        return list(_REMEDIATION.get(self.kind, []))

    @classmethod
    def from_error(cls, error: FetchError) -> FetchFailure:
        return cls(kind=error.kind, message=error.message, status_code=error.status_code)


@dataclass
class FetchResult:
    """Outcome of :meth:`RepositoryFetcher.fetch_repositories`."""

    repositories: list[RepositoryDescriptor] = field(default_factory=list)
    error: FetchFailure | None = None
    strategy: SourceStrategy | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class RepositoryFetcher:
    """Lists an account's public repositories through the API or web strategy.

    Listings are cached per account. In ``auto`` mode the API is tried first
    and the web strategy is used when the API is rate limited or cannot see
    the account.
    """

    def __init__(
        self,
        cache: CacheStore,
        config: InstallerConfig | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        api_strategy: ApiListStrategy | None = None,
        web_strategy: RepositoryListStrategy | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            cache: Cache store for listings and single repository lookups.
            config: Installer configuration (defaults to DEFAULT_CONFIG).
            client: Shared HTTP client; one is built from config when omitted.
            sleep: Sleep function used for retries and page delays.
            api_strategy: Override for the API strategy.
            web_strategy: Override for the web strategy.
        """
        self.config = config or DEFAULT_CONFIG
        self._cache = cache
        self._client = client or build_client(self.config)
        self._api = api_strategy or ApiListStrategy(self._client, self.config, sleep=sleep)
        self._web = web_strategy or WebListStrategy(self._client, self.config, sleep=sleep)

    def fetch_repositories(
        self,
        account: str,
        force_refresh: bool = False,
        limit: int = 0,
        mode: FetchMode | None = None,
    ) -> FetchResult:
        """List public repositories of ``account``.

        Args:
            account: User or organization name.
            force_refresh: Bypass the cached listing.
            limit: Maximum repositories to return (0 = unlimited).
            mode: Fetch mode for this call; defaults to the configured mode.

        Returns:
            FetchResult with repositories or a categorized error.
        """
        account = account.strip()
        if not account:
            return FetchResult(
                error=FetchFailure(FailureKind.INVALID_RESPONSE, "Account name cannot be empty."),
            )

        cache_key = f"{LISTING_PREFIX}{account}"
        if not force_refresh:
            cached = self._cache.get(cache_key)
            if cached is not None:
                repositories = [RepositoryDescriptor.model_validate(item) for item in cached]
                logger.debug("Using cached listing for %s (%d repositories)", account, len(repositories))
                strategy = repositories[0].source_strategy if repositories else None
                return FetchResult(
                    repositories=_truncate(repositories, limit),
                    strategy=strategy,
                    from_cache=True,
                )

        resolved = FetchMode(mode or self.config.fetch_mode)
        logger.info("Fetching repositories for %s (mode=%s)", account, resolved)

        try:
            repositories, strategy = self._fetch_with_mode(account, resolved)
        except FetchError as e:
            logger.error("Failed to list repositories for %s: [%s] %s", account, e.kind, e.message)
            return FetchResult(error=FetchFailure.from_error(e))

        self._cache.set(
            cache_key,
            [repo.model_dump(mode="json") for repo in repositories],
            self.config.listing_ttl,
        )
        return FetchResult(repositories=_truncate(repositories, limit), strategy=strategy)

    def _fetch_with_mode(
        self, account: str, mode: FetchMode
    ) -> tuple[list[RepositoryDescriptor], SourceStrategy]:
        if mode == FetchMode.API_ONLY:
            return self._api.fetch(account), SourceStrategy.API
        if mode == FetchMode.WEB_ONLY:
            return self._web.fetch(account), SourceStrategy.WEB

        try:
            return self._api.fetch(account), SourceStrategy.API
        except FetchError as api_error:
            if api_error.kind not in (FailureKind.RATE_LIMITED, FailureKind.ACCOUNT_NOT_FOUND):
                raise
            logger.warning("API listing failed for %s (%s), falling back to web", account, api_error.kind)
            try:
                return self._web.fetch(account), SourceStrategy.WEB
            except FetchError as web_error:
                logger.warning("Web fallback also failed for %s: %s", account, web_error.message)
                raise api_error from web_error

    def get_repository(self, owner: str, name: str) -> RepositoryDescriptor:
        """Look up one repository through the API, cached for 30 minutes.

        Raises:
            FetchError: On any upstream failure.
        """
        cache_key = f"{REPOSITORY_PREFIX}{owner}/{name}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return RepositoryDescriptor.model_validate(cached)

        repository = self._api.get_repository(owner, name)
        self._cache.set(cache_key, repository.model_dump(mode="json"), self.config.repository_ttl)
        return repository

    def get_rate_limit(self) -> dict[str, Any]:
        """Return the API rate limit status (never cached)."""
        return self._api.get_rate_limit()

    def clear_cache(self, account: str | None = None) -> None:
        """Drop the cached listing of ``account``, or every listing and lookup."""
        if account:
            self._cache.delete(f"{LISTING_PREFIX}{account.strip()}")
            logger.info("Cleared cached listing for %s", account)
            return
        self._cache.delete_by_prefix(LISTING_PREFIX)
        self._cache.delete_by_prefix(REPOSITORY_PREFIX)
        logger.info("Cleared all cached listings")


def _truncate(repositories: list[RepositoryDescriptor], limit: int) -> list[RepositoryDescriptor]:
    return repositories[:limit] if limit > 0 else repositories
