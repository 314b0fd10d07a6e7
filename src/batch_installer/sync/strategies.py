"""Repository listing strategies: structured API and profile page scraping.

Both strategies return normalized :class:`RepositoryDescriptor` lists and
raise typed :class:`FetchError` subclasses, so the fetcher can swap them
freely.
"""

from __future__ import annotations

import logging
import time
import zlib
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from batch_installer.entities.repository import RepositoryDescriptor, SourceStrategy
from batch_installer.errors import (
    AccountNotFoundError,
    FetchError,
    InvalidResponseError,
    NetworkFailureError,
    RateLimitedError,
)
from batch_installer.sync.client import api_headers, get_with_retry, is_rate_limited, web_headers
from batch_installer.sync.html_listing import parse_repository_list

if TYPE_CHECKING:
    from collections.abc import Callable

    from batch_installer.config import InstallerConfig
    from batch_installer.sync.html_listing import ScrapedRepository

logger = logging.getLogger(__name__)


@runtime_checkable
class RepositoryListStrategy(Protocol):
    """Protocol for listing the public repositories of an account."""

    source: SourceStrategy

    def fetch(self, account: str) -> list[RepositoryDescriptor]: ...


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def normalize_api_repository(account: str, repo: dict[str, Any]) -> RepositoryDescriptor:
    """Convert one API repository object into a descriptor owned by ``account``."""
    name = str(repo.get("name") or "")
    if not name:
        msg = "Repository object without a name"
        raise InvalidResponseError(msg)
    return RepositoryDescriptor(
        id=str(repo.get("id") or ""),
        owner=account,
        name=name,
        full_name=f"{account}/{name}",
        description=repo.get("description") or "",
        web_url=repo.get("html_url") or "",
        archive_url_template=repo.get("archive_url") or "",
        default_branch=repo.get("default_branch") or "main",
        language=repo.get("language") or "",
        updated_at=_parse_timestamp(repo.get("updated_at")),
        size_hint=int(repo.get("size") or 0),
        star_count=int(repo.get("stargazers_count") or 0),
        is_archived=bool(repo.get("archived", False)),
        is_private=bool(repo.get("private", False)),
        source_strategy=SourceStrategy.API,
    )


def dedupe_repositories(repositories: list[RepositoryDescriptor]) -> list[RepositoryDescriptor]:
    """Drop repeated names (case-insensitive), keeping first-seen order."""
    seen: set[str] = set()
    unique: list[RepositoryDescriptor] = []
    for repo in repositories:
        key = repo.full_name.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(repo)
    return unique


class ApiListStrategy:
    """List repositories through the REST API.

    Tries the user endpoint first and the organization endpoint on 404,
    since callers do not know which kind of account they name.
    """

    source = SourceStrategy.API

    def __init__(
        self,
        client: httpx.Client,
        config: InstallerConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._config = config
        self._sleep = sleep

    def fetch(self, account: str) -> list[RepositoryDescriptor]:
        api = self._config.api_base.rstrip("/")
        quoted = quote(account, safe="")
        response = self._get(f"{api}/users/{quoted}/repos", paginate_params=True)

        if response.status_code == 404:
            logger.info("User endpoint returned 404 for %s, trying organization endpoint", account)
            response = self._get(f"{api}/orgs/{quoted}/repos", paginate_params=True)
            if response.status_code == 404:
                msg = f'GitHub account "{account}" not found.'
                raise AccountNotFoundError(msg, status_code=404)

        raw: list[dict[str, Any]] = []
        pages = 1
        while True:
            self._raise_for_status(response)
            raw.extend(self._decode_page(response))
            next_url = response.links.get("next", {}).get("url")
            if not next_url or pages >= self._config.api_max_pages:
                break
            pages += 1
            response = self._get(next_url, paginate_params=False)

        logger.info("Found %d repositories for %s via API (%d pages)", len(raw), account, pages)
        return dedupe_repositories([normalize_api_repository(account, repo) for repo in raw])

    def get_repository(self, owner: str, name: str) -> RepositoryDescriptor:
        """Fetch a single repository by owner and name."""
        api = self._config.api_base.rstrip("/")
        url = f"{api}/repos/{quote(owner, safe='')}/{quote(name, safe='')}"
        response = self._get(url, paginate_params=False)
        if response.status_code == 404:
            msg = f"Repository {owner}/{name} not found or private."
            raise AccountNotFoundError(msg, status_code=404)
        self._raise_for_status(response)
        payload = self._decode_json(response)
        if not isinstance(payload, dict):
            msg = f"Unexpected payload for repository {owner}/{name}"
            raise InvalidResponseError(msg, status_code=response.status_code)
        return normalize_api_repository(owner, payload)

    def get_rate_limit(self) -> dict[str, Any]:
        """Return the API's current rate limit status document."""
        response = self._get(f"{self._config.api_base.rstrip('/')}/rate_limit", paginate_params=False)
        self._raise_for_status(response)
        payload = self._decode_json(response)
        if not isinstance(payload, dict):
            msg = "Invalid rate limit response."
            raise InvalidResponseError(msg, status_code=response.status_code)
        return payload

    def _get(self, url: str, *, paginate_params: bool) -> httpx.Response:
        params = None
        if paginate_params:
            params = {"type": "public", "sort": "updated", "per_page": self._config.api_per_page}
        return get_with_retry(
            self._client,
            url,
            params=params,
            headers=api_headers(self._config),
            timeout=self._config.api_timeout,
            max_retries=self._config.max_retries,
            retry_delay=self._config.retry_delay,
            sleep=self._sleep,
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 200:
            return
        if is_rate_limited(response):
            msg = "GitHub API rate limit exceeded."
            raise RateLimitedError(msg, status_code=response.status_code)
        if response.status_code >= 500:
            msg = f"GitHub API server error {response.status_code}."
            raise NetworkFailureError(msg, status_code=response.status_code)
        msg = f"GitHub API returned error code: {response.status_code}"
        raise InvalidResponseError(msg, status_code=response.status_code)

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.debug("Invalid JSON response: %s", response.text[:500])
            msg = "Invalid JSON response from GitHub API."
            raise InvalidResponseError(msg, status_code=response.status_code) from e

    def _decode_page(self, response: httpx.Response) -> list[dict[str, Any]]:
        payload = self._decode_json(response)
        if not isinstance(payload, list):
            msg = "Expected a list of repositories from GitHub API."
            raise InvalidResponseError(msg, status_code=response.status_code)
        return [item for item in payload if isinstance(item, dict)]


class WebListStrategy:
    """List repositories by scraping the profile "repositories" tab.

    Cannot recover numeric metadata; descriptors carry zero star count and
    size, and assume ``main`` as default branch.
    """

    source = SourceStrategy.WEB

    def __init__(
        self,
        client: httpx.Client,
        config: InstallerConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._config = config
        self._sleep = sleep

    def fetch(self, account: str) -> list[RepositoryDescriptor]:
        max_pages = self._config.web_max_pages
        max_empty = self._config.web_max_consecutive_empty
        collected: list[ScrapedRepository] = []
        seen: set[str] = set()
        consecutive_empty = 0
        page = 1

        while page <= max_pages and consecutive_empty < max_empty:
            html = self._fetch_page(account, page)
            if html is None:
                break

            found = 0
            for scraped in parse_repository_list(html, account):
                key = scraped.name.lower()
                if key in seen:
                    continue
                seen.add(key)
                collected.append(scraped)
                found += 1

            if found:
                consecutive_empty = 0
                logger.debug("Found %d repositories on page %d", found, page)
            else:
                consecutive_empty += 1
                logger.debug("No repositories on page %d (consecutive empty: %d)", page, consecutive_empty)

            page += 1
            if page <= max_pages and consecutive_empty < max_empty:
                self._sleep(self._config.web_page_delay)

        if not collected:
            msg = f'No repositories found for account "{account}".'
            raise InvalidResponseError(msg)

        logger.info("Found %d repositories for %s via web (%d pages)", len(collected), account, page - 1)
        return [self._to_descriptor(account, scraped) for scraped in collected]

    def _fetch_page(self, account: str, page: int) -> str | None:
        """Return page HTML, ``None`` to stop with partial results, or raise."""
        url = f"{self._config.web_base.rstrip('/')}/{quote(account, safe='')}"
        try:
            response = self._client.get(
                url,
                params={"tab": "repositories", "page": page},
                headers=web_headers(self._config),
                timeout=self._config.web_timeout,
            )
        except httpx.HTTPError as e:
            if page == 1:
                msg = f"Failed to fetch repositories via web: {e}"
                raise NetworkFailureError(msg) from e
            logger.warning("Web request failed on page %d, returning partial results: %s", page, e)
            return None

        status = response.status_code
        if status == 429:
            msg = "Rate limited by GitHub. Please try again later."
            raise RateLimitedError(msg, status_code=status)
        if status == 404:
            if page == 1:
                msg = f'GitHub account "{account}" not found.'
                raise AccountNotFoundError(msg, status_code=status)
            return None
        if status != 200:
            if page == 1:
                error_cls: type[FetchError] = NetworkFailureError if status >= 500 else InvalidResponseError
                msg = f"GitHub web page returned error code: {status}"
                raise error_cls(msg, status_code=status)
            return None

        if not response.text.strip():
            if page == 1:
                msg = "Empty response from GitHub."
                raise InvalidResponseError(msg, status_code=status)
            return None
        return response.text

    def _to_descriptor(self, account: str, scraped: ScrapedRepository) -> RepositoryDescriptor:
        full_name = f"{account}/{scraped.name}"
        web = self._config.web_base.rstrip("/")
        api = self._config.api_base.rstrip("/")
        return RepositoryDescriptor(
            id=str(zlib.crc32(full_name.encode("utf-8"))),
            owner=account,
            name=scraped.name,
            full_name=full_name,
            description=scraped.description,
            web_url=f"{web}/{full_name}",
            archive_url_template=f"{api}/repos/{full_name}/{{archive_format}}{{/ref}}",
            default_branch="main",
            language=scraped.language,
            updated_at=_parse_timestamp(scraped.updated_at),
            source_strategy=SourceStrategy.WEB,
        )
