"""Tests for RepositoryFetcher: modes, fallback, caching and error reporting."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from batch_installer.config import FetchMode
from batch_installer.entities.repository import SourceStrategy
from batch_installer.errors import AccountNotFoundError, FailureKind
from batch_installer.sync.fetcher import FetchFailure, RepositoryFetcher

if TYPE_CHECKING:
    from batch_installer.config import InstallerConfig
    from batch_installer.memory.cache_store import InMemoryCacheStore
    from tests.conftest import FakeClock


def api_repo(name: str, repo_id: int) -> dict[str, object]:
    return {"id": repo_id, "name": name, "default_branch": "main", "stargazers_count": 1}


def profile_page(*names: str) -> str:
    items = "".join(f'<li><h3><a href="/acme/{n}">{n}</a></h3></li>' for n in names)
    return f"<html><body><ul>{items}</ul></body></html>"


class Upstream:
    """Routes API and web requests to canned responses and counts them."""

    def __init__(
        self,
        api: httpx.Response | None = None,
        web: httpx.Response | None = None,
    ) -> None:
        self.api = api or httpx.Response(200, json=[api_repo("alpha", 1), api_repo("beta", 2), api_repo("gamma", 3)])
        self.web = web or httpx.Response(200, text=profile_page("alpha", "beta"))
        self.api_calls = 0
        self.web_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.github.com":
            self.api_calls += 1
            return httpx.Response(self.api.status_code, headers=self.api.headers, content=self.api.content)
        self.web_calls += 1
        if request.url.params.get("page") != "1":
            return httpx.Response(404)
        return httpx.Response(self.web.status_code, headers=self.web.headers, content=self.web.content)


@pytest.fixture
def fetcher_for(make_client, cache: InMemoryCacheStore, config: InstallerConfig, no_sleep):
    def _make(upstream: Upstream, **overrides: object) -> RepositoryFetcher:
        cfg = config.model_copy(update=overrides) if overrides else config
        return RepositoryFetcher(cache, config=cfg, client=make_client(upstream), sleep=no_sleep)

    return _make


class TestFetchRepositories:
    def test_api_listing(self, fetcher_for) -> None:
        upstream = Upstream()
        result = fetcher_for(upstream).fetch_repositories("acme")

        assert result.ok
        assert result.strategy == SourceStrategy.API
        assert not result.from_cache
        assert [r.name for r in result.repositories] == ["alpha", "beta", "gamma"]
        assert all(r.owner == "acme" for r in result.repositories)
        assert len({r.full_name for r in result.repositories}) == 3

    def test_cached_listing_is_idempotent(self, fetcher_for) -> None:
        upstream = Upstream()
        fetcher = fetcher_for(upstream)

        first = fetcher.fetch_repositories("acme")
        second = fetcher.fetch_repositories("acme")

        assert upstream.api_calls == 1
        assert second.from_cache
        assert second.repositories == first.repositories

    def test_force_refresh_bypasses_cache(self, fetcher_for) -> None:
        upstream = Upstream()
        fetcher = fetcher_for(upstream)
        fetcher.fetch_repositories("acme")
        fetcher.fetch_repositories("acme", force_refresh=True)
        assert upstream.api_calls == 2

    def test_cache_expires_after_an_hour(self, fetcher_for, clock: FakeClock) -> None:
        upstream = Upstream()
        fetcher = fetcher_for(upstream)
        fetcher.fetch_repositories("acme")
        clock.advance(3601)
        fetcher.fetch_repositories("acme")
        assert upstream.api_calls == 2

    def test_limit_truncates_fresh_and_cached(self, fetcher_for) -> None:
        fetcher = fetcher_for(Upstream())
        fresh = fetcher.fetch_repositories("acme", limit=2)
        cached = fetcher.fetch_repositories("acme", limit=1)
        full = fetcher.fetch_repositories("acme")

        assert [r.name for r in fresh.repositories] == ["alpha", "beta"]
        assert [r.name for r in cached.repositories] == ["alpha"]
        assert len(full.repositories) == 3

    def test_empty_account(self, fetcher_for) -> None:
        upstream = Upstream()
        result = fetcher_for(upstream).fetch_repositories("   ")

        assert not result.ok
        assert result.error is not None
        assert result.error.kind == FailureKind.INVALID_RESPONSE
        assert upstream.api_calls == 0
        assert upstream.web_calls == 0

    def test_auto_falls_back_to_web_on_rate_limit(self, fetcher_for) -> None:
        upstream = Upstream(api=httpx.Response(403, headers={"X-RateLimit-Remaining": "0"}))
        result = fetcher_for(upstream).fetch_repositories("acme")

        assert result.ok
        assert upstream.web_calls >= 1
        assert result.strategy == SourceStrategy.WEB
        assert [r.name for r in result.repositories] == ["alpha", "beta"]

    def test_auto_does_not_fall_back_on_invalid_response(self, fetcher_for) -> None:
        upstream = Upstream(api=httpx.Response(200, json={"unexpected": True}))
        result = fetcher_for(upstream).fetch_repositories("acme")

        assert result.error is not None
        assert result.error.kind == FailureKind.INVALID_RESPONSE
        assert upstream.web_calls == 0

    def test_api_only_never_crosses(self, fetcher_for) -> None:
        upstream = Upstream(api=httpx.Response(429))
        result = fetcher_for(upstream).fetch_repositories("acme", mode=FetchMode.API_ONLY)

        assert result.error is not None
        assert result.error.kind == FailureKind.RATE_LIMITED
        assert result.error.suggest_switch_mode
        assert upstream.web_calls == 0

    def test_web_only_mode_from_config(self, fetcher_for) -> None:
        upstream = Upstream()
        result = fetcher_for(upstream, fetch_mode=FetchMode.WEB_ONLY).fetch_repositories("acme")

        assert result.strategy == SourceStrategy.WEB
        assert upstream.api_calls == 0

    def test_ghost_account_reports_not_found(self, fetcher_for) -> None:
        upstream = Upstream(api=httpx.Response(404), web=httpx.Response(404))
        result = fetcher_for(upstream).fetch_repositories("ghost-account-xyz")

        assert result.repositories == []
        assert result.error is not None
        assert result.error.kind == FailureKind.ACCOUNT_NOT_FOUND
        assert result.error.suggest_switch_mode
        assert result.error.remediation()

    def test_failed_fetch_not_cached(self, fetcher_for, cache: InMemoryCacheStore) -> None:
        fetcher_for(Upstream(api=httpx.Response(500), web=httpx.Response(500))).fetch_repositories("acme")
        assert cache.get("listing:acme") is None


class TestRepositoryLookup:
    def test_get_repository_cached(self, make_client, cache: InMemoryCacheStore, config: InstallerConfig, no_sleep) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json={"id": 5, "name": "widget-tool"})

        fetcher = RepositoryFetcher(cache, config=config, client=make_client(handler), sleep=no_sleep)
        first = fetcher.get_repository("acme", "widget-tool")
        second = fetcher.get_repository("acme", "widget-tool")

        assert first == second
        assert calls == ["/repos/acme/widget-tool"]

    def test_get_repository_missing_raises(self, make_client, cache: InMemoryCacheStore, config: InstallerConfig, no_sleep) -> None:
        client = make_client(lambda request: httpx.Response(404))
        fetcher = RepositoryFetcher(cache, config=config, client=client, sleep=no_sleep)
        with pytest.raises(AccountNotFoundError):
            fetcher.get_repository("acme", "nope")

    def test_get_rate_limit(self, make_client, cache: InMemoryCacheStore, config: InstallerConfig) -> None:
        client = make_client(
            lambda request: httpx.Response(200, json={"resources": {"core": {"remaining": 59}}})
        )
        fetcher = RepositoryFetcher(cache, config=config, client=client)
        assert fetcher.get_rate_limit()["resources"]["core"]["remaining"] == 59


class TestClearCache:
    def test_clear_one_account(self, fetcher_for, cache: InMemoryCacheStore) -> None:
        fetcher = fetcher_for(Upstream())
        fetcher.fetch_repositories("acme")
        cache.set("listing:other", [], 60)

        fetcher.clear_cache("acme")

        assert cache.get("listing:acme") is None
        assert cache.get("listing:other") == []

    def test_clear_everything(self, fetcher_for, cache: InMemoryCacheStore) -> None:
        fetcher = fetcher_for(Upstream())
        fetcher.fetch_repositories("acme")
        cache.set("repo:acme/alpha", {}, 60)
        cache.set("verdict:acme/alpha", {}, 60)

        fetcher.clear_cache()

        assert cache.get("listing:acme") is None
        assert cache.get("repo:acme/alpha") is None
        assert cache.get("verdict:acme/alpha") == {}


class TestFetchFailure:
    def test_switch_mode_suggestion(self) -> None:
        assert FetchFailure(FailureKind.RATE_LIMITED, "x").suggest_switch_mode
        assert FetchFailure(FailureKind.ACCOUNT_NOT_FOUND, "x").suggest_switch_mode
        assert not FetchFailure(FailureKind.NETWORK_FAILURE, "x").suggest_switch_mode

    def test_every_kind_has_remediation(self) -> None:
        for kind in FailureKind:
            assert FetchFailure(kind, "x").remediation()
