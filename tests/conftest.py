"""Shared test fixtures for batch-installer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from batch_installer.config import InstallerConfig
from batch_installer.entities.repository import RepositoryDescriptor
from batch_installer.memory.cache_store import InMemoryCacheStore

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryCacheStore:
    """In-memory cache driven by the fake clock."""
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def config(tmp_path: Path) -> InstallerConfig:
    """Config with storage under tmp_path and fast retries."""
    return InstallerConfig(
        cache_path=tmp_path / "cache.json",
        registry_path=tmp_path / "packages.json",
        retry_delay=0.0,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Records every sleep requested through ``no_sleep``."""
    return []


@pytest.fixture
def no_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def make_client() -> Iterator[Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]]:
    """Build an httpx client whose requests are answered by ``handler``."""
    clients: list[httpx.Client] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


@pytest.fixture
def make_repo() -> Callable[..., RepositoryDescriptor]:
    """Factory for repository descriptors owned by ``acme`` by default."""

    def _make(name: str, owner: str = "acme", **fields: Any) -> RepositoryDescriptor:
        return RepositoryDescriptor(owner=owner, name=name, **fields)

    return _make
