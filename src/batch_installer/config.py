"""Installer configuration: account, fetch mode, endpoints, timeouts and TTLs."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field


class FetchMode(StrEnum):
    """Which listing strategy the repository fetcher may use."""

    API_ONLY = "api-only"
    WEB_ONLY = "web-only"
    AUTO = "auto"


_TRUTHY = {"1", "true", "yes", "on"}


class InstallerConfig(BaseModel):
    """Configuration for repository discovery, detection and reconciliation."""

    # Account
    account_name: str = Field(default="", description="GitHub account (user or organization) to list")
    fetch_mode: FetchMode = Field(default=FetchMode.AUTO, description="Listing strategy preference")
    repository_limit: int = Field(default=0, ge=0, description="Max repositories to return (0 = unlimited)")
    skip_detection: bool = Field(
        default=False,
        description="Debug seam: treat every repository as a component without scanning",
    )

    # Endpoints
    api_base: str = Field(default="https://api.github.com")
    web_base: str = Field(default="https://github.com")
    raw_base: str = Field(default="https://raw.githubusercontent.com")
    user_agent: str = Field(default="batch-installer/0.1.0")

    # Timeouts (seconds)
    api_timeout: float = Field(default=15.0, description="Repository listing API calls")
    web_timeout: float = Field(default=30.0, description="Profile page scraping")
    contents_timeout: float = Field(default=10.0, description="Root directory listing during full scan")
    raw_file_timeout: float = Field(default=5.0, description="Raw candidate file probes")

    # Retry and paging
    max_retries: int = Field(default=2, ge=0, description="Retries for transient API failures")
    retry_delay: float = Field(default=1.0, description="Pause between retries in seconds")
    api_per_page: int = Field(default=50)
    api_max_pages: int = Field(default=20)
    web_max_pages: int = Field(default=20)
    web_max_consecutive_empty: int = Field(default=3)
    web_page_delay: float = Field(default=0.75, ge=0.5, description="Polite delay between page requests")

    # Cache TTLs (seconds)
    listing_ttl: int = Field(default=3600)
    repository_ttl: int = Field(default=1800)
    verdict_ttl: int = Field(default=86400)
    state_ttl: int = Field(default=300)
    raw_file_ttl: int = Field(default=3600)
    raw_file_miss_ttl: int = Field(default=600)

    # Storage
    cache_path: Path = Field(
        default_factory=lambda: Path.home() / ".batch-installer" / "cache.json",
        description="Path to the persistent cache file",
    )
    registry_path: Path = Field(
        default_factory=lambda: Path.home() / ".batch-installer" / "packages.json",
        description="Path to the local package registry file",
    )

    @classmethod
    def from_env(cls, **overrides: object) -> InstallerConfig:
        """Build a config from ``BATCH_INSTALLER_*`` environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: dict[str, object] = {}
        account = os.environ.get("BATCH_INSTALLER_ACCOUNT")
        if account:
            values["account_name"] = account.strip()
        mode = os.environ.get("BATCH_INSTALLER_FETCH_MODE")
        if mode:
            values["fetch_mode"] = FetchMode(mode.strip().lower())
        skip = os.environ.get("BATCH_INSTALLER_SKIP_DETECTION")
        if skip is not None:
            values["skip_detection"] = skip.strip().lower() in _TRUTHY
        values.update(overrides)
        return cls.model_validate(values)


# Default configuration
DEFAULT_CONFIG = InstallerConfig()
