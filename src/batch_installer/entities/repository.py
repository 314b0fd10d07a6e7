"""Repository descriptors produced by the listing strategies."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SourceStrategy(StrEnum):
    """Which listing strategy produced a descriptor."""

    API = "api"
    WEB = "web"


class RepositoryDescriptor(BaseModel):
    """Immutable description of one public repository.

    Descriptors built by the web strategy cannot recover numeric metadata;
    ``size_hint`` and ``star_count`` are then zero, which means "unknown"
    rather than "empty".
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    owner: str
    name: str
    full_name: str = Field(default="", description="owner/name, unique within one listing")
    description: str = ""
    web_url: str = ""
    archive_url_template: str = ""
    default_branch: str = "main"
    language: str = ""
    updated_at: datetime | None = None
    size_hint: int = 0
    star_count: int = 0
    is_archived: bool = False
    is_private: bool = False
    source_strategy: SourceStrategy = SourceStrategy.API

    @model_validator(mode="before")
    @classmethod
    def fill_full_name(cls, data: Any) -> Any:
        """Derive ``full_name`` from owner and name when it is not given."""
        if isinstance(data, dict) and not data.get("full_name"):
            data = dict(data)
            data["full_name"] = f"{data.get('owner', '')}/{data.get('name', '')}"
        return data

    @property
    def cache_key(self) -> str:
        """Key fragment used for per-repository cache entries."""
        return self.full_name

    @property
    def slug(self) -> str:
        """Local identifier derived from the repository's short name."""
        return self.name.strip()

    def archive_url(self, ref: str | None = None) -> str:
        """Expand the archive URL template for a zip download of ``ref``."""
        branch = ref or self.default_branch
        return (
            self.archive_url_template.replace("{archive_format}", "zipball").replace(
                "{/ref}", f"/{branch}"
            )
        )
