"""Canonical repository states and local package references."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class CanonicalState(StrEnum):
    """The single authoritative status of a repository."""

    UNKNOWN = "unknown"
    NOT_A_COMPONENT = "not-a-component"
    AVAILABLE = "available"
    INSTALLED_INACTIVE = "installed-inactive"
    INSTALLED_ACTIVE = "installed-active"
    ERROR = "error"

    @property
    def is_installed(self) -> bool:
        return self in (CanonicalState.INSTALLED_ACTIVE, CanonicalState.INSTALLED_INACTIVE)


class PackageRef(BaseModel):
    """Reference to a package present in the local registry."""

    model_config = ConfigDict(frozen=True)

    slug: str
    path: str  # registry-local entry file, e.g. "widget-tool/widget-tool.php"
    version: str = ""
