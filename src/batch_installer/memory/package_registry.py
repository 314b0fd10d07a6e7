"""Package registry boundary and a JSON-backed local implementation."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from batch_installer.entities.state import PackageRef

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@runtime_checkable
class PackageRegistry(Protocol):
    """Reports which packages exist locally and whether each is enabled."""

    def find_by_slug(self, slug: str) -> PackageRef | None: ...

    def is_enabled(self, ref: PackageRef) -> bool: ...


def match_package(slug: str, paths: Iterable[str]) -> str | None:
    """Pick the registry path that belongs to ``slug``.

    An exact match (the package directory equals the slug, or a top-level
    ``{slug}.php`` file) wins over a prefix match.
    """
    if not slug:
        return None
    candidates = list(paths)
    for path in candidates:
        directory = path.split("/", 1)[0] if "/" in path else ""
        if directory == slug or path == f"{slug}.php":
            return path
    for path in candidates:
        if path.startswith(slug):
            return path
    return None


class PackageEntry(BaseModel):
    """A package installed in the local registry."""

    path: str = Field(description="Entry file relative to the package root, e.g. slug/slug.php")
    version: str = Field(default="")
    enabled: bool = Field(default=False)


class JsonPackageRegistry:
    """Local package registry persisted to a JSON file.

    Keyed by entry path; slugs are resolved with :func:`match_package`.
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialize registry with optional custom path."""
        self._path = path or (Path.home() / ".batch-installer" / "packages.json")
        self._packages: dict[str, PackageEntry] = {}
        self._load()

    def _load(self) -> None:
        """Load registry from disk."""
        if not self._path.exists():
            self._packages = {}
            return

        try:
            with self._path.open(encoding="utf-8") as f:
                data = json.load(f)
            self._packages = {
                key: PackageEntry(**entry) for key, entry in data.get("packages", {}).items()
            }
            logger.info("Loaded %d packages from registry", len(self._packages))
        except Exception:
            logger.exception("Failed to load registry from %s", self._path)
            self._packages = {}

    def save(self) -> None:
        """Persist registry to disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data: dict[str, Any] = {
            "packages": {key: entry.model_dump() for key, entry in self._packages.items()}
        }
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        logger.debug("Saved registry with %d packages", len(self._packages))

    def add(self, path: str, version: str = "", enabled: bool = False) -> PackageRef:
        """Register an installed package."""
        self._packages[path] = PackageEntry(path=path, version=version, enabled=enabled)
        self.save()
        logger.info("Registered package %s (enabled=%s)", path, enabled)
        return self._ref(path)

    def remove(self, path: str) -> bool:
        """Remove a package from the registry."""
        if path in self._packages:
            del self._packages[path]
            self.save()
            logger.info("Removed package %s", path)
            return True
        return False

    def set_enabled(self, path: str, enabled: bool) -> None:
        """Flip the enabled flag of an installed package."""
        entry = self._packages.get(path)
        if entry is None:
            msg = f"Package not installed: {path}"
            raise KeyError(msg)
        entry.enabled = enabled
        self.save()

    def find_by_slug(self, slug: str) -> PackageRef | None:
        path = match_package(slug, self._packages)
        return self._ref(path) if path else None

    def is_enabled(self, ref: PackageRef) -> bool:
        entry = self._packages.get(ref.path)
        return bool(entry and entry.enabled)

    def list_all(self) -> list[PackageRef]:
        """List all registered packages."""
        return [self._ref(path) for path in self._packages]

    def _ref(self, path: str) -> PackageRef:
        entry = self._packages[path]
        slug = path.split("/", 1)[0] if "/" in path else path.removesuffix(".php")
        return PackageRef(slug=slug, path=path, version=entry.version)

    def __len__(self) -> int:
        return len(self._packages)
