"""State reconciler: merge detection verdicts with local installation facts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from batch_installer.config import DEFAULT_CONFIG
from batch_installer.entities.state import CanonicalState

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from batch_installer.config import InstallerConfig
    from batch_installer.entities.repository import RepositoryDescriptor
    from batch_installer.memory.cache_store import CacheStore
    from batch_installer.memory.package_registry import PackageRegistry
    from batch_installer.nodes.detection.detector import Detector

logger = logging.getLogger(__name__)

STATE_PREFIX = "state:"


class StateReconciler:
    """Computes one canonical state per repository.

    Local installation facts always win over detection: a package the
    registry reports as enabled is ``installed-active`` even when detection
    could not re-verify it. States are recomputed on every refresh; there is
    no transition table.
    """

    def __init__(
        self,
        registry: PackageRegistry,
        detector: Detector,
        cache: CacheStore,
        config: InstallerConfig | None = None,
        known_components: Collection[str] = (),
    ) -> None:
        """Initialize the reconciler.

        Args:
            registry: Local package registry.
            detector: Component detector consulted for uninstalled repositories.
            cache: Cache store for computed states.
            config: Installer configuration (defaults to DEFAULT_CONFIG).
            known_components: Slugs already known to be components, which
                skip detection.
        """
        self.config = config or DEFAULT_CONFIG
        self._registry = registry
        self._detector = detector
        self._cache = cache
        self._known_components = frozenset(known_components)
        # Last state seen per repository, for statistics
        self._states: dict[str, CanonicalState] = {}

    def get_state(self, repository: RepositoryDescriptor, force_refresh: bool = False) -> CanonicalState:
        """Return the state of ``repository``, computing it when not cached.

        The cache store is the only source of reuse, so a state is served
        for at most ``state_ttl`` seconds before it is recomputed.
        """
        key = repository.full_name
        if not force_refresh:
            cached = self._cache.get(f"{STATE_PREFIX}{key}")
            if cached is not None:
                try:
                    state = CanonicalState(cached)
                except ValueError:
                    logger.warning("Ignoring unrecognized cached state %r for %s", cached, key)
                else:
                    self._states[key] = state
                    return state
        return self.refresh_state(repository)

    def set_state(self, repository: RepositoryDescriptor, state: CanonicalState) -> None:
        """Record ``state`` in memory and in the cache."""
        self._states[repository.full_name] = state
        self._cache.set(f"{STATE_PREFIX}{repository.full_name}", state.value, self.config.state_ttl)

    def refresh_state(self, repository: RepositoryDescriptor) -> CanonicalState:
        """Recompute, store and return the state of ``repository``. Never raises."""
        state = self._determine_state(repository)
        self.set_state(repository, state)
        logger.debug("State of %s is %s", repository.full_name, state)
        return state

    def batch_refresh(self, repositories: Iterable[RepositoryDescriptor]) -> dict[str, CanonicalState]:
        """Recompute the state of every repository."""
        return {repo.full_name: self.refresh_state(repo) for repo in repositories}

    def get_batch_states(
        self, repositories: Iterable[RepositoryDescriptor], force_refresh: bool = False
    ) -> dict[str, CanonicalState]:
        """Return states for several repositories, keyed by full name."""
        return {repo.full_name: self.get_state(repo, force_refresh=force_refresh) for repo in repositories}

    def statistics(self) -> dict[str, int]:
        """Count the states held in memory, plus a ``total``."""
        stats = {state.value: 0 for state in CanonicalState}
        for state in self._states.values():
            stats[state.value] += 1
        stats["total"] = len(self._states)
        return stats

    def clear_cache(self) -> None:
        """Forget every computed state."""
        self._states.clear()
        self._cache.delete_by_prefix(STATE_PREFIX)
        logger.info("Cleared state cache")

    def _determine_state(self, repository: RepositoryDescriptor) -> CanonicalState:
        slug = repository.slug
        if not slug:
            return CanonicalState.UNKNOWN

        try:
            ref = self._registry.find_by_slug(slug)
            enabled = self._registry.is_enabled(ref) if ref is not None else False
        except Exception:
            logger.exception("Package registry lookup failed for %s", repository.full_name)
            return CanonicalState.UNKNOWN

        if ref is not None:
            return CanonicalState.INSTALLED_ACTIVE if enabled else CanonicalState.INSTALLED_INACTIVE

        if slug in self._known_components:
            return CanonicalState.AVAILABLE

        try:
            verdict = self._detector.detect(repository)
        except Exception:
            logger.exception("Detection raised for %s", repository.full_name)
            return CanonicalState.ERROR

        if verdict.is_component:
            return CanonicalState.AVAILABLE
        if verdict.failed:
            return CanonicalState.ERROR
        return CanonicalState.NOT_A_COMPONENT
