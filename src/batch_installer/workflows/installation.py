"""Installation service: drive an external orchestrator and refresh state afterwards."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from batch_installer.errors import ActivationError, InstallError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from batch_installer.entities.repository import RepositoryDescriptor
    from batch_installer.entities.state import CanonicalState, PackageRef
    from batch_installer.memory.package_registry import PackageRegistry
    from batch_installer.workflows.reconciler import StateReconciler

logger = logging.getLogger(__name__)


@runtime_checkable
class InstallationOrchestrator(Protocol):
    """Downloads, unpacks and toggles packages on behalf of the service.

    Implementations raise :class:`InstallError` or :class:`ActivationError`;
    their messages are passed through to callers unchanged.
    """

    def install(self, owner: str, repo: str, branch: str) -> PackageRef: ...

    def activate(self, ref: PackageRef) -> None: ...

    def deactivate(self, ref: PackageRef) -> None: ...


class InstallAction(StrEnum):
    """Actions the service can perform on a repository."""

    INSTALL = "install"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"


@dataclass
class ActionResult:
    """Outcome of one installation action.

    ``state`` is the state recomputed after the action, never an assumed one.
    It is None when the action failed before changing anything.
    """

    repository: str
    action: InstallAction
    success: bool
    state: CanonicalState | None = None
    package: PackageRef | None = None
    error: str | None = None


class InstallationService:
    """Install, activate and deactivate repositories through an orchestrator.

    The orchestrator's success report is treated as a cue to refresh state:
    every successful action is followed by ``StateReconciler.refresh_state``.
    """

    def __init__(
        self,
        orchestrator: InstallationOrchestrator,
        registry: PackageRegistry,
        reconciler: StateReconciler,
        progress: Callable[[str, str, str], None] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            orchestrator: External install/activation backend.
            registry: Local package registry used to resolve packages.
            reconciler: State reconciler refreshed after each success.
            progress: Optional callback receiving ``(step, status, message)``.
        """
        self._orchestrator = orchestrator
        self._registry = registry
        self._reconciler = reconciler
        self._progress = progress

    def install(self, repository: RepositoryDescriptor, activate: bool = False) -> ActionResult:
        """Install ``repository`` and optionally activate it."""
        name = repository.full_name
        self._report("install", "started", f"Installing {name}")
        try:
            ref = self._orchestrator.install(
                repository.owner, repository.name, repository.default_branch or "main"
            )
        except InstallError as e:
            logger.error("Installation of %s failed: %s", name, e)
            self._report("install", "failed", str(e))
            return ActionResult(name, InstallAction.INSTALL, success=False, error=str(e))

        self._report("install", "completed", f"Installed {name} as {ref.path}")
        logger.info("Installed %s as %s", name, ref.path)

        if activate:
            self._report("activate", "started", f"Activating {ref.path}")
            try:
                self._orchestrator.activate(ref)
            except ActivationError as e:
                logger.error("Activation of %s failed after install: %s", name, e)
                self._report("activate", "failed", str(e))
                state = self._reconciler.refresh_state(repository)
                return ActionResult(
                    name, InstallAction.INSTALL, success=False, state=state, package=ref, error=str(e)
                )
            self._report("activate", "completed", f"Activated {ref.path}")

        state = self._reconciler.refresh_state(repository)
        return ActionResult(name, InstallAction.INSTALL, success=True, state=state, package=ref)

    def activate(self, repository: RepositoryDescriptor) -> ActionResult:
        """Enable an installed package."""
        return self._toggle(repository, InstallAction.ACTIVATE)

    def deactivate(self, repository: RepositoryDescriptor) -> ActionResult:
        """Disable an installed package."""
        return self._toggle(repository, InstallAction.DEACTIVATE)

    def batch_install(
        self, repositories: Iterable[RepositoryDescriptor], activate: bool = False
    ) -> list[ActionResult]:
        """Install repositories one at a time; a failure does not stop the batch."""
        results = [self.install(repo, activate=activate) for repo in repositories]
        succeeded = sum(1 for r in results if r.success)
        logger.info("Batch install finished: %d succeeded, %d failed", succeeded, len(results) - succeeded)
        return results

    def _toggle(self, repository: RepositoryDescriptor, action: InstallAction) -> ActionResult:
        name = repository.full_name
        self._report(action.value, "started", f"{action.value.capitalize()} {name}")
        try:
            ref = self._registry.find_by_slug(repository.slug)
            if ref is None:
                msg = f"Package for {name} is not installed"
                raise ActivationError(msg)
            if action == InstallAction.ACTIVATE:
                self._orchestrator.activate(ref)
            else:
                self._orchestrator.deactivate(ref)
        except ActivationError as e:
            logger.error("%s of %s failed: %s", action.value.capitalize(), name, e)
            self._report(action.value, "failed", str(e))
            return ActionResult(name, action, success=False, error=str(e))

        self._report(action.value, "completed", f"{action.value.capitalize()} {ref.path} succeeded")
        state = self._reconciler.refresh_state(repository)
        return ActionResult(name, action, success=True, state=state, package=ref)

    def _report(self, step: str, status: str, message: str) -> None:
        if self._progress is not None:
            self._progress(step, status, message)
