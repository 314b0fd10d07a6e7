"""Workflows package: state reconciliation and installation actions."""

from batch_installer.workflows.installation import (
    ActionResult,
    InstallAction,
    InstallationOrchestrator,
    InstallationService,
)
from batch_installer.workflows.reconciler import StateReconciler

__all__ = [
    "ActionResult",
    "InstallAction",
    "InstallationOrchestrator",
    "InstallationService",
    "StateReconciler",
]
