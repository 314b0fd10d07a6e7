"""Entity models for the batch-installer domain layer."""

from batch_installer.entities.components import DetectionMethod, DetectionVerdict
from batch_installer.entities.repository import RepositoryDescriptor, SourceStrategy
from batch_installer.entities.state import CanonicalState, PackageRef

__all__ = [
    "CanonicalState",
    "DetectionMethod",
    "DetectionVerdict",
    "PackageRef",
    "RepositoryDescriptor",
    "SourceStrategy",
]
