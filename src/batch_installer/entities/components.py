"""Detection verdicts describing whether a repository holds an installable component."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DetectionMethod(StrEnum):
    """How a verdict was reached."""

    FAST_HEURISTIC = "fast-heuristic"
    FULL_SCAN = "full-scan"
    SKIPPED = "skipped"
    FAILED = "failed"


class DetectionVerdict(BaseModel):
    """Immutable result of scanning one repository.

    A positive verdict always names its defining file and carries the
    component name under ``declared_metadata["name"]``.
    """

    model_config = ConfigDict(frozen=True)

    is_component: bool = False
    defining_file: str = ""
    declared_metadata: dict[str, str] = Field(default_factory=dict)
    method: DetectionMethod = DetectionMethod.FULL_SCAN
    error: str | None = None

    @model_validator(mode="after")
    def check_component_fields(self) -> DetectionVerdict:
        """Reject positive verdicts without a defining file or name."""
        if self.is_component:
            if not self.defining_file:
                msg = "a component verdict requires a defining file"
                raise ValueError(msg)
            if not self.declared_metadata.get("name", "").strip():
                msg = "a component verdict requires a declared name"
                raise ValueError(msg)
        return self

    @property
    def failed(self) -> bool:
        return self.method == DetectionMethod.FAILED

    @property
    def component_name(self) -> str:
        return self.declared_metadata.get("name", "")

    @classmethod
    def no_match(cls, method: DetectionMethod) -> DetectionVerdict:
        """Negative verdict for a scan that completed without a match."""
        return cls(is_component=False, method=method)

    @classmethod
    def failure(cls, error: str) -> DetectionVerdict:
        """Negative verdict for a scan that could not complete."""
        return cls(is_component=False, method=DetectionMethod.FAILED, error=error)
