"""Detection nodes: header parsing, candidate ranking and the component detector."""

from __future__ import annotations

from batch_installer.nodes.detection.candidates import (
    fallback_filenames,
    file_priority,
    likely_filenames,
    rank_candidates,
)
from batch_installer.nodes.detection.detector import (
    ComponentDetector,
    Detector,
    FixedVerdictDetector,
    build_detector,
)
from batch_installer.nodes.detection.headers import (
    NAME_HEADERS,
    OPTIONAL_HEADERS,
    clean_header_value,
    parse_component_headers,
)

__all__ = [
    "NAME_HEADERS",
    "OPTIONAL_HEADERS",
    "ComponentDetector",
    "Detector",
    "FixedVerdictDetector",
    "build_detector",
    "clean_header_value",
    "fallback_filenames",
    "file_priority",
    "likely_filenames",
    "parse_component_headers",
    "rank_candidates",
]
