"""Parse the plugin-style header block at the top of a PHP file."""

from __future__ import annotations

import re

# Only the leading part of a file can hold the header block
HEADER_SCAN_BYTES = 8192

NAME_HEADERS = ("Plugin Name", "Component Name")

OPTIONAL_HEADERS: dict[str, str] = {
    "Plugin URI": "plugin_uri",
    "Description": "description",
    "Version": "version",
    "Author": "author",
    "Author URI": "author_uri",
    "Text Domain": "text_domain",
    "Domain Path": "domain_path",
    "Requires at least": "requires_at_least",
    "Tested up to": "tested_up_to",
    "Requires PHP": "requires_php",
    "Network": "network",
    "License": "license",
    "License URI": "license_uri",
}

_PHP_OPEN_RE = re.compile(r"^\s*<\?php", re.IGNORECASE)
_CLOSER_RE = re.compile(r"\s*(?:\*/|\?>).*")
_LEADING_MARKERS_RE = re.compile(r"^[\s/*#@]*")


def _header_pattern(header: str) -> re.Pattern[str]:
    return re.compile(rf"^[ \t/*#@]*{re.escape(header)}:(.*)$", re.IGNORECASE | re.MULTILINE)


_NAME_PATTERNS = [_header_pattern(h) for h in NAME_HEADERS]
_OPTIONAL_PATTERNS = {key: _header_pattern(h) for h, key in OPTIONAL_HEADERS.items()}


def clean_header_value(value: str) -> str:
    """Strip comment closers, leading comment markers and whitespace."""
    value = _CLOSER_RE.sub("", value)
    value = _LEADING_MARKERS_RE.sub("", value)
    return value.strip()


def _first_match(patterns: list[re.Pattern[str]], content: str) -> str:
    for pattern in patterns:
        match = pattern.search(content)
        if match:
            value = clean_header_value(match.group(1))
            if value:
                return value
    return ""


def parse_component_headers(content: str) -> dict[str, str] | None:
    """Extract header fields from PHP source.

    Args:
        content: File content; only the first 8 KiB is examined.

    Returns:
        Mapping with the component name under ``name`` plus any recognized
        optional fields, or None when the file is not PHP or declares no name.
    """
    content = content[:HEADER_SCAN_BYTES]
    if not _PHP_OPEN_RE.match(content):
        return None

    name = _first_match(_NAME_PATTERNS, content)
    if not name:
        return None

    metadata = {"name": name}
    for key, pattern in _OPTIONAL_PATTERNS.items():
        value = _first_match([pattern], content)
        if value:
            metadata[key] = value
    return metadata
