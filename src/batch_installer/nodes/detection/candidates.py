"""Candidate defining-file names and their ranking."""

from __future__ import annotations

import re

MAX_LIKELY_FILES = 5

# Conventional entry-point basenames
MAIN_FILE_STEMS = frozenset({"plugin", "main", "init"})

# Basenames that almost never define a component
_LOW_PRIORITY_RE = re.compile(r"(functions|config|settings|admin|helper|util|uninstall)|^class-", re.IGNORECASE)

KISS_PREFIX = "KISS-"

# Naming prefixes removed when deriving the bare component name
NAME_PREFIXES = ("KISS-", "WP-", "WordPress-")

STANDARD_FILENAMES = ("plugin.php", "index.php", "main.php", "init.php")


def likely_filenames(repo_name: str) -> list[str]:
    """Most probable defining files for a repository, best first.

    Args:
        repo_name: Repository short name.

    Returns:
        At most five de-duplicated ``.php`` filenames.
    """
    repo_name = repo_name.strip()
    if not repo_name:
        return []

    lower = repo_name.lower()
    names = [f"{repo_name}.php", f"{lower}.php"]
    if repo_name.startswith(KISS_PREFIX):
        stripped = repo_name[len(KISS_PREFIX):].lower()
        names += [f"{KISS_PREFIX}{stripped}.php", f"{stripped}.php"]
    names += [
        f"{lower.replace('-', '_')}.php",
        f"{lower.replace('_', '-')}.php",
        "plugin.php",
        "index.php",
    ]

    return list(dict.fromkeys(names))[:MAX_LIKELY_FILES]


def fallback_filenames(repo_name: str) -> list[str]:
    """Every name-derived and conventional filename worth probing directly.

    Probed after the ranked root listing, and in its place when the listing
    is unavailable. Covers underscore/hyphen variants and the name with
    ``KISS-``, ``WP-`` and ``WordPress-`` removed.
    """
    repo_name = repo_name.strip()
    names: list[str] = []
    if repo_name:
        lower = repo_name.lower()
        names += [
            f"{repo_name}.php",
            f"{lower}.php",
            f"{repo_name.replace('-', '_')}.php",
            f"{repo_name.replace('_', '-')}.php",
        ]
        if repo_name.startswith(KISS_PREFIX):
            stripped = repo_name[len(KISS_PREFIX):].lower()
            names += [f"{KISS_PREFIX}{stripped}.php", f"{stripped}.php", f"{stripped.replace('-', '_')}.php"]

        clean = repo_name
        for prefix in NAME_PREFIXES:
            clean = clean.replace(prefix, "")
        clean = clean.lower()
        if clean:
            names += [f"{clean}.php", f"{clean.replace('-', '_')}.php", f"{clean.replace('_', '-')}.php"]

    names += STANDARD_FILENAMES
    return list(dict.fromkeys(names))


def _name_variants(repo_name: str) -> set[str]:
    lower = repo_name.strip().lower()
    variants = {lower, lower.replace("-", "_"), lower.replace("_", "-")}
    if lower.startswith(KISS_PREFIX.lower()):
        variants.add(lower[len(KISS_PREFIX):])
    return variants


def file_priority(filename: str, repo_name: str) -> int:
    """Priority tier for a candidate file (lower is better).

    0: matches the repository name or an entry-point convention.
    1: anything else at the repository root.
    2: helper, config or class files.
    3: nested paths, which never outrank a root file.
    """
    if "/" in filename:
        return 3
    stem = filename.lower().removesuffix(".php")
    if stem in _name_variants(repo_name) or stem in MAIN_FILE_STEMS:
        return 0
    if _LOW_PRIORITY_RE.search(stem):
        return 2
    return 1


def rank_candidates(filenames: list[str], repo_name: str) -> list[str]:
    """Sort candidate files by priority tier, then case-insensitive name."""
    return sorted(filenames, key=lambda name: (file_priority(name, repo_name), name.lower()))
