"""Component detector: decide whether a repository holds an installable component.

Detection runs in two phases. The fast phase probes a handful of likely
defining files through raw content URLs, which do not count against the
API rate limit. When none of them carries a header block, the full scan
lists the repository root through the contents API and probes every
remaining PHP file in ranked order, followed by the remaining name-derived
and conventional filenames. Those raw probes still run when the listing
fails; the scan then fails only if none of them matches.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from batch_installer.config import DEFAULT_CONFIG
from batch_installer.entities.components import DetectionMethod, DetectionVerdict
from batch_installer.errors import DetectionFailure
from batch_installer.nodes.detection.candidates import fallback_filenames, likely_filenames, rank_candidates
from batch_installer.nodes.detection.headers import HEADER_SCAN_BYTES, parse_component_headers
from batch_installer.sync.client import api_headers, build_client, is_rate_limited

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from batch_installer.config import InstallerConfig
    from batch_installer.entities.repository import RepositoryDescriptor
    from batch_installer.memory.cache_store import CacheStore

logger = logging.getLogger(__name__)

VERDICT_PREFIX = "verdict:"
RAW_FILE_PREFIX = "rawfile:"

# Detections slower than this are logged as warnings
SLOW_DETECTION_SECONDS = 5.0


@runtime_checkable
class Detector(Protocol):
    """Protocol for anything that can produce detection verdicts."""

    def detect(self, repository: RepositoryDescriptor, force_refresh: bool = False) -> DetectionVerdict: ...

    def batch_detect(
        self, repositories: Iterable[RepositoryDescriptor], force_refresh: bool = False
    ) -> dict[str, DetectionVerdict]: ...

    def clear_cache(self, full_name: str | None = None) -> None: ...


class ComponentDetector:
    """Two-phase detector backed by raw content probes and the contents API."""

    def __init__(
        self,
        cache: CacheStore,
        config: InstallerConfig | None = None,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the detector.

        Args:
            cache: Cache store for verdicts and raw file probes.
            config: Installer configuration (defaults to DEFAULT_CONFIG).
            client: Shared HTTP client; one is built from config when omitted.
            clock: Monotonic time source used to flag slow detections.
        """
        self.config = config or DEFAULT_CONFIG
        self._cache = cache
        self._client = client or build_client(self.config)
        self._clock = clock

    def detect(self, repository: RepositoryDescriptor, force_refresh: bool = False) -> DetectionVerdict:
        """Return the detection verdict for ``repository``.

        Never raises for upstream problems: a scan that cannot complete is
        returned as a failed verdict and is not cached.

        Args:
            repository: Repository to scan.
            force_refresh: Ignore any cached verdict.

        Returns:
            DetectionVerdict for the repository.
        """
        cache_key = f"{VERDICT_PREFIX}{repository.full_name}"
        if not force_refresh:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return DetectionVerdict.model_validate(cached)

        started = self._clock()
        try:
            verdict = self._scan(repository)
        except DetectionFailure as e:
            logger.warning("Detection failed for %s: %s", repository.full_name, e)
            return DetectionVerdict.failure(str(e))
        finally:
            elapsed = self._clock() - started
            if elapsed > SLOW_DETECTION_SECONDS:
                logger.warning("Slow detection for %s took %.2f seconds", repository.full_name, elapsed)

        self._cache.set(cache_key, verdict.model_dump(mode="json"), self.config.verdict_ttl)
        logger.debug(
            "Detected %s: component=%s file=%s method=%s",
            repository.full_name,
            verdict.is_component,
            verdict.defining_file,
            verdict.method,
        )
        return verdict

    def batch_detect(
        self, repositories: Iterable[RepositoryDescriptor], force_refresh: bool = False
    ) -> dict[str, DetectionVerdict]:
        """Detect each repository in turn, keyed by full name."""
        return {repo.full_name: self.detect(repo, force_refresh=force_refresh) for repo in repositories}

    def clear_cache(self, full_name: str | None = None) -> None:
        """Drop cached verdicts and raw probes for one repository, or all."""
        if full_name:
            self._cache.delete(f"{VERDICT_PREFIX}{full_name}")
            self._cache.delete_by_prefix(f"{RAW_FILE_PREFIX}{full_name}/")
            return
        self._cache.delete_by_prefix(VERDICT_PREFIX)
        self._cache.delete_by_prefix(RAW_FILE_PREFIX)

    def _scan(self, repository: RepositoryDescriptor) -> DetectionVerdict:
        probed: set[str] = set()

        for filename in likely_filenames(repository.name):
            probed.add(filename)
            metadata = self._probe(repository, filename)
            if metadata:
                return DetectionVerdict(
                    is_component=True,
                    defining_file=filename,
                    declared_metadata=metadata,
                    method=DetectionMethod.FAST_HEURISTIC,
                )

        listing_error: DetectionFailure | None = None
        try:
            root_files = self._list_root_php_files(repository)
        except DetectionFailure as e:
            logger.info("Root listing unavailable for %s, probing raw candidates: %s", repository.full_name, e)
            listing_error = e
            root_files = []

        candidates = [*rank_candidates(root_files, repository.name), *fallback_filenames(repository.name)]
        for filename in candidates:
            if filename in probed:
                continue
            probed.add(filename)
            metadata = self._probe(repository, filename)
            if metadata:
                return DetectionVerdict(
                    is_component=True,
                    defining_file=filename,
                    declared_metadata=metadata,
                    method=DetectionMethod.FULL_SCAN,
                )

        if listing_error is not None:
            raise listing_error
        return DetectionVerdict.no_match(DetectionMethod.FULL_SCAN)

    def _probe(self, repository: RepositoryDescriptor, path: str) -> dict[str, str] | None:
        content = self._raw_file(repository, path)
        if content is None:
            return None
        return parse_component_headers(content)

    def _raw_file(self, repository: RepositoryDescriptor, path: str) -> str | None:
        """Fetch the leading bytes of a file, or None when it does not exist.

        Raises:
            DetectionFailure: On transport errors or rate limiting.
        """
        branch = repository.default_branch or "main"
        cache_key = f"{RAW_FILE_PREFIX}{repository.full_name}/{branch}/{path}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached.get("content") if cached.get("found") else None

        url = f"{self.config.raw_base.rstrip('/')}/{repository.full_name}/{quote(branch)}/{quote(path)}"
        try:
            with self._client.stream(
                "GET",
                url,
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.raw_file_timeout,
            ) as response:
                status = response.status_code
                content = ""
                if status == 200:
                    content = _read_capped(response, HEADER_SCAN_BYTES)
                elif status in (403, 429):
                    response.read()
                    if is_rate_limited(response):
                        msg = f"Rate limited while fetching {path}"
                        raise DetectionFailure(msg)
        except httpx.HTTPError as e:
            msg = f"Failed to fetch {path}: {e}"
            raise DetectionFailure(msg) from e

        if status == 200:
            self._cache.set(cache_key, {"found": True, "content": content}, self.config.raw_file_ttl)
            return content
        if status == 404:
            self._cache.set(cache_key, {"found": False}, self.config.raw_file_miss_ttl)
        else:
            logger.debug("Raw fetch of %s returned %d", url, status)
        return None

    def _list_root_php_files(self, repository: RepositoryDescriptor) -> list[str]:
        """List ``.php`` files at the repository root through the contents API.

        Raises:
            DetectionFailure: On transport errors, rate limiting or a malformed listing.
        """
        url = f"{self.config.api_base.rstrip('/')}/repos/{repository.full_name}/contents"
        try:
            response = self._client.get(
                url, headers=api_headers(self.config), timeout=self.config.contents_timeout
            )
        except httpx.HTTPError as e:
            msg = f"Failed to list repository contents: {e}"
            raise DetectionFailure(msg) from e

        if response.status_code == 404:
            return []
        if is_rate_limited(response):
            msg = "Rate limited while listing repository contents"
            raise DetectionFailure(msg)
        if response.status_code != 200:
            msg = f"Contents listing returned {response.status_code}"
            raise DetectionFailure(msg)

        try:
            items = response.json()
        except ValueError as e:
            msg = "Malformed contents listing"
            raise DetectionFailure(msg) from e
        if not isinstance(items, list):
            msg = "Malformed contents listing"
            raise DetectionFailure(msg)

        return [
            item["name"]
            for item in items
            if isinstance(item, dict)
            and item.get("type") == "file"
            and str(item.get("name", "")).lower().endswith(".php")
        ]


def _read_capped(response: httpx.Response, limit: int) -> str:
    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)[:limit].decode("utf-8", errors="replace")


class FixedVerdictDetector:
    """Detector that skips scanning and reports every repository as a component.

    Used when ``skip_detection`` is set, and as a seam in tests.
    """

    def detect(self, repository: RepositoryDescriptor, force_refresh: bool = False) -> DetectionVerdict:
        name = repository.slug
        if not name:
            return DetectionVerdict.no_match(DetectionMethod.SKIPPED)
        metadata = {"name": name}
        if repository.description:
            metadata["description"] = repository.description
        return DetectionVerdict(
            is_component=True,
            defining_file=f"{name}.php",
            declared_metadata=metadata,
            method=DetectionMethod.SKIPPED,
        )

    def batch_detect(
        self, repositories: Iterable[RepositoryDescriptor], force_refresh: bool = False
    ) -> dict[str, DetectionVerdict]:
        return {repo.full_name: self.detect(repo) for repo in repositories}

    def clear_cache(self, full_name: str | None = None) -> None:
        return None


def build_detector(
    cache: CacheStore,
    config: InstallerConfig | None = None,
    client: httpx.Client | None = None,
) -> Detector:
    """Return the detector selected by ``config.skip_detection``."""
    config = config or DEFAULT_CONFIG
    if config.skip_detection:
        logger.warning("Component detection is disabled; every repository is treated as a component")
        return FixedVerdictDetector()
    return ComponentDetector(cache, config=config, client=client)
