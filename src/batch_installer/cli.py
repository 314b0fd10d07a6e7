"""Command line entry point: scan an account and manage the local cache."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from batch_installer import __version__
from batch_installer.config import FetchMode, InstallerConfig
from batch_installer.entities.state import CanonicalState
from batch_installer.memory.cache_store import JsonFileCacheStore
from batch_installer.memory.package_registry import JsonPackageRegistry
from batch_installer.nodes.detection.detector import build_detector
from batch_installer.sync.client import build_client
from batch_installer.sync.fetcher import RepositoryFetcher
from batch_installer.workflows.reconciler import StateReconciler

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch-installer",
        description="Discover installable components in an account's public repositories",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="List repositories with their reconciled state")
    scan.add_argument("account", nargs="?", default=None, help="GitHub user or organization")
    scan.add_argument(
        "--mode",
        choices=[m.value for m in FetchMode],
        default=None,
        help="Listing strategy (default: configured mode, usually auto)",
    )
    scan.add_argument("--limit", type=int, default=None, help="Max repositories to show (0 = all)")
    scan.add_argument("--refresh", action="store_true", help="Ignore cached listings and states")
    scan.add_argument("--cache", type=Path, default=None, help="Path to the cache file")
    scan.add_argument("--registry", type=Path, default=None, help="Path to the package registry file")

    clear = subparsers.add_parser("clear-cache", help="Remove every cached entry")
    clear.add_argument("--cache", type=Path, default=None, help="Path to the cache file")

    return parser


def _config_from_args(args: argparse.Namespace) -> InstallerConfig:
    overrides: dict[str, object] = {}
    if getattr(args, "cache", None) is not None:
        overrides["cache_path"] = args.cache
    if getattr(args, "registry", None) is not None:
        overrides["registry_path"] = args.registry
    if getattr(args, "mode", None):
        overrides["fetch_mode"] = FetchMode(args.mode)
    if getattr(args, "limit", None) is not None:
        overrides["repository_limit"] = args.limit
    return InstallerConfig.from_env(**overrides)


def run_scan(args: argparse.Namespace, config: InstallerConfig, client: httpx.Client | None = None) -> int:
    """Fetch, detect and reconcile, printing one line per repository.

    A client built here is closed before returning; an injected one is left open.
    """
    account = (args.account or config.account_name).strip()
    if not account:
        print("error: no account given (pass ACCOUNT or set BATCH_INSTALLER_ACCOUNT)", file=sys.stderr)
        return 2

    if client is None:
        with build_client(config) as owned:
            return _scan(args, config, account, owned)
    return _scan(args, config, account, client)


def _scan(args: argparse.Namespace, config: InstallerConfig, account: str, client: httpx.Client) -> int:
    cache = JsonFileCacheStore(config.cache_path)
    registry = JsonPackageRegistry(config.registry_path)
    fetcher = RepositoryFetcher(cache, config=config, client=client)
    detector = build_detector(cache, config=config, client=client)
    reconciler = StateReconciler(registry, detector, cache, config=config)

    result = fetcher.fetch_repositories(
        account, force_refresh=args.refresh, limit=config.repository_limit
    )
    if result.error is not None:
        print(f"error: [{result.error.kind}] {result.error.message}", file=sys.stderr)
        for hint in result.error.remediation():
            print(f"  - {hint}", file=sys.stderr)
        return 1

    for repo in result.repositories:
        state = reconciler.get_state(repo, force_refresh=args.refresh)
        location = "-"
        if state.is_installed:
            ref = registry.find_by_slug(repo.slug)
            location = ref.path if ref else "-"
        elif state == CanonicalState.AVAILABLE:
            location = detector.detect(repo).defining_file or "-"
        print(f"{repo.full_name}  {state}  {location}")

    stats = reconciler.statistics()
    logger.info(
        "Scanned %d repositories via %s%s: %s",
        len(result.repositories),
        result.strategy,
        " (cached)" if result.from_cache else "",
        ", ".join(f"{k}={v}" for k, v in stats.items() if v and k != "total"),
    )
    return 0


def run_clear_cache(config: InstallerConfig) -> int:
    cache = JsonFileCacheStore(config.cache_path)
    count = len(cache)
    cache.delete_by_prefix("")
    print(f"Cleared {count} cache entries from {config.cache_path}")
    return 0


def main(argv: list[str] | None = None, client: httpx.Client | None = None) -> int:
    """Run the command line interface and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        config = _config_from_args(args)
    except ValueError as e:
        parser.error(f"invalid configuration: {e}")

    if args.command == "scan":
        return run_scan(args, config, client=client)
    return run_clear_cache(config)


if __name__ == "__main__":
    sys.exit(main())
