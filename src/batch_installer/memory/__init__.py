"""Memory package: caches and the local package registry."""

from batch_installer.memory.cache_store import (
    CacheEntry,
    CacheStore,
    InMemoryCacheStore,
    JsonFileCacheStore,
)
from batch_installer.memory.package_registry import (
    JsonPackageRegistry,
    PackageEntry,
    PackageRegistry,
    match_package,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "JsonFileCacheStore",
    "JsonPackageRegistry",
    "PackageEntry",
    "PackageRegistry",
    "match_package",
]
