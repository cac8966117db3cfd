"""Two-tier read-through cache for package metadata.

Lookups go memory -> persistent store -> registry. Whatever the registry
returns is minimized before it is stored, and a name is fetched from the
registry at most once per cache instance.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from common.errors import CacheWriteError
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import PackageMetadata

from .store import JsonFileStore

logger = logging.getLogger(__name__)


class RegistryClient(Protocol):
    def fetch_metadata(self, package_name: str) -> PackageMetadata: ...


class AsyncRegistryClient(Protocol):
    async def fetch_metadata(self, package_name: str) -> PackageMetadata: ...


class MetadataSource(Protocol):
    """What the planner needs: metadata by package name."""

    def get_package_metadata(self, package_name: str) -> PackageMetadata: ...


class AsyncMetadataSource(Protocol):
    async def get_package_metadata(self, package_name: str) -> PackageMetadata: ...

    async def cancel_in_flight(self) -> None: ...


@dataclass
class CacheStats:
    memory_hits: int = 0
    store_hits: int = 0
    registry_fetches: int = 0


class _TieredCache:
    """Memory and persistent tiers shared by the sync and async caches."""

    def __init__(self, store: Optional[JsonFileStore] = None):
        self._memory: Dict[str, PackageMetadata] = {}
        self._store = store
        self.stats = CacheStats()

    def _lookup(self, package_name: str) -> Optional[PackageMetadata]:
        cached = self._memory.get(package_name)
        if cached is not None:
            self.stats.memory_hits += 1
            return cached
        if self._store is not None:
            stored = self._store.get(package_name)
            if stored is not None:
                self.stats.store_hits += 1
                self._memory[package_name] = stored
                if is_debug_enabled(logger):
                    logger.debug(
                        "Persistent cache hit",
                        extra=extra_context(event="cache_hit", component="metadata_cache", package=package_name),
                    )
                return stored
        return None

    def _remember(self, metadata: PackageMetadata) -> None:
        self.stats.registry_fetches += 1
        self._memory[metadata.name] = metadata
        if self._store is None:
            return
        try:
            self._store.put(metadata)
        except CacheWriteError as e:
            logger.error("Error writing to cache file: %s", e)

    def __contains__(self, package_name: str) -> bool:
        return package_name in self._memory


class MetadataCache(_TieredCache):
    """Blocking metadata source in front of a registry client."""

    def __init__(self, registry: RegistryClient, store: Optional[JsonFileStore] = None):
        super().__init__(store)
        self._registry = registry

    def get_package_metadata(self, package_name: str) -> PackageMetadata:
        """Return metadata for ``package_name``.

        Raises:
            FetchError: if the registry has to be queried and the request fails.
        """
        cached = self._lookup(package_name)
        if cached is not None:
            return cached
        metadata = self._registry.fetch_metadata(package_name)
        self._remember(metadata)
        return metadata


class AsyncMetadataCache(_TieredCache):
    """Metadata source for concurrent planning.

    Concurrent first requests for one name share a single in-flight fetch.
    A failed fetch is forgotten so a later call may try again.
    """

    def __init__(self, registry: AsyncRegistryClient, store: Optional[JsonFileStore] = None):
        super().__init__(store)
        self._registry = registry
        self._in_flight: Dict[str, "asyncio.Future[PackageMetadata]"] = {}

    async def get_package_metadata(self, package_name: str) -> PackageMetadata:
        cached = self._lookup(package_name)
        if cached is not None:
            return cached

        future = self._in_flight.get(package_name)
        if future is None:
            future = asyncio.ensure_future(self._fetch(package_name))
            self._in_flight[package_name] = future
        elif is_debug_enabled(logger):
            logger.debug(
                "Joining in-flight fetch",
                extra=extra_context(event="single_flight", component="metadata_cache", package=package_name),
            )
        # Shielded so one cancelled waiter does not cancel the fetch for the others.
        return await asyncio.shield(future)

    async def _fetch(self, package_name: str) -> PackageMetadata:
        try:
            metadata = await self._registry.fetch_metadata(package_name)
            self._remember(metadata)
            return metadata
        finally:
            self._in_flight.pop(package_name, None)

    async def cancel_in_flight(self) -> None:
        """Cancel every registry request still running and wait for them to settle.

        Cancelled fetches store nothing in either tier.
        """
        pending = list(self._in_flight.values())
        self._in_flight.clear()
        if not pending:
            return
        for future in pending:
            future.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.debug("Cancelled %d in-flight metadata fetches", len(pending))
