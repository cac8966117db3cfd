"""Entry points: turn top-level declared dependencies into an installation plan.

Wires configuration, the persistent metadata store, the registry client,
the metadata cache and a planner together. Reading ``package.json`` and
materializing the plan on disk are left to the caller.
"""

from __future__ import annotations

import logging
from typing import Optional

from common.logging_utils import configure_logging
from config import PlannerConfig
from metadata.cache import AsyncMetadataCache, AsyncRegistryClient, MetadataCache, RegistryClient
from metadata.store import JsonFileStore
from planner.async_planner import AsyncDependencyPlanner
from planner.planner import DependencyPlanner, TopLevelDependencies
from registry.npm.async_client import AsyncNpmRegistryClient
from registry.npm.client import NpmRegistryClient
from versioning.models import InstallationPlan

logger = logging.getLogger(__name__)


def _prepare(config: Optional[PlannerConfig]) -> PlannerConfig:
    config = config or PlannerConfig.load()
    if config.log_level:
        configure_logging(config.log_level)
    return config


def _open_store(config: PlannerConfig) -> Optional[JsonFileStore]:
    if not config.cache_file:
        return None
    return JsonFileStore(config.cache_file)


def build_metadata_cache(
    config: PlannerConfig, registry: Optional[RegistryClient] = None
) -> MetadataCache:
    """Create a blocking metadata cache for ``config``."""
    registry = registry or NpmRegistryClient(
        registry_url=config.registry_url,
        timeout=config.timeout,
        request_delay=config.request_delay,
    )
    return MetadataCache(registry, _open_store(config))


def construct_installation_plan(
    top_level: TopLevelDependencies,
    config: Optional[PlannerConfig] = None,
    registry: Optional[RegistryClient] = None,
) -> InstallationPlan:
    """Resolve ``top_level`` into an installation plan, one request at a time.

    Args:
        top_level: ``{name: range}`` as found under ``dependencies`` in
            ``package.json``, or a sequence of ``Dependency``.
        config: Planner configuration; loaded from file/environment when omitted.
        registry: Registry client to use instead of the npm HTTP client.

    Raises:
        FetchError: if metadata for any visited package cannot be fetched.
        UnsatisfiableRangeError: if any visited range matches no version.
    """
    config = _prepare(config)
    cache = build_metadata_cache(config, registry)
    plan = DependencyPlanner(cache).plan(top_level)
    logger.debug("Metadata cache stats: %s", cache.stats)
    return plan


async def construct_installation_plan_async(
    top_level: TopLevelDependencies,
    config: Optional[PlannerConfig] = None,
    registry: Optional[AsyncRegistryClient] = None,
) -> InstallationPlan:
    """Concurrent variant of ``construct_installation_plan``.

    When no ``registry`` is given an aiohttp client is opened for the
    duration of the call.
    """
    config = _prepare(config)
    store = _open_store(config)
    planner_kwargs = {
        "max_concurrency": config.max_concurrency,
        "plan_timeout": config.plan_timeout,
    }
    if registry is not None:
        cache = AsyncMetadataCache(registry, store)
        return await AsyncDependencyPlanner(cache, **planner_kwargs).plan(top_level)

    async with AsyncNpmRegistryClient(
        registry_url=config.registry_url,
        timeout=config.timeout,
        request_delay=config.request_delay,
        max_connections=config.max_concurrency,
    ) as client:
        cache = AsyncMetadataCache(client, store)
        plan = await AsyncDependencyPlanner(cache, **planner_kwargs).plan(top_level)
    logger.debug("Metadata cache stats: %s", cache.stats)
    return plan
