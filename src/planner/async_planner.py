"""Concurrent dependency planner.

Same placement rules as ``DependencyPlanner`` but sibling subtrees are
resolved concurrently. Slot claims happen before the first await of each
node, metadata requests are single-flight in ``AsyncMetadataCache``, and
the hoisting pass only runs once every subtree has finished.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from constants import Constants
from common.errors import FetchError
from common.logging_utils import Timer
from metadata.cache import AsyncMetadataSource
from versioning.models import Dependency, InstallationPlan
from versioning.resolvers.npm import NpmVersionResolver

from .hoist import hoist_to_root
from .planner import Ancestors, TopLevelDependencies, as_dependencies, child_dependencies, child_location
from .state import PlanState, Position

logger = logging.getLogger(__name__)


async def _gather_or_cancel(coros) -> None:
    """Run ``coros`` concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(c) for c in coros]
    if not tasks:
        return
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class AsyncDependencyPlanner:
    """Build installation plans with concurrent registry requests."""

    def __init__(
        self,
        metadata: AsyncMetadataSource,
        resolver: Optional[NpmVersionResolver] = None,
        max_concurrency: int = Constants.MAX_CONCURRENCY,
        plan_timeout: Optional[float] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._metadata = metadata
        self._resolver = resolver or NpmVersionResolver()
        self._max_concurrency = max_concurrency
        self._plan_timeout = plan_timeout

    async def plan(self, top_level: TopLevelDependencies) -> InstallationPlan:
        """Resolve ``top_level`` and everything it depends on.

        Raises:
            FetchError: if any fetch fails or ``plan_timeout`` elapses.
            UnsatisfiableRangeError: if any visited range matches no version.
        """
        state = PlanState(self._resolver)
        semaphore = asyncio.Semaphore(self._max_concurrency)
        dependencies = as_dependencies(top_level)
        walk = self._expand(state, semaphore, dependencies, None, (), frozenset())
        with Timer() as t:
            try:
                await self._walk(walk)
            except BaseException:
                # Shielded fetches outlive their waiters; stop them before the client closes.
                await self._metadata.cancel_in_flight()
                raise
            entries = hoist_to_root(state.entries(), state.usage_ledger())
        logger.info(
            "Planned %d packages (%d entries) in %d ms",
            len(state.pending), len(entries), t.duration_ms(),
        )
        return InstallationPlan(entries)

    async def _walk(self, walk) -> None:
        if self._plan_timeout is None:
            await walk
            return
        try:
            await asyncio.wait_for(walk, self._plan_timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(None, f"planning exceeded {self._plan_timeout} seconds") from exc

    async def _expand(
        self,
        state: PlanState,
        semaphore: asyncio.Semaphore,
        dependencies: List[Dependency],
        install_location: Optional[str],
        parent_position: Position,
        ancestors: Ancestors,
    ) -> None:
        # Claims are made here, in manifest order, before any child awaits.
        claimed = [
            (index, dep) for index, dep in enumerate(dependencies)
            if state.claim(dep, install_location)
        ]
        await _gather_or_cancel(
            self._process(state, semaphore, dep, install_location, parent_position + (index,), ancestors)
            for index, dep in claimed
        )

    async def _process(
        self,
        state: PlanState,
        semaphore: asyncio.Semaphore,
        dependency: Dependency,
        install_location: Optional[str],
        position: Position,
        ancestors: Ancestors,
    ) -> None:
        async with semaphore:
            metadata = await self._metadata.get_package_metadata(dependency.name)
        version = self._resolver.resolve(
            metadata.available_versions(), dependency.version_range, dependency.name
        )
        state.place(dependency.name, version, install_location, position)

        node = (dependency.name, version)
        if node in ancestors:
            logger.debug("Dependency cycle at %s@%s; not expanding", *node)
            return
        await self._expand(
            state,
            semaphore,
            child_dependencies(metadata.dependencies_of(version)),
            child_location(install_location, dependency.name),
            position,
            ancestors | {node},
        )
