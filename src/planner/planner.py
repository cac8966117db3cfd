"""Sequential dependency planner.

Walks the dependency graph depth-first from the top-level declarations,
resolving every node to a concrete version and deciding its nested
``node_modules`` location, then runs the hoisting pass over the result.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from common.logging_utils import Timer
from metadata.cache import MetadataSource
from versioning.models import MODULES_DIR, Dependency, InstallationPlan
from versioning.resolvers.npm import NpmVersionResolver

from .hoist import hoist_to_root
from .state import PlanState

logger = logging.getLogger(__name__)

TopLevelDependencies = Union[Mapping[str, str], Iterable[Dependency]]
Ancestors = FrozenSet[Tuple[str, str]]


def as_dependencies(top_level: TopLevelDependencies) -> List[Dependency]:
    """Accept either a ``{name: range}`` mapping or a sequence of ``Dependency``."""
    if isinstance(top_level, Mapping):
        return [Dependency(name, version_range) for name, version_range in top_level.items()]
    return list(top_level)


def child_location(install_location: Optional[str], parent_name: str) -> str:
    """Where the children of ``parent_name`` are placed."""
    if install_location:
        return f"{install_location}/{MODULES_DIR}/{parent_name}"
    return parent_name


def child_dependencies(manifest: Mapping[str, str]) -> List[Dependency]:
    return [Dependency(name, version_range) for name, version_range in manifest.items()]


class DependencyPlanner:
    """Build installation plans one registry request at a time.

    A node whose exact name and version already appears among its ancestors
    is placed but not expanded again, which stops dependency cycles.
    """

    def __init__(self, metadata: MetadataSource, resolver: Optional[NpmVersionResolver] = None):
        self._metadata = metadata
        self._resolver = resolver or NpmVersionResolver()

    def plan(self, top_level: TopLevelDependencies) -> InstallationPlan:
        """Resolve ``top_level`` and everything it depends on.

        Raises:
            FetchError: if metadata for any visited package cannot be fetched.
            UnsatisfiableRangeError: if any visited range matches no version.
        """
        state = PlanState(self._resolver)
        dependencies = as_dependencies(top_level)
        with Timer() as t:
            self._walk(state, dependencies)
            entries = hoist_to_root(state.entries(), state.usage_ledger())
        logger.info(
            "Planned %d packages (%d entries) in %d ms",
            len(state.pending), len(entries), t.duration_ms(),
        )
        return InstallationPlan(entries)

    def _walk(self, state: PlanState, top_level: List[Dependency]) -> None:
        # Explicit stack; children are pushed reversed so they pop in manifest order.
        stack: List[Tuple[Dependency, Optional[str], Ancestors]] = [
            (dep, None, frozenset()) for dep in reversed(top_level)
        ]
        position = 0
        while stack:
            dependency, install_location, ancestors = stack.pop()
            if not state.claim(dependency, install_location):
                continue

            metadata = self._metadata.get_package_metadata(dependency.name)
            version = self._resolver.resolve(
                metadata.available_versions(), dependency.version_range, dependency.name
            )
            state.place(dependency.name, version, install_location, (position,))
            position += 1

            node = (dependency.name, version)
            if node in ancestors:
                logger.debug("Dependency cycle at %s@%s; not expanding", *node)
                continue
            location = child_location(install_location, dependency.name)
            children = child_dependencies(metadata.dependencies_of(version))
            for child in reversed(children):
                stack.append((child, location, ancestors | {node}))
