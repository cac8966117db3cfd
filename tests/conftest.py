"""Shared fixtures: in-process fake registries."""

import asyncio
from typing import Dict, List, Mapping, Optional

import pytest

from common.errors import FetchError
from versioning.models import PackageMetadata


class FakeRegistry:
    """Registry double serving ``{name: {version: {dep: range}}}``."""

    def __init__(self, packages: Mapping[str, Mapping[str, Mapping[str, str]]]):
        self.packages = packages
        self.calls: List[str] = []

    def _lookup(self, package_name: str) -> PackageMetadata:
        self.calls.append(package_name)
        if package_name not in self.packages:
            raise FetchError(package_name, "registry responded with status 404", 404)
        versions: Dict[str, Dict[str, str]] = {
            version: dict(deps) for version, deps in self.packages[package_name].items()
        }
        return PackageMetadata(name=package_name, versions=versions)

    def fetch_metadata(self, package_name: str) -> PackageMetadata:
        return self._lookup(package_name)


class FakeAsyncRegistry(FakeRegistry):
    """Async registry double; ``delay`` keeps requests in flight long enough to overlap.

    ``delays`` overrides the delay for individual package names.
    """

    def __init__(self, packages, delay: float = 0.0, delays: Optional[Mapping[str, float]] = None):
        super().__init__(packages)
        self.delay = delay
        self.delays = dict(delays or {})
        self.completed: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_metadata(self, package_name: str) -> PackageMetadata:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(package_name, self.delay))
            metadata = self._lookup(package_name)
            self.completed.append(package_name)
            return metadata
        finally:
            self.in_flight -= 1


# Scenario registries
SCENARIO_SINGLE = {
    "a": {"1.0.0": {}, "1.2.0": {}, "2.0.0": {}},
}

SCENARIO_SHARED_CHILD = {
    "a": {"1.0.0": {"c": "^1.0.0"}},
    "b": {"1.0.0": {"c": "^1.0.0"}},
    "c": {"1.0.0": {}},
}

DIAMOND = {
    "app": {"1.0.0": {"left": "^1.0.0", "right": "^1.0.0", "shared": "^1.0.0"}},
    "left": {"1.0.0": {"shared": "^1.0.0"}, "1.1.0": {"shared": "^1.1.0", "leaf": "~2.0.0"}},
    "right": {"1.0.0": {"shared": "1.x", "leaf": "2.0.x"}},
    "shared": {"1.0.0": {}, "1.1.0": {}, "1.2.0-beta.1": {}},
    "leaf": {"2.0.0": {}, "2.0.3": {}, "2.1.0": {}},
}

# A top-level package whose name matches the root label.
NAMED_ROOT = {
    "root": {"1.0.0": {"x": "^2.0.0"}},
    "x": {"1.0.0": {}, "2.0.0": {}},
}


@pytest.fixture
def fake_registry():
    """Factory for sync registry doubles."""
    return FakeRegistry


@pytest.fixture
def fake_async_registry():
    """Factory for async registry doubles."""
    return FakeAsyncRegistry
