"""Data models for dependency resolution and installation planning."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

ROOT_LOCATION = "root"
MODULES_DIR = "node_modules"


@dataclass(frozen=True)
class Dependency:
    """An unresolved reference: a package name plus its declared range."""
    name: str
    version_range: str


@dataclass(frozen=True)
class PackageMetadata:
    """Minimized registry metadata: version -> dependency manifest."""
    name: str
    versions: Mapping[str, Mapping[str, str]]

    def available_versions(self) -> List[str]:
        """Return every published version string."""
        return list(self.versions.keys())

    def dependencies_of(self, version: str) -> Mapping[str, str]:
        """Return the dependency manifest of one version (empty when absent)."""
        return self.versions.get(version) or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted ``{"versions": {v: {"dependencies": ...}}}`` shape."""
        return {
            "versions": {
                version: {"dependencies": dict(deps)}
                for version, deps in self.versions.items()
            }
        }

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "PackageMetadata":
        """Build metadata from a packument or the persisted shape.

        Everything except the per-version ``dependencies`` map is dropped.
        A missing or null ``dependencies`` field means no dependencies.

        Raises:
            ValueError: if ``data`` has no ``versions`` mapping.
        """
        versions = data.get("versions") if isinstance(data, Mapping) else None
        if not isinstance(versions, Mapping):
            raise ValueError(f"metadata for {name} has no 'versions' mapping")
        minimized: Dict[str, Dict[str, str]] = {}
        for version, info in versions.items():
            deps = info.get("dependencies") if isinstance(info, Mapping) else None
            minimized[version] = dict(deps) if isinstance(deps, Mapping) else {}
        return cls(name=name, versions=minimized)


@dataclass(frozen=True)
class ResolutionKey:
    """One logical slot in the dependency tree.

    The root slot is keyed by ``None``. A package path can never be ``None``,
    so the children of a top-level package named ``root`` stay apart from it.
    """
    install_location: Optional[str]
    name: str

    @classmethod
    def for_slot(cls, install_location: Optional[str], name: str) -> "ResolutionKey":
        return cls(install_location=install_location or None, name=name)


@dataclass
class PendingResolution:
    """Ranges seen so far for a slot; created on first sighting."""
    name: str
    merged_version_range: str
    install_location: Optional[str]


@dataclass(frozen=True)
class InstallationPlanEntry:
    """One concrete placement decision.

    ``install_location`` is the directory whose ``node_modules`` receives the
    package: ``None`` for top-level declarations, otherwise a nested path.
    Hoisted entries carry ``"root"`` with ``hoisted`` set; without the flag
    ``"root"`` is the directory of a top-level package named ``root``.
    """
    name: str
    version: str
    install_location: Optional[str]
    hoisted: bool = False

    @property
    def is_root(self) -> bool:
        return self.hoisted or self.install_location is None

    @property
    def install_path(self) -> str:
        """Directory the package is materialized into, relative to the root modules dir."""
        if self.is_root:
            return self.name
        return f"{self.install_location}/{MODULES_DIR}/{self.name}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "installLocation": self.install_location,
            "hoisted": self.hoisted,
        }


@dataclass
class UsageRecord:
    """How often an exact (name, version) was placed, and where."""
    name: str
    version: str
    count: int = 0
    install_locations: List[str] = field(default_factory=list)

    def record(self, install_location: Optional[str]) -> None:
        self.count += 1
        self.install_locations.append(install_location or ROOT_LOCATION)


class InstallationPlan(Sequence[InstallationPlanEntry]):
    """Ordered, immutable sequence of plan entries."""

    def __init__(self, entries: Sequence[InstallationPlanEntry] = ()):
        self._entries: Tuple[InstallationPlanEntry, ...] = tuple(entries)

    def __getitem__(self, index):  # type: ignore[override]
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[InstallationPlanEntry]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, InstallationPlan):
            return self._entries == other._entries
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"InstallationPlan({list(self._entries)!r})"

    def at_root(self) -> List[InstallationPlanEntry]:
        """Entries placed in the root modules directory."""
        return [e for e in self._entries if e.is_root]

    def as_dicts(self) -> List[Dict[str, Any]]:
        return [e.as_dict() for e in self._entries]

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.as_dicts(), indent=indent)


# Type alias for the usage ledger key.
PackageVersionKey = Tuple[str, str]
