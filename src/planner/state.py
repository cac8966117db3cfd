"""Per-call bookkeeping shared by the sequential and concurrent planners."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from versioning.models import (
    Dependency,
    InstallationPlanEntry,
    PackageVersionKey,
    PendingResolution,
    ResolutionKey,
    UsageRecord,
)
from versioning.resolvers.npm import NpmVersionResolver

logger = logging.getLogger(__name__)

Position = Tuple[int, ...]


class PlanState:
    """Slot table, placements and usage ledger for one plan construction.

    Every placement carries a position; sorting by it gives discovery order.
    The sequential planner uses a running counter, the concurrent planner the
    tree path of sibling indexes, and both sort to the same depth-first order.
    """

    def __init__(self, resolver: NpmVersionResolver):
        self._resolver = resolver
        self.pending: Dict[ResolutionKey, PendingResolution] = {}
        self._placements: List[Tuple[Position, InstallationPlanEntry]] = []

    def claim(self, dependency: Dependency, install_location: Optional[str]) -> bool:
        """Register a sighting of a slot.

        Returns True on first sighting, meaning the caller must resolve and
        expand the slot. Later sightings only merge their range into the
        pending resolution. No await may happen between the lookup and the
        insert.
        """
        key = ResolutionKey.for_slot(install_location, dependency.name)
        existing = self.pending.get(key)
        if existing is not None:
            existing.merged_version_range = self._resolver.merge_ranges(
                existing.merged_version_range, dependency.version_range, dependency.name
            )
            logger.debug(
                "Merged range for %s at %s: %s",
                dependency.name, key.install_location, existing.merged_version_range,
            )
            return False
        self.pending[key] = PendingResolution(
            name=dependency.name,
            merged_version_range=dependency.version_range,
            install_location=install_location,
        )
        return True

    def place(
        self, name: str, version: str, install_location: Optional[str], position: Position
    ) -> InstallationPlanEntry:
        entry = InstallationPlanEntry(name=name, version=version, install_location=install_location)
        self._placements.append((position, entry))
        return entry

    def _ordered(self) -> List[Tuple[Position, InstallationPlanEntry]]:
        return sorted(self._placements, key=lambda item: item[0])

    def entries(self) -> List[InstallationPlanEntry]:
        """Placements in discovery order."""
        return [entry for _, entry in self._ordered()]

    def usage_ledger(self) -> Dict[PackageVersionKey, UsageRecord]:
        """Usage per (name, version), in order of first placement."""
        ledger: Dict[PackageVersionKey, UsageRecord] = {}
        for _, entry in self._ordered():
            key = (entry.name, entry.version)
            record = ledger.get(key)
            if record is None:
                record = ledger[key] = UsageRecord(name=entry.name, version=entry.version)
            record.record(entry.install_location)
        return ledger
