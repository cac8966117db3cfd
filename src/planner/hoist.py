"""Hoisting: offer every resolved (name, version) a slot at the root."""

from __future__ import annotations

import logging
from typing import List, Mapping, Sequence

from versioning.models import (
    ROOT_LOCATION,
    InstallationPlanEntry,
    PackageVersionKey,
    UsageRecord,
)

logger = logging.getLogger(__name__)


def hoist_to_root(
    entries: Sequence[InstallationPlanEntry],
    ledger: Mapping[PackageVersionKey, UsageRecord],
) -> List[InstallationPlanEntry]:
    """Return ``entries`` plus a root entry for each ledger pair not already at root.

    Existing entries are never removed or rewritten. Usage counts are not
    consulted, so two versions of one package can both end up at root.
    """
    hoisted = list(entries)
    at_root = {(e.name, e.version) for e in hoisted if e.is_root}
    for name, version in ledger:
        if (name, version) in at_root:
            continue
        hoisted.append(
            InstallationPlanEntry(name=name, version=version, install_location=ROOT_LOCATION, hoisted=True)
        )
        at_root.add((name, version))
        logger.debug("Hoisted %s@%s to root", name, version)
    return hoisted
