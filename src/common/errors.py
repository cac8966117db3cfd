"""Exception hierarchy for installation planning.

``FetchError`` and ``UnsatisfiableRangeError`` abort a plan. The cache
errors are raised by the persistent store only and are always caught and
logged by its callers.
"""
from __future__ import annotations

from typing import Optional


class PlanError(Exception):
    """Base class for all planning failures."""


class FetchError(PlanError):
    """Registry returned a non-success status or the transport failed."""

    def __init__(self, package_name: Optional[str], message: str, status_code: Optional[int] = None):
        target = f" for package {package_name}" if package_name else ""
        super().__init__(f"Failed to fetch metadata{target}: {message}")
        self.package_name = package_name
        self.status_code = status_code


class UnsatisfiableRangeError(PlanError):
    """No available version satisfies the declared range."""

    def __init__(
        self,
        version_range: str,
        package_name: Optional[str] = None,
        candidate_count: int = 0,
        message: Optional[str] = None,
    ):
        target = f"{package_name}@{version_range}" if package_name else version_range
        super().__init__(message or f"Could not find a version for {target}")
        self.version_range = version_range
        self.package_name = package_name
        self.candidate_count = candidate_count


class InvalidRangeError(UnsatisfiableRangeError):
    """The range expression is not a valid npm semver range."""


class CacheReadError(PlanError):
    """Persistent metadata cache could not be read or parsed."""


class CacheWriteError(PlanError):
    """Persistent metadata cache could not be written."""
