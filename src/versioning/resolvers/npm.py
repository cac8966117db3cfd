"""NPM version resolver using semantic versioning."""

import logging
import re
from typing import Iterable, List, Optional, Tuple

import semantic_version

from common.errors import InvalidRangeError, UnsatisfiableRangeError

logger = logging.getLogger(__name__)

# ">= 1.2.3" -> ">=1.2.3"
_OPERATOR_SPACING = re.compile(r'(<=|>=|<|>|=|~|\^)\s+(?=[0-9vVxX*])')
# "v1.2.3" / "^v1.2.3" -> "1.2.3" / "^1.2.3"
_V_PREFIX = re.compile(r'(^|[\s<>=~^|])[vV](?=\d)')


class NpmVersionResolver:
    """Resolver for NPM packages using semantic versioning.

    Stateless; ``resolve`` is a pure function of its inputs.
    """

    def _normalize_spec(self, spec_str: str) -> str:
        """Normalize loose npm range syntax into NpmSpec-compatible form."""
        s = spec_str.strip()
        if s == "" or s.lower() == "latest":
            return "*"
        s = _V_PREFIX.sub(r'\1', s)
        return _OPERATOR_SPACING.sub(r'\1', s)

    def parse_range(self, spec_str: str, package_name: Optional[str] = None) -> semantic_version.NpmSpec:
        """Parse an npm range expression.

        Raises:
            InvalidRangeError: if the expression is not a valid npm range.
        """
        if not isinstance(spec_str, str):
            raise InvalidRangeError(
                str(spec_str), package_name, message=f"Invalid semver spec {spec_str!r}"
            )
        try:
            return semantic_version.NpmSpec(self._normalize_spec(spec_str))
        except ValueError as e:
            raise InvalidRangeError(
                spec_str, package_name, message=f"Invalid semver spec '{spec_str}': {e}"
            ) from e

    def is_valid_range(self, spec_str: str) -> bool:
        try:
            self.parse_range(spec_str)
        except InvalidRangeError:
            return False
        return True

    def _parse_candidates(self, candidates: Iterable[str]) -> List[Tuple[semantic_version.Version, str]]:
        parsed = []
        for v in candidates:
            try:
                parsed.append((semantic_version.Version(v), v))
            except ValueError:
                continue  # Skip invalid versions
        return parsed

    def resolve(
        self,
        available_versions: Iterable[str],
        spec_str: str,
        package_name: Optional[str] = None,
    ) -> str:
        """Pick the highest version in ``available_versions`` satisfying ``spec_str``.

        Pre-release versions only match when the range names a pre-release of
        the same major.minor.patch, as npm does.

        Args:
            available_versions: Published version strings.
            spec_str: npm range expression.
            package_name: Used in error messages only.

        Returns:
            The matching version string exactly as given in ``available_versions``.

        Raises:
            InvalidRangeError: if ``spec_str`` is not a valid range.
            UnsatisfiableRangeError: if no candidate satisfies the range.
        """
        candidates = list(available_versions)
        npm_spec = self.parse_range(spec_str, package_name)

        matching = [(ver, raw) for ver, raw in self._parse_candidates(candidates) if npm_spec.match(ver)]
        if not matching:
            raise UnsatisfiableRangeError(spec_str, package_name, len(candidates))

        # Ties on precedence (differing build metadata) fall back to the raw string.
        best = max(matching)
        return best[1]

    def merge_ranges(self, existing: str, new: str, package_name: Optional[str] = None) -> str:
        """Return the disjunction of two ranges, validated as a whole.

        When the union does not parse, ``existing`` is returned unchanged.
        """
        combined = f"{existing} || {new}"
        try:
            self.parse_range(combined, package_name)
        except InvalidRangeError as e:
            logger.warning("Ignoring unmergeable range for %s: %s", package_name or "<unknown>", e)
            return existing
        return combined
