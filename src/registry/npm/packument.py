"""NPM packument helpers: registry URLs and metadata minimization."""

from __future__ import annotations

import urllib.parse
from typing import Any

from common.errors import FetchError
from versioning.models import PackageMetadata


def package_url(registry_url: str, package_name: str) -> str:
    """Return the packument URL for ``package_name``.

    Scoped names keep their ``@`` but the separating slash is encoded,
    which is what the public registry expects (``@types%2Fnode``).
    """
    base = registry_url if registry_url.endswith("/") else registry_url + "/"
    return base + urllib.parse.quote(package_name, safe="@")


def minimize_packument(package_name: str, data: Any) -> PackageMetadata:
    """Keep only the per-version dependency manifests of a packument.

    Raises:
        FetchError: if the body is not a packument with a ``versions`` mapping.
    """
    if not isinstance(data, dict):
        raise FetchError(package_name, "registry response is not a JSON object", 200)
    try:
        return PackageMetadata.from_dict(package_name, data)
    except ValueError as exc:
        raise FetchError(package_name, str(exc), 200) from exc
