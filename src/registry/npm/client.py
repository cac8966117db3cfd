"""NPM registry client (blocking, ``requests`` based)."""

from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from constants import Constants
from common.errors import FetchError
from common.http_client import get_json
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from versioning.models import PackageMetadata

from .packument import minimize_packument, package_url

logger = logging.getLogger(__name__)


class NpmRegistryClient:
    """Fetch minimized package metadata from an npm-compatible registry."""

    def __init__(
        self,
        registry_url: str = Constants.REGISTRY_URL_NPM,
        timeout: float = Constants.REQUEST_TIMEOUT,
        request_delay: float = Constants.REQUEST_DELAY_SEC,
        session: Optional[requests.Session] = None,
    ):
        self.registry_url = registry_url
        self.timeout = timeout
        self.request_delay = request_delay
        self._session = session
        self.request_count = 0

    def fetch_metadata(self, package_name: str) -> PackageMetadata:
        """Query the registry for every version of ``package_name``.

        Raises:
            FetchError: on a non-200 status, transport failure or bad body.
        """
        if self.request_delay > 0:
            # Short sleep to avoid rate limiting
            time.sleep(self.request_delay)

        url = package_url(self.registry_url, package_name)
        logger.info("Fetching package info for %s", package_name)
        self.request_count += 1
        status_code, data = get_json(
            url,
            context=package_name,
            headers={"Accept": Constants.NPM_ACCEPT_HEADER},
            session=self._session,
            timeout=self.timeout,
        )
        if status_code != 200:
            logger.warning(
                "HTTP non-200 for %s",
                package_name,
                extra=extra_context(
                    event="http_response",
                    outcome="fetch_failed",
                    status_code=status_code,
                    target=safe_url(url),
                    package_manager="npm",
                ),
            )
            raise FetchError(package_name, f"registry responded with status {status_code}", status_code)
        if data is None:
            raise FetchError(package_name, "registry response is not valid JSON", status_code)

        metadata = minimize_packument(package_name, data)
        if is_debug_enabled(logger):
            logger.debug(
                "Minimized packument",
                extra=extra_context(
                    event="parse",
                    component="client",
                    action="fetch_metadata",
                    package=package_name,
                    version_count=len(metadata.versions),
                ),
            )
        return metadata
