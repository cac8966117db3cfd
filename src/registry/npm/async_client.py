"""NPM registry client for concurrent planning (``aiohttp`` based)."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import aiohttp

from constants import Constants
from common.errors import FetchError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from versioning.models import PackageMetadata

from .packument import minimize_packument, package_url

logger = logging.getLogger(__name__)


class AsyncNpmRegistryClient:
    """Fetch minimized package metadata over a shared aiohttp session.

    Usable as an async context manager; the session is also opened lazily on
    the first request.
    """

    def __init__(
        self,
        registry_url: str = Constants.REGISTRY_URL_NPM,
        timeout: float = Constants.REQUEST_TIMEOUT,
        request_delay: float = Constants.REQUEST_DELAY_SEC,
        max_connections: int = Constants.MAX_CONCURRENCY,
    ):
        self.registry_url = registry_url
        self.request_delay = request_delay
        self._timeout_seconds = timeout
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None
        self.request_count = 0

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=self._max_connections)
            self._session = aiohttp.ClientSession(timeout=self._timeout, connector=connector)

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AsyncNpmRegistryClient":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    async def fetch_metadata(self, package_name: str) -> PackageMetadata:
        """Query the registry for every version of ``package_name``.

        Raises:
            FetchError: on a non-200 status, timeout, transport failure or bad body.
        """
        if self._session is None:
            await self.start()
        assert self._session is not None

        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

        url = package_url(self.registry_url, package_name)
        logger.info("Fetching package info for %s", package_name)
        self.request_count += 1
        with Timer() as t:
            try:
                async with self._session.get(
                    url, headers={"Accept": Constants.NPM_ACCEPT_HEADER}
                ) as response:
                    status = response.status
                    text = await response.text() if status == 200 else ""
            except asyncio.TimeoutError as exc:
                logger.error(
                    "%s request timed out after %s seconds", package_name, self._timeout_seconds
                )
                raise FetchError(
                    package_name, f"timed out after {self._timeout_seconds} seconds"
                ) from exc
            except aiohttp.ClientError as exc:
                logger.error("%s connection error: %s", package_name, exc)
                raise FetchError(package_name, f"connection error: {exc}") from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="async_client",
                    action="GET",
                    status_code=status,
                    duration_ms=t.duration_ms(),
                    target=safe_url(url),
                ),
            )
        if status != 200:
            raise FetchError(package_name, f"registry responded with status {status}", status)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FetchError(package_name, "registry response is not valid JSON", status) from exc
        return minimize_packument(package_name, data)
