"""Persistent JSON store for minimized package metadata.

The file maps package name to ``{"versions": {version: {"dependencies": {...}}}}``.
It is read once when the store is created and rewritten in full after every
successful registry fetch.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Dict, Optional

from common.errors import CacheReadError, CacheWriteError
from versioning.models import PackageMetadata

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Append-only metadata store backed by a single JSON file."""

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._entries: Dict[str, PackageMetadata] = {}
        try:
            self._entries = self._read()
        except CacheReadError as e:
            logger.error("Error reading cache file: %s", e)
            self._entries = {}

    def _read(self) -> Dict[str, PackageMetadata]:
        """Load the cache file.

        A missing file is an empty cache. A malformed top level raises
        ``CacheReadError``; individual malformed entries are skipped.
        """
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as e:
            raise CacheReadError(f"{self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise CacheReadError(f"{self.path}: expected a JSON object")

        entries = {}
        for name, data in raw.items():
            try:
                entries[name] = PackageMetadata.from_dict(name, data)
            except ValueError as e:
                logger.warning("Skipping malformed cache entry %s: %s", name, e)
        logger.debug("Loaded %d cached packages from %s", len(entries), self.path)
        return entries

    def get(self, package_name: str) -> Optional[PackageMetadata]:
        return self._entries.get(package_name)

    def __contains__(self, package_name: str) -> bool:
        return package_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, metadata: PackageMetadata) -> None:
        """Record ``metadata`` and rewrite the whole file.

        The in-memory entry is kept even when writing fails.

        Raises:
            CacheWriteError: if the file could not be written.
        """
        self._entries[metadata.name] = metadata
        self._write()

    def _write(self) -> None:
        payload = {name: meta.to_dict() for name, meta in self._entries.items()}
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".depplan-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass  # Leftover temp file is harmless
            raise CacheWriteError(f"{self.path}: {e}") from e
