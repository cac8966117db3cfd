"""NPM registry clients returning minimized package metadata."""

from .client import NpmRegistryClient
from .packument import minimize_packument, package_url

__all__ = [
    "NpmRegistryClient",
    "minimize_packument",
    "package_url",
]
