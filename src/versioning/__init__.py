"""Versioning: data models and semver range resolution."""
