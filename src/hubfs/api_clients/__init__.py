"""Object store clients used by the hubfs pipeline."""

from .base import ObjectStoreClient
from .github_client import GitHubObjectStore

__all__ = ["GitHubObjectStore", "ObjectStoreClient"]
