"""
Object store client interface.

The write/read pipeline talks to the remote only through this surface. Every
method may raise ObjectStoreError carrying an ErrorKind.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import CommitInfo, ContentsInfo, RepositoryHandle, TreeEntry


class ObjectStoreClient(ABC):
    """Remote git object store: contents API plus blobs, trees, commits and refs."""

    def __init__(self, handle: RepositoryHandle):
        self._handle = handle

    @property
    def handle(self) -> RepositoryHandle:
        return self._handle

    @abstractmethod
    async def get_default_branch(self) -> str:
        """Return the repository's primary branch name."""

    @abstractmethod
    async def get_contents(self, path: str, ref: str) -> ContentsInfo:
        """Fetch a file through the contents API (raises TOO_LARGE above its ceiling)."""

    @abstractmethod
    async def put_contents(
        self,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> str:
        """Create or update a file in one call; returns the new commit sha."""

    @abstractmethod
    async def create_blob(self, content: str, encoding: str = "base64") -> str:
        """Create a blob and return its sha."""

    @abstractmethod
    async def get_blob(self, sha: str) -> bytes:
        """Fetch a blob's raw bytes by sha."""

    @abstractmethod
    async def get_ref(self, ref: str) -> str:
        """Return the object sha a ref (e.g. ``heads/main``) points at."""

    @abstractmethod
    async def update_ref(self, ref: str, sha: str, force: bool = False) -> None:
        """Move a ref to ``sha``."""

    @abstractmethod
    async def get_commit(self, sha: str) -> CommitInfo:
        """Fetch a commit's tree."""

    @abstractmethod
    async def create_commit(
        self, message: str, tree_sha: str, parents: List[str]
    ) -> str:
        """Create a commit and return its sha."""

    @abstractmethod
    async def get_tree(self, sha: str, recursive: bool = False) -> List[TreeEntry]:
        """List a tree's entries."""

    @abstractmethod
    async def create_tree(self, base_tree: str, entries: List[TreeEntry]) -> str:
        """Create a tree layered on ``base_tree`` and return its sha."""

    async def aclose(self) -> None:
        """Release transport resources."""
        return None
