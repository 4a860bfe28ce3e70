"""
Sha Resolver for hubfs.

Finds the current blob sha of a path at a branch, tag or commit. The contents
API is tried first; when it cannot answer (most importantly for objects above
its size ceiling) the resolver walks ref -> commit -> recursive tree instead.
"""

import logging

from ..api_clients.base import ObjectStoreClient
from ..exceptions import ErrorKind, ObjectStoreError
from ..logging_utils import format_error_log, get_log_extra

logger = logging.getLogger(__name__)


class ShaResolver:
    """Resolves path -> blob sha against an object store."""

    def __init__(self, store: ObjectStoreClient):
        self._store = store

    async def resolve(self, path: str, ref: str) -> str:
        """
        Return the blob sha of ``path`` at ``ref``.

        Raises:
            ObjectStoreError: NOT_FOUND if the path is absent, INVALID_REPO if
                the repository cannot be reached
        """
        try:
            info = await self._store.get_contents(path, ref)
            return info.sha
        except ObjectStoreError as e:
            if e.kind is ErrorKind.INVALID_REPO:
                raise
            logger.debug(
                f"Contents lookup for {path}@{ref} failed ({e.kind.value}), "
                "falling back to tree walk"
            )
        return await self.resolve_slow(path, ref)

    async def resolve_slow(self, path: str, ref: str) -> str:
        """Walk ref -> tip commit -> recursive root tree and match ``path`` exactly."""
        commit_sha = await self.resolve_commit(ref)
        commit = await self._store.get_commit(commit_sha)
        entries = await self._store.get_tree(commit.tree_sha, recursive=True)

        for entry in entries:
            if entry.type == "blob" and entry.path == path:
                return entry.sha

        logger.info(
            format_error_log("HUBFS-SHA-001", "Path not found in tree", path=path, ref=ref),
            extra=get_log_extra("HUBFS-SHA-001", path=path, ref=ref),
        )
        raise ObjectStoreError(
            f"Path not found at {ref}: {path}",
            ErrorKind.NOT_FOUND,
            operation="resolve sha",
        )

    async def resolve_commit(self, ref: str) -> str:
        """
        Turn a branch name, tag name or commit sha into a commit sha.

        Branches take precedence over tags; a ref that is neither is looked up
        as a commit sha directly.
        """
        for namespace in ("heads", "tags"):
            try:
                return await self._store.get_ref(f"{namespace}/{ref}")
            except ObjectStoreError as e:
                if e.kind is not ErrorKind.NOT_FOUND:
                    raise
        return ref
