"""
Fast-path writer and reader.

Single-request reads and writes through the contents API, used when no other
write on the branch is in flight. The reader falls back to a tree walk plus a
direct blob fetch for files the contents API refuses to return.
"""

import logging

from ..api_clients.base import ObjectStoreClient
from ..exceptions import (
    ErrorKind,
    HubfsFileExistsError,
    ObjectStoreError,
    translate_store_error,
)
from ..models import PendingWrite
from ..utils.encoding import encode_base64
from .sha_resolver import ShaResolver

logger = logging.getLogger(__name__)


class FastPathWriter:
    """Creates or updates a file in one contents API call."""

    def __init__(self, store: ObjectStoreClient, resolver: ShaResolver):
        self._store = store
        self._resolver = resolver

    @property
    def store(self) -> ObjectStoreClient:
        return self._store

    async def write(self, request: PendingWrite) -> str:
        """
        Write ``request`` directly and return the resulting commit sha.

        The first attempt carries no sha. If the path already exists the
        current sha is resolved and the write is retried once as an update,
        unless the request is create-only. If no blob can be found at the path
        (a directory, for instance) the original conflict is raised.

        Raises:
            HubfsFileExistsError: Create-only request hit an existing path
            ObjectStoreError: Any other remote failure, unchanged
        """
        content = encode_base64(request.content)
        try:
            return await self._store.put_contents(
                request.path, content, request.message, request.branch
            )
        except ObjectStoreError as e:
            if e.kind is not ErrorKind.CONFLICT:
                raise
            if request.exclusive:
                raise HubfsFileExistsError(
                    request.path, status_code=e.status_code, operation=e.operation
                )
            conflict = e

        logger.debug(f"{request.path} exists on {request.branch}, retrying as update")
        try:
            sha = await self._resolver.resolve(request.path, request.branch)
        except ObjectStoreError as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            raise conflict from e
        return await self._store.put_contents(
            request.path, content, request.message, request.branch, sha=sha
        )


class FastPathReader:
    """Reads a file, falling back to the blob API for oversized objects."""

    def __init__(self, store: ObjectStoreClient, resolver: ShaResolver):
        self._store = store
        self._resolver = resolver

    async def read(self, path: str, ref: str) -> bytes:
        """
        Return the raw bytes of ``path`` at ``ref``.

        Raises:
            HubfsFileNotFoundError: The path does not exist at ``ref``
            InvalidRepositoryError: The repository is missing or inaccessible
            ObjectStoreError: Any other remote failure
        """
        try:
            try:
                info = await self._store.get_contents(path, ref)
                return info.content
            except ObjectStoreError as e:
                if e.kind is not ErrorKind.TOO_LARGE:
                    raise
                logger.debug(f"{path}@{ref} too large for contents API, reading blob")

            sha = await self._resolver.resolve_slow(path, ref)
            return await self._store.get_blob(sha)
        except ObjectStoreError as e:
            raise translate_store_error(e)
