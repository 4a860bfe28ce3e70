"""Blob Converter: turns pending writes into tree entries backed by new blobs."""

import asyncio

from ..api_clients.base import ObjectStoreClient
from ..models import PendingWrite, TreeEntry
from ..utils.encoding import encode_base64

DEFAULT_BLOB_CONCURRENCY = 50


class BlobConverter:
    """
    Creates blobs for pending writes with bounded concurrency.

    One converter is shared by every branch of a coordinator, and by every
    handle writing through that coordinator. Conversions do not touch refs,
    so they need no ordering among themselves.
    """

    def __init__(self, max_concurrency: int = DEFAULT_BLOB_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self._max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def convert(self, request: PendingWrite, store: ObjectStoreClient) -> TreeEntry:
        """Create the blob for ``request`` through ``store`` and return its tree entry."""
        async with self._semaphore:
            sha = await store.create_blob(encode_base64(request.content))
        return TreeEntry(
            path=request.path,
            sha=sha,
            message=request.message,
            exclusive=request.exclusive,
        )
