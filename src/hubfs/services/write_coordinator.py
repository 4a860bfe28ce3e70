"""
Write Coordinator for hubfs.

Routes each write on a branch either to the fast path (one contents API call)
or into the batched pipeline (blob conversion -> commit batcher), so that at
most one fast-path write is in flight per branch and no two ref updates of a
branch ever overlap.

All routing decisions run on the event loop without a suspension point
between reading and updating BranchWriteStatus; the loop is the per-branch
serialization.

A coordinator holds no object store of its own. Every write brings the
FastPathWriter of the handle that issued it, and remote calls go through that
handle's store, so handles sharing a coordinator can be closed independently.
"""

import asyncio
import logging
import weakref
from typing import Callable, Dict, Hashable, Optional

from ..api_clients.base import ObjectStoreClient
from ..exceptions import (
    ErrorKind,
    InvalidRepositoryError,
    ObjectStoreError,
)
from ..logging_utils import format_error_log, get_log_extra
from ..models import BranchWriteStatus, PendingWrite
from .blob_converter import BlobConverter
from .commit_batcher import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_BATCH_WINDOW_SECONDS,
    CommitBatcher,
)
from .fast_path import FastPathWriter

logger = logging.getLogger(__name__)

# The contents API needs a moment before the new branch tip is safely readable
DEFAULT_SETTLE_DELAY_SECONDS = 0.5

# Store operations whose NOT_FOUND means the target branch itself is missing
BRANCH_OPERATIONS = frozenset({"put contents", "get ref", "update ref"})


class WriteCoordinator:
    """
    Per-repository write coordinator.

    Owns one BranchWriteStatus and one CommitBatcher per branch, created
    lazily on the first write to that branch.
    """

    def __init__(
        self,
        converter: BlobConverter,
        settle_delay: float = DEFAULT_SETTLE_DELAY_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_window: float = DEFAULT_BATCH_WINDOW_SECONDS,
    ):
        self._converter = converter
        self._settle_delay = settle_delay
        self._batch_size = batch_size
        self._batch_window = batch_window
        self._statuses: Dict[str, BranchWriteStatus] = {}
        self._batchers: Dict[str, CommitBatcher] = {}
        # Stores whose repository was confirmed missing or whose credentials
        # were rejected; GitHub answers 404 for repositories a token cannot see
        self._rejected_stores: "weakref.WeakSet[ObjectStoreClient]" = weakref.WeakSet()

    def status(self, branch: str) -> BranchWriteStatus:
        """Return the write status of ``branch``, creating it on first use."""
        status = self._statuses.get(branch)
        if status is None:
            status = self._statuses[branch] = BranchWriteStatus()
        return status

    def batcher(self, branch: str) -> CommitBatcher:
        batcher = self._batchers.get(branch)
        if batcher is None:
            batcher = self._batchers[branch] = CommitBatcher(
                branch,
                batch_size=self._batch_size,
                batch_window=self._batch_window,
            )
        return batcher

    async def submit(
        self, request: PendingWrite, writer: FastPathWriter, queued: bool = False
    ) -> None:
        """
        Write ``request`` to its branch.

        Args:
            request: The pending write
            writer: Fast-path writer of the issuing handle; its store is used
                for every remote call this write makes
            queued: Force the batched pipeline even when the branch is idle

        Raises:
            InvalidRepositoryError: The repository or branch is not usable
            HubfsFileExistsError: A create-only write hit an existing path
            ObjectStoreError: Any other remote failure
        """
        if writer.store in self._rejected_stores:
            raise InvalidRepositoryError(operation="write")

        status = self.status(request.branch)

        if not (queued or status.writing or status.queueing):
            status.writing = True
            await self._write_fast(status, request, writer)
            return

        if status.writing and status.next is None:
            # Hold batched work back until the fast write has settled
            status.register_resume()
        status.begin_queued()
        try:
            await self._write_batched(status, request, writer.store)
        finally:
            status.end_queued()

    async def _write_fast(
        self, status: BranchWriteStatus, request: PendingWrite, writer: FastPathWriter
    ) -> None:
        try:
            await writer.write(request)
        except ObjectStoreError as e:
            error = self._translate(e, request.branch, writer.store)
            if error.kind is ErrorKind.INVALID_REPO:
                self._settle(status)
            else:
                self._schedule_settle(status)
            raise error
        except BaseException:
            self._schedule_settle(status)
            raise
        self._schedule_settle(status)

    async def _write_batched(
        self, status: BranchWriteStatus, request: PendingWrite, store: ObjectStoreClient
    ) -> None:
        try:
            entry = await self._converter.convert(request, store)
            await status.wait_for_resume()
            await self.batcher(request.branch).submit(entry, store)
        except ObjectStoreError as e:
            raise self._translate(e, request.branch, store)

    def _schedule_settle(self, status: BranchWriteStatus) -> None:
        asyncio.get_running_loop().call_later(self._settle_delay, self._settle, status)

    def _settle(self, status: BranchWriteStatus) -> None:
        status.writing = False
        status.resume()

    def _translate(
        self, error: ObjectStoreError, branch: str, store: ObjectStoreClient
    ) -> ObjectStoreError:
        """Map store errors seen on the write path onto caller-facing errors."""
        if error.kind is ErrorKind.INVALID_REPO:
            self._remember_invalid(error, store)
            if isinstance(error, InvalidRepositoryError):
                return error
            return InvalidRepositoryError(
                status_code=error.status_code, operation=error.operation
            )
        if error.kind is ErrorKind.NOT_FOUND and error.operation in BRANCH_OPERATIONS:
            return InvalidRepositoryError(
                f"Invalid branch: {branch}",
                status_code=error.status_code,
                operation=error.operation,
            )
        return error

    def _remember_invalid(self, error: ObjectStoreError, store: ObjectStoreClient) -> None:
        """
        Make a confirmed failure sticky so later writes fail without a remote call.

        Only a confirmed missing repository (404) and rejected credentials
        (401) are permanent, and only for the store that saw them. Any other
        INVALID_REPO, such as a 403 without access, is reported but the next
        write tries again.
        """
        if error.status_code not in (401, 404) or store in self._rejected_stores:
            return
        self._rejected_stores.add(store)
        repository = store.handle.full_name
        logger.error(
            format_error_log(
                "HUBFS-WRITE-001",
                "Repository is missing or inaccessible",
                repository=repository,
                status=error.status_code,
            ),
            extra=get_log_extra("HUBFS-WRITE-001", repository=repository),
        )


class WriteCoordinatorRegistry:
    """
    Maps a repository key to its WriteCoordinator.

    Handles that share a registry share per-branch serialization, which is
    what makes concurrent writes from several handles to one branch safe.
    """

    def __init__(self) -> None:
        self._coordinators: Dict[Hashable, WriteCoordinator] = {}

    def get_or_create(
        self, key: Hashable, factory: Callable[[], WriteCoordinator]
    ) -> WriteCoordinator:
        coordinator = self._coordinators.get(key)
        if coordinator is None:
            coordinator = self._coordinators[key] = factory()
        return coordinator

    def get(self, key: Hashable) -> Optional[WriteCoordinator]:
        return self._coordinators.get(key)

    def __len__(self) -> int:
        return len(self._coordinators)


_default_registries: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, WriteCoordinatorRegistry]" = (
    weakref.WeakKeyDictionary()
)


def default_registry() -> WriteCoordinatorRegistry:
    """
    Registry shared by every handle of the running event loop.

    Coordinator state (queues, events, timers) belongs to one event loop, so
    each loop gets its own registry, dropped together with the loop.

    Raises:
        RuntimeError: If called outside a running event loop
    """
    loop = asyncio.get_running_loop()
    registry = _default_registries.get(loop)
    if registry is None:
        registry = _default_registries[loop] = WriteCoordinatorRegistry()
    return registry
