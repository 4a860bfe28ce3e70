"""
Commit Batcher for hubfs.

Accumulates tree entries for one branch and turns each closed batch into a
single commit:

1. read the branch ref and its tip commit
2. create a tree layered on the tip's tree
3. create a commit parented on the tip
4. force-move the branch ref to the new commit

A single drain task per branch runs these steps, so a batch always reads the
tip left behind by the previous batch. A failure at any step fails every
writer in the batch with the same exception and leaves the ref untouched.

Entries arrive with the object store of the handle that wrote them. A batch
is committed through the store of its first live entry, whose writer is still
awaiting the result, so that store cannot have been closed.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from ..api_clients.base import ObjectStoreClient
from ..exceptions import HubfsFileExistsError
from ..logging_utils import format_error_log, get_log_extra
from ..models import TreeEntry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_WINDOW_SECONDS = 0.05

COMMIT_MESSAGE_HEADER = "Added new files\n\n"

_Waiter = Tuple[TreeEntry, ObjectStoreClient, "asyncio.Future[str]"]


def build_commit_message(entries: List[TreeEntry]) -> str:
    """
    Build the commit message of a batch.

    Examples:
        >>> build_commit_message([TreeEntry("a.txt", "1", message="Update/create a.txt")])
        'Added new files\\n\\na.txt: Update/create a.txt\\n'
    """
    return COMMIT_MESSAGE_HEADER + "".join(
        f"{entry.path}: {entry.message or ''}\n" for entry in entries
    )


class CommitBatcher:
    """Batches tree entries destined for one branch into serialized commits."""

    def __init__(
        self,
        branch: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_window: float = DEFAULT_BATCH_WINDOW_SECONDS,
    ):
        """
        Args:
            branch: Branch whose ref this batcher advances
            batch_size: Maximum entries per commit
            batch_window: Seconds to wait for another entry before closing a
                batch that is not yet full
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._branch = branch
        self._batch_size = batch_size
        self._batch_window = batch_window
        self._queue: "asyncio.Queue[_Waiter]" = asyncio.Queue()
        self._worker: Optional["asyncio.Task[None]"] = None

    @property
    def branch(self) -> str:
        return self._branch

    @property
    def busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def submit(self, entry: TreeEntry, store: ObjectStoreClient) -> str:
        """Queue ``entry`` and wait until its batch is committed; returns the commit sha."""
        future: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((entry, store, future))
        if not self.busy:
            self._worker = asyncio.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        while not self._queue.empty():
            batch = await self._collect()
            await self._commit(batch)

    async def _collect(self) -> List[_Waiter]:
        batch = [self._queue.get_nowait()]
        while len(batch) < self._batch_size:
            if not self._queue.empty():
                batch.append(self._queue.get_nowait())
                continue
            if self._batch_window <= 0:
                break
            try:
                batch.append(
                    await asyncio.wait_for(self._queue.get(), timeout=self._batch_window)
                )
            except asyncio.TimeoutError:
                break
        return batch

    async def _commit(self, batch: List[_Waiter]) -> None:
        waiters = [waiter for waiter in batch if not waiter[2].done()]
        if not waiters:
            return
        store = waiters[0][1]
        ref = f"heads/{self._branch}"
        try:
            tip_sha = await store.get_ref(ref)
            tip = await store.get_commit(tip_sha)

            if any(entry.exclusive for entry, _, _ in waiters):
                waiters = await self._reject_existing(store, tip.tree_sha, waiters)
                if not waiters:
                    return

            entries = [entry for entry, _, _ in waiters]
            tree_sha = await store.create_tree(tip.tree_sha, _latest_per_path(entries))
            commit_sha = await store.create_commit(
                build_commit_message(entries), tree_sha, [tip_sha]
            )
            # No other writer can advance this branch while the batch holds it
            await store.update_ref(ref, commit_sha, force=True)
        except Exception as e:
            logger.error(
                format_error_log(
                    "HUBFS-BATCH-001",
                    "Batch commit failed",
                    branch=self._branch,
                    files=len(waiters),
                    error=type(e).__name__,
                ),
                extra=get_log_extra("HUBFS-BATCH-001", branch=self._branch),
            )
            for _, _, future in waiters:
                if not future.done():
                    future.set_exception(e)
            return

        logger.info(
            f"Committed {len(waiters)} file(s) to {self._branch} as {commit_sha[:7]}"
        )
        for _, _, future in waiters:
            if not future.done():
                future.set_result(commit_sha)

    async def _reject_existing(
        self, store: ObjectStoreClient, tree_sha: str, waiters: List[_Waiter]
    ) -> List[_Waiter]:
        """Fail create-only entries whose path already exists; return the rest."""
        existing = {
            entry.path
            for entry in await store.get_tree(tree_sha, recursive=True)
            if entry.type == "blob"
        }
        remaining = []
        for waiter in waiters:
            entry, _, future = waiter
            if entry.exclusive and entry.path in existing:
                future.set_exception(
                    HubfsFileExistsError(entry.path, operation="batch commit")
                )
            else:
                remaining.append(waiter)
        return remaining


def _latest_per_path(entries: List[TreeEntry]) -> List[TreeEntry]:
    latest: Dict[str, TreeEntry] = {}
    for entry in entries:
        latest[entry.path] = entry
    return list(latest.values())
