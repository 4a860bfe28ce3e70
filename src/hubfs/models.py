"""
Data model for the hubfs write/read pipeline.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Regular (non-executable) file mode used for every tree entry hubfs writes
FILE_MODE = "100644"


@dataclass(frozen=True)
class RepositoryHandle:
    """Identifies one remote repository and the credential used to reach it."""

    owner: str
    repo: str
    token: str

    @property
    def key(self) -> Tuple[str, str]:
        return (self.owner, self.repo)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class PendingWrite:
    """A write request as it enters the coordinator."""

    path: str
    content: bytes
    message: str
    branch: str
    exclusive: bool = False


@dataclass
class TreeEntry:
    """A path -> blob sha mapping, either pending commit or listed from a tree."""

    path: str
    sha: str
    mode: str = FILE_MODE
    type: str = "blob"
    message: str = ""
    exclusive: bool = False

    def to_tree_item(self) -> dict:
        """Shape expected by the create-tree endpoint."""
        return {
            "path": self.path,
            "mode": self.mode,
            "type": self.type,
            "sha": self.sha,
        }


@dataclass
class CommitInfo:
    sha: str
    tree_sha: str


@dataclass
class ContentsInfo:
    """Result of a contents API lookup."""

    path: str
    sha: str
    content: bytes = b""
    size: int = 0


@dataclass
class BranchWriteStatus:
    """
    Write state of one branch.

    writing: a fast-path write is in flight (or still inside its settle delay)
    queueing: batched writes exist that have not finished committing
    next: single-slot resume signal for batched work held back by a fast write
    pending: number of batched writes submitted and not yet finished
    """

    writing: bool = False
    queueing: bool = False
    next: Optional[asyncio.Event] = None
    pending: int = 0

    def register_resume(self) -> asyncio.Event:
        """Install the resume signal; only one may be pending at a time."""
        if self.next is not None:
            raise RuntimeError("A resume action is already registered")
        self.next = asyncio.Event()
        return self.next

    def resume(self) -> bool:
        """Fire and clear the pending resume signal, if any."""
        event = self.next
        if event is None:
            return False
        self.next = None
        event.set()
        return True

    async def wait_for_resume(self) -> None:
        event = self.next
        if event is not None:
            await event.wait()

    def begin_queued(self) -> None:
        self.queueing = True
        self.pending += 1

    def end_queued(self) -> None:
        self.pending -= 1
        if self.pending <= 0:
            self.pending = 0
            self.queueing = False
