"""
Hubfs: file-like read/write access to a branch of a GitHub repository.

The GitHub API has no "overwrite this path" primitive and rejects branch
updates computed from a stale tip. Hubfs writes through the contents API when
a branch is idle and, under contention, batches writes into commits built
from blobs and trees, serializing every ref update per branch. Reads fall back
to the blob API for files above the contents API size ceiling.

Example:
    config = HubfsConfig(owner="octocat", repo="notes", token=token)
    async with Hubfs(config) as fs:
        await fs.write_file("/hello.txt", "Hello GitHub")
        text = await fs.read_file("hello.txt", encoding="utf8")
"""

import asyncio
import logging
from typing import Optional, Union

from .api_clients.base import ObjectStoreClient
from .api_clients.github_client import GitHubObjectStore
from .exceptions import HubfsConfigError, ObjectStoreError, translate_store_error
from .models import PendingWrite, RepositoryHandle
from .services.blob_converter import BlobConverter
from .services.fast_path import FastPathReader, FastPathWriter
from .services.sha_resolver import ShaResolver
from .services.write_coordinator import (
    WriteCoordinator,
    WriteCoordinatorRegistry,
    default_registry,
)
from .utils.config_manager import HubfsConfig, HubfsConfigManager, validate_config
from .utils.encoding import from_bytes, to_bytes

logger = logging.getLogger(__name__)

WRITE_FLAGS = ("w", "wx")


class Hubfs:
    """
    Read and write files on a GitHub repository.

    Writes from handles that share a WriteCoordinatorRegistry are serialized
    together per branch. By default every handle on the running event loop
    shares one registry, keyed by API base URL, owner and repository; pass a
    fresh WriteCoordinatorRegistry to opt out. Each write still goes through
    the client of the handle that issued it.
    """

    def __init__(
        self,
        config: HubfsConfig,
        store: Optional[ObjectStoreClient] = None,
        registry: Optional[WriteCoordinatorRegistry] = None,
    ):
        """
        Initialize a repository handle.

        Args:
            config: Repository coordinates, credential and pipeline tuning
            store: Object store client (defaults to a GitHubObjectStore)
            registry: Coordinator registry (default: the registry shared by
                every handle on the running event loop)

        Raises:
            HubfsConfigError: If owner, repo or token is missing or a
                setting is out of range
        """
        validate_config(config)
        self._config = config
        self._handle: RepositoryHandle = config.handle()
        self._owns_store = store is None
        self._store: ObjectStoreClient = store or GitHubObjectStore(
            self._handle, base_url=config.base_url, timeout=config.api_timeout
        )
        self._registry = registry
        self._coordinator_key = (config.base_url.rstrip("/"),) + self._handle.key
        self._resolver = ShaResolver(self._store)
        self._reader = FastPathReader(self._store, self._resolver)
        self._writer = FastPathWriter(self._store, self._resolver)
        self._default_branch: Optional[str] = config.default_branch
        self._default_branch_lock = asyncio.Lock()

    @classmethod
    def for_repo(cls, owner: str, repo: str, token: str, **settings) -> "Hubfs":
        """Build a handle from repository coordinates plus HubfsConfig keyword settings."""
        return cls(HubfsConfig(owner=owner, repo=repo, token=token, **settings))

    @classmethod
    def from_environment(cls, config_dir_path: Optional[str] = None) -> "Hubfs":
        """Build a handle from the config file and HUBFS_* environment variables."""
        return cls(HubfsConfigManager(config_dir_path).load_or_default())

    def _create_coordinator(self) -> WriteCoordinator:
        return WriteCoordinator(
            BlobConverter(max_concurrency=self._config.blob_concurrency),
            settle_delay=self._config.settle_delay,
            batch_size=self._config.batch_size,
            batch_window=self._config.batch_window,
        )

    @property
    def config(self) -> HubfsConfig:
        return self._config

    @property
    def handle(self) -> RepositoryHandle:
        return self._handle

    @property
    def registry(self) -> WriteCoordinatorRegistry:
        """Registry this handle writes through; the default needs a running event loop."""
        if self._registry is None:
            return default_registry()
        return self._registry

    @property
    def coordinator(self) -> WriteCoordinator:
        return self.registry.get_or_create(self._coordinator_key, self._create_coordinator)

    async def __aenter__(self) -> "Hubfs":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_store:
            await self._store.aclose()

    async def write_file(
        self,
        path: str,
        data: Union[str, bytes],
        encoding: str = "utf8",
        flag: str = "w",
        message: Optional[str] = None,
        branch: Optional[str] = None,
        queued: bool = False,
    ) -> None:
        """
        Write ``data`` to ``path``, replacing the file if it already exists.

        The path is always taken from the repository root, with or without a
        leading slash.

        Args:
            path: File path in the repository
            data: Text or bytes; ``encoding`` is ignored for bytes
            encoding: Encoding used to turn text into bytes
            flag: "w" overwrites, "wx" fails if the path exists
            message: Commit message (default "Update/create <path>")
            branch: Target branch (default the repository's default branch)
            queued: Send the write through the batched pipeline even when
                the branch is idle

        Raises:
            HubfsConfigError: Invalid path, flag or data
            InvalidRepositoryError: Repository or branch missing/inaccessible
            HubfsFileExistsError: flag="wx" and the path exists
            ObjectStoreError: Any other remote failure
        """
        path = normalize_path(path)
        if flag not in WRITE_FLAGS:
            raise HubfsConfigError(f"Unsupported write flag: {flag!r}")
        content = to_bytes(data, encoding)

        branch = branch or await self.default_branch()
        request = PendingWrite(
            path=path,
            content=content,
            message=message or f"Update/create {path}",
            branch=branch,
            exclusive=flag == "wx",
        )
        await self.coordinator.submit(request, self._writer, queued=queued)

    async def read_file(
        self,
        path: str,
        encoding: Optional[str] = None,
        ref: Optional[str] = None,
    ) -> Union[bytes, str]:
        """
        Read ``path`` from the repository.

        Args:
            path: File path in the repository
            encoding: Decode the content with this encoding (default: bytes)
            ref: Branch, tag or commit sha (default the repository's default branch)

        Raises:
            HubfsFileNotFoundError: The path does not exist at ``ref``
            InvalidRepositoryError: Repository missing/inaccessible
            ObjectStoreError: Any other remote failure
        """
        path = normalize_path(path)
        ref = ref or await self.default_branch()
        content = await self._reader.read(path, ref)
        if encoding is None:
            return content
        return from_bytes(content, encoding)

    async def default_branch(self) -> str:
        """Configured default branch, or the repository's own (looked up once)."""
        if self._default_branch is not None:
            return self._default_branch
        async with self._default_branch_lock:
            if self._default_branch is None:
                try:
                    self._default_branch = await self._store.get_default_branch()
                except ObjectStoreError as e:
                    raise translate_store_error(e)
                logger.debug(
                    f"Default branch of {self._handle.full_name} is {self._default_branch}"
                )
        return self._default_branch


def normalize_path(path: str) -> str:
    """Strip leading slashes so paths are always relative to the repository root."""
    if not isinstance(path, str):
        raise HubfsConfigError("Must provide a valid filename")
    normalized = path.lstrip("/")
    if not normalized:
        raise HubfsConfigError("Must provide a valid filename")
    return normalized
