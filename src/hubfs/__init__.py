"""hubfs: read and write files on a GitHub repository branch."""

from .exceptions import (
    ErrorKind,
    HubfsConfigError,
    HubfsError,
    HubfsFileExistsError,
    HubfsFileNotFoundError,
    InvalidRepositoryError,
    ObjectStoreError,
)
from .filesystem import Hubfs
from .services.write_coordinator import WriteCoordinatorRegistry
from .utils.config_manager import HubfsConfig, HubfsConfigManager

__version__ = "1.0.0"

__all__ = [
    "ErrorKind",
    "Hubfs",
    "HubfsConfig",
    "HubfsConfigError",
    "HubfsConfigManager",
    "HubfsError",
    "HubfsFileExistsError",
    "HubfsFileNotFoundError",
    "InvalidRepositoryError",
    "ObjectStoreError",
    "WriteCoordinatorRegistry",
]
