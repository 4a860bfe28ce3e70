"""
Configuration Management for hubfs.

Handles configuration creation, validation, environment variable overrides,
and persistence of the hubfs configuration file.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from ..api_clients.github_client import DEFAULT_BASE_URL
from ..exceptions import HubfsConfigError
from ..logging_utils import sanitize_for_logging
from ..models import RepositoryHandle

logger = logging.getLogger(__name__)


@dataclass
class HubfsConfig:
    """
    Settings for one hubfs repository handle.

    Timing values are in seconds.
    """

    owner: str = ""
    repo: str = ""
    token: str = ""
    base_url: str = DEFAULT_BASE_URL
    # None means "ask the remote for the repository's default branch"
    default_branch: Optional[str] = None
    api_timeout: float = 30.0

    # Grace period after a contents API write before the branch tip is re-readable
    settle_delay: float = 0.5
    batch_size: int = 10
    batch_window: float = 0.05
    blob_concurrency: int = 50

    log_level: str = "INFO"

    def handle(self) -> RepositoryHandle:
        return RepositoryHandle(owner=self.owner, repo=self.repo, token=self.token)


class HubfsConfigManager:
    """
    Manages hubfs configuration.

    Handles configuration creation, validation, file persistence and
    environment variable overrides.
    """

    def __init__(self, config_dir_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_dir_path: Path to config directory (defaults to HUBFS_CONFIG_DIR env var or ~/.hubfs)
        """
        if config_dir_path:
            self.config_dir = Path(config_dir_path)
        else:
            default_dir = os.environ.get(
                "HUBFS_CONFIG_DIR", str(Path.home() / ".hubfs")
            )
            self.config_dir = Path(default_dir)

        self.config_file_path = self.config_dir / "config.json"

    def create_default_config(self) -> HubfsConfig:
        return HubfsConfig()

    def save_config(self, config: HubfsConfig) -> None:
        """
        Save configuration to file.

        Args:
            config: HubfsConfig object to save
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file_path, "w") as f:
            json.dump(asdict(config), f, indent=2)

    def load_config(self) -> Optional[HubfsConfig]:
        """
        Load configuration from file.

        Returns:
            HubfsConfig if file exists and is valid, None otherwise

        Raises:
            ValueError: If configuration file is malformed
        """
        if not self.config_file_path.exists():
            return None

        try:
            with open(self.config_file_path, "r") as f:
                config_dict = json.load(f)

            config = HubfsConfig(**config_dict)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse configuration file: {e}")
        except TypeError as e:
            raise ValueError(f"Invalid configuration format: {e}")

        logger.debug(
            f"Loaded hubfs configuration from {self.config_file_path}: "
            f"{sanitize_for_logging(asdict(config))}"
        )
        return config

    def load_or_default(self) -> HubfsConfig:
        """Load the config file (or defaults) with environment overrides applied."""
        config = self.load_config() or self.create_default_config()
        return self.apply_env_overrides(config)

    def apply_env_overrides(self, config: HubfsConfig) -> HubfsConfig:
        """
        Apply environment variable overrides to configuration.

        Supported environment variables:
        - HUBFS_OWNER / HUBFS_REPO: Repository coordinates
        - HUBFS_GITHUB_TOKEN (or GITHUB_TOKEN): API token
        - HUBFS_BASE_URL: API base URL (GitHub Enterprise)
        - HUBFS_DEFAULT_BRANCH: Branch used when none is given
        - HUBFS_SETTLE_DELAY, HUBFS_BATCH_SIZE, HUBFS_BATCH_WINDOW,
          HUBFS_BLOB_CONCURRENCY: Write pipeline tuning
        - HUBFS_LOG_LEVEL: Log level

        Args:
            config: Base configuration to apply overrides to

        Returns:
            Updated configuration with environment overrides
        """
        if owner_env := os.environ.get("HUBFS_OWNER"):
            config.owner = owner_env

        if repo_env := os.environ.get("HUBFS_REPO"):
            config.repo = repo_env

        if token_env := (
            os.environ.get("HUBFS_GITHUB_TOKEN") or os.environ.get("GITHUB_TOKEN")
        ):
            config.token = token_env

        if base_url_env := os.environ.get("HUBFS_BASE_URL"):
            config.base_url = base_url_env.rstrip("/")

        if branch_env := os.environ.get("HUBFS_DEFAULT_BRANCH"):
            config.default_branch = branch_env

        if settle_env := os.environ.get("HUBFS_SETTLE_DELAY"):
            try:
                config.settle_delay = float(settle_env)
            except ValueError:
                logging.warning(
                    f"Invalid HUBFS_SETTLE_DELAY environment variable value '{settle_env}'. Using default {config.settle_delay} seconds"
                )

        if batch_size_env := os.environ.get("HUBFS_BATCH_SIZE"):
            try:
                config.batch_size = int(batch_size_env)
            except ValueError:
                logging.warning(
                    f"Invalid HUBFS_BATCH_SIZE environment variable value '{batch_size_env}'. Using default {config.batch_size}"
                )

        if batch_window_env := os.environ.get("HUBFS_BATCH_WINDOW"):
            try:
                config.batch_window = float(batch_window_env)
            except ValueError:
                logging.warning(
                    f"Invalid HUBFS_BATCH_WINDOW environment variable value '{batch_window_env}'. Using default {config.batch_window} seconds"
                )

        if concurrency_env := os.environ.get("HUBFS_BLOB_CONCURRENCY"):
            try:
                config.blob_concurrency = int(concurrency_env)
            except ValueError:
                logging.warning(
                    f"Invalid HUBFS_BLOB_CONCURRENCY environment variable value '{concurrency_env}'. Using default {config.blob_concurrency}"
                )

        if log_level_env := os.environ.get("HUBFS_LOG_LEVEL"):
            config.log_level = log_level_env.upper()

        return config

    def validate_config(self, config: HubfsConfig) -> None:
        validate_config(config)


def validate_config(config: HubfsConfig) -> None:
    """
    Validate configuration settings.

    Raises:
        HubfsConfigError: If any configuration value is invalid
    """
    missing = [
        name for name in ("owner", "repo", "token") if not getattr(config, name)
    ]
    if missing:
        raise HubfsConfigError(
            f"Missing required configuration: {', '.join(missing)}"
        )

    if not config.base_url.startswith(("http://", "https://")):
        raise HubfsConfigError(
            f"base_url must be an http(s) URL, got {config.base_url}"
        )

    if config.api_timeout <= 0:
        raise HubfsConfigError(
            f"api_timeout must be greater than 0, got {config.api_timeout}"
        )

    if config.settle_delay < 0:
        raise HubfsConfigError(
            f"settle_delay must not be negative, got {config.settle_delay}"
        )

    if config.batch_size < 1:
        raise HubfsConfigError(
            f"batch_size must be greater than 0, got {config.batch_size}"
        )

    if config.batch_window < 0:
        raise HubfsConfigError(
            f"batch_window must not be negative, got {config.batch_window}"
        )

    if config.blob_concurrency < 1:
        raise HubfsConfigError(
            f"blob_concurrency must be greater than 0, got {config.blob_concurrency}"
        )

    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if config.log_level.upper() not in valid_log_levels:
        raise HubfsConfigError(
            f"Log level must be one of {valid_log_levels}, got {config.log_level}"
        )
