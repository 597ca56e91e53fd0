"""Configuration management for pyreposync.

Settings are stored as JSON in ``~/.config/pyreposync/config.json``. The API
key and URL can be overridden with the ``REPOSYNC_API_KEY`` and
``REPOSYNC_API_URL`` environment variables.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError
from .models import RepositoryConfig

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.reposync.dev/v1"
CONFIG_FILE_NAME = "config.json"


class Config:
    """Persistent key-value configuration.

    Tracks the API credentials, the known repositories (id mapped to
    friendly name, organization and local folder) and one active repository.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ``$PYREPOSYNC_CONFIG_DIR`` or ``~/.config/pyreposync``
        """
        if config_dir is None:
            env_dir = os.environ.get("PYREPOSYNC_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "pyreposync"
            )
        self.config_dir = config_dir

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / CONFIG_FILE_NAME

    def _load(self) -> dict[str, Any]:
        config_path = self.get_config_path()
        if not config_path.exists():
            return {}
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config file {config_path}: expected object")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        config_path = self.get_config_path()
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            # Restrict permissions since the file holds the API key
            config_path.chmod(0o600)
        except OSError as e:
            raise ConfigError(f"Cannot write config file {config_path}: {e}") from e
        logger.debug(f"Saved config to {config_path}")

    # =========================
    # Credentials
    # =========================

    @property
    def api_key(self) -> Optional[str]:
        return os.environ.get("REPOSYNC_API_KEY") or self._load().get("api_key")

    @property
    def api_url(self) -> str:
        return (
            os.environ.get("REPOSYNC_API_URL")
            or self._load().get("api_url")
            or DEFAULT_API_URL
        )

    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key)

    def save_api_key(self, api_key: str) -> None:
        data = self._load()
        data["api_key"] = api_key
        self._save(data)

    # =========================
    # Repositories
    # =========================

    def get_repositories(self) -> dict[str, RepositoryConfig]:
        """Return all configured repositories keyed by id."""
        repositories = self._load().get("repositories", {})
        return {
            repo_id: RepositoryConfig.from_dict(entry)
            for repo_id, entry in repositories.items()
        }

    def get_repository(self, repo_id: str) -> Optional[RepositoryConfig]:
        return self.get_repositories().get(repo_id)

    def save_repository(self, repo_id: str, repository: RepositoryConfig) -> None:
        data = self._load()
        data.setdefault("repositories", {})[repo_id] = repository.to_dict()
        self._save(data)

    def remove_repository(self, repo_id: str) -> bool:
        """Remove a repository.

        Returns:
            True if the repository existed
        """
        data = self._load()
        repositories = data.get("repositories", {})
        if repo_id not in repositories:
            return False
        del repositories[repo_id]
        if data.get("active_repository") == repo_id:
            data["active_repository"] = None
        self._save(data)
        return True

    def get_active_repository(self) -> Optional[str]:
        return self._load().get("active_repository")

    def set_active_repository(self, repo_id: Optional[str]) -> None:
        data = self._load()
        if repo_id is not None and repo_id not in data.get("repositories", {}):
            raise ConfigError(f"Unknown repository: {repo_id}")
        data["active_repository"] = repo_id
        self._save(data)


config = Config()
