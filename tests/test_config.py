"""Tests for configuration management."""

import json
import stat

import pytest

from pyreposync.config import DEFAULT_API_URL, Config
from pyreposync.exceptions import ConfigError
from pyreposync.models import RepositoryConfig


@pytest.fixture
def cfg(tmp_path, monkeypatch):
    monkeypatch.delenv("REPOSYNC_API_KEY", raising=False)
    monkeypatch.delenv("REPOSYNC_API_URL", raising=False)
    return Config(config_dir=tmp_path / "cfg")


class TestCredentials:
    """Tests for API key and URL handling."""

    def test_unconfigured(self, cfg):
        assert cfg.api_key is None
        assert cfg.api_url == DEFAULT_API_URL
        assert not cfg.is_configured()

    def test_save_api_key(self, cfg):
        cfg.save_api_key("secret")

        assert cfg.api_key == "secret"
        assert cfg.is_configured()
        data = json.loads(cfg.get_config_path().read_text())
        assert data["api_key"] == "secret"

    def test_config_file_is_private(self, cfg):
        cfg.save_api_key("secret")
        mode = stat.S_IMODE(cfg.get_config_path().stat().st_mode)
        assert mode == 0o600

    def test_env_overrides_file(self, cfg, monkeypatch):
        cfg.save_api_key("from-file")
        monkeypatch.setenv("REPOSYNC_API_KEY", "from-env")
        monkeypatch.setenv("REPOSYNC_API_URL", "https://env.api/v1")

        assert cfg.api_key == "from-env"
        assert cfg.api_url == "https://env.api/v1"

    def test_config_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PYREPOSYNC_CONFIG_DIR", str(tmp_path / "elsewhere"))
        assert Config().get_config_path() == tmp_path / "elsewhere" / "config.json"

    def test_malformed_file(self, cfg):
        cfg.config_dir.mkdir()
        cfg.get_config_path().write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid config file"):
            cfg.api_key  # noqa: B018

    def test_non_object_file(self, cfg):
        cfg.config_dir.mkdir()
        cfg.get_config_path().write_text("[1, 2]")
        with pytest.raises(ConfigError, match="expected object"):
            cfg.get_repositories()


class TestRepositories:
    """Tests for stored repositories."""

    def test_save_and_get(self, cfg):
        repo = RepositoryConfig("Docs", organization="acme", folder_path="/w/docs")
        cfg.save_repository("repo-1", repo)

        assert cfg.get_repository("repo-1") == repo
        assert cfg.get_repository("missing") is None
        stored = json.loads(cfg.get_config_path().read_text())
        assert stored["repositories"]["repo-1"] == {
            "friendlyName": "Docs",
            "organization": "acme",
            "folderPath": "/w/docs",
        }

    def test_save_keeps_api_key(self, cfg):
        cfg.save_api_key("secret")
        cfg.save_repository("repo-1", RepositoryConfig("Docs"))
        assert cfg.api_key == "secret"

    def test_active_repository(self, cfg):
        cfg.save_repository("repo-1", RepositoryConfig("Docs"))
        assert cfg.get_active_repository() is None

        cfg.set_active_repository("repo-1")
        assert cfg.get_active_repository() == "repo-1"

    def test_active_repository_must_exist(self, cfg):
        with pytest.raises(ConfigError, match="Unknown repository"):
            cfg.set_active_repository("nope")

    def test_remove_repository_clears_active(self, cfg):
        cfg.save_repository("repo-1", RepositoryConfig("Docs"))
        cfg.set_active_repository("repo-1")

        assert cfg.remove_repository("repo-1") is True
        assert cfg.get_repositories() == {}
        assert cfg.get_active_repository() is None
        assert cfg.remove_repository("repo-1") is False
