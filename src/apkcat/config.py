from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import ConfigError
from .urls import normalize_repo_url

APP = "apkcat"

logger = logging.getLogger(__name__)


def _xdg_dir(env_var: str, fallback: Path, windows_var: str = "APPDATA") -> Path:
    if os.name == "nt":
        base = os.environ.get(windows_var) or str(Path.home())
        return Path(base) / APP
    return Path(os.environ.get(env_var, str(fallback))) / APP


def config_dir() -> Path:
    """
    Cross-platform config directory:
      - Windows: %APPDATA%\\apkcat
      - macOS/Linux: $XDG_CONFIG_HOME/apkcat or ~/.config/apkcat
    """
    return _xdg_dir("XDG_CONFIG_HOME", Path.home() / ".config")


def data_dir() -> Path:
    """Directory for downloaded index containers and their ETag sidecars."""
    return _xdg_dir("XDG_DATA_HOME", Path.home() / ".local" / "share", "LOCALAPPDATA")


def cache_dir() -> Path:
    """Directory for the catalog cache and downloaded packages."""
    return _xdg_dir("XDG_CACHE_HOME", Path.home() / ".cache", "LOCALAPPDATA")


def config_path() -> Path:
    return config_dir() / "config.json"


@dataclass
class Repository:
    """A configured repository. Priority is its position in Settings.repos."""
    id: str
    url: str
    enabled: bool = True

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: dict) -> "Repository":
        return cls(
            id=str(data["id"]),
            url=normalize_repo_url(str(data["url"])),
            enabled=bool(data.get("enabled", True)),
        )


def default_repos() -> List[Repository]:
    return [
        Repository(id="f-droid", url="https://f-droid.org/repo", enabled=True),
        Repository(id="f-droid-archive", url="https://f-droid.org/archive", enabled=False),
    ]


@dataclass
class Settings:
    repos: List[Repository] = field(default_factory=default_repos)
    timeout_s: float = 60.0
    # Directory overrides; empty means the platform default
    data_dir: str = ""
    cache_dir: str = ""

    @staticmethod
    def load(path: Optional[Path] = None) -> "Settings":
        path = path or config_path()

        data: dict = {}

        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable config %s: %s", path, e)
                data = {}

        s = Settings(
            timeout_s=float(data.get("timeout_s", Settings.timeout_s)),
            data_dir=str(data.get("data_dir", "")),
            cache_dir=str(data.get("cache_dir", "")),
        )
        if "repos" in data:
            s.repos = [Repository.from_dict(r) for r in data["repos"]]

        # Environment overrides (highest priority)
        if os.environ.get("APKCAT_TIMEOUT"):
            s.timeout_s = float(os.environ["APKCAT_TIMEOUT"])
        s.data_dir = os.environ.get("APKCAT_DATA_DIR", s.data_dir)
        s.cache_dir = os.environ.get("APKCAT_CACHE_DIR", s.cache_dir)

        return s

    def save(self, path: Optional[Path] = None) -> Path:
        path = path or config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "repos": [r.to_dict() for r in self.repos],
            "timeout_s": self.timeout_s,
            "data_dir": self.data_dir,
            "cache_dir": self.cache_dir,
        }
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    # --- Paths ---

    @property
    def index_dir(self) -> Path:
        return Path(self.data_dir) if self.data_dir else data_dir()

    @property
    def cache_root(self) -> Path:
        return Path(self.cache_dir) if self.cache_dir else cache_dir()

    def index_path(self, repo_id: str) -> Path:
        """Local path of a repository's downloaded index container."""
        return self.index_dir / f"{repo_id}.jar"

    @property
    def catalog_cache_path(self) -> Path:
        return self.cache_root / "catalog-cache.json"

    @property
    def apks_dir(self) -> Path:
        return self.cache_root / "apks"

    # --- Repositories ---

    def enabled_repos(self) -> List[Repository]:
        """Enabled repositories in priority order."""
        return [r for r in self.repos if r.enabled]

    def enabled_sources(self) -> List[Tuple[str, str]]:
        """(id, url) of enabled repositories, in priority order."""
        return [(r.id, r.url) for r in self.enabled_repos()]

    def _repo_index(self, repo_id: str) -> int:
        for i, repo in enumerate(self.repos):
            if repo.id == repo_id:
                return i
        return -1

    def get_repo(self, repo_id: str) -> Repository:
        i = self._repo_index(repo_id)
        if i == -1:
            raise ConfigError(f'A repo with the name "{repo_id}" could not be found')
        return self.repos[i]

    def add_repo(self, repo_id: str, url: str) -> Repository:
        if self._repo_index(repo_id) != -1:
            raise ConfigError(f'A repo with the same name "{repo_id}" exists already')
        repo = Repository(id=repo_id, url=normalize_repo_url(url), enabled=True)
        self.repos.append(repo)
        return repo

    def remove_repo(self, repo_id: str) -> Repository:
        repo = self.get_repo(repo_id)
        self.repos.remove(repo)
        return repo

    def enable_repo(self, repo_id: str) -> None:
        self.get_repo(repo_id).enabled = True

    def disable_repo(self, repo_id: str) -> None:
        self.get_repo(repo_id).enabled = False
