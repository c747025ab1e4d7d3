"""Index update and catalog loading.

The update pass fetches every enabled repository's index in priority order.
The catalog is read from the cache when possible; otherwise the local index
files are parsed, merged and the result cached again.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..config import Repository, Settings
from ..errors import CatalogError, UpdateCancelled, UpdateError
from ..models import Catalog, ParsedIndex
from ..urls import index_url
from .cache import CatalogCache
from .fetcher import FetchResource, IndexFetcher
from .merger import merge_indexes
from .parser import parse_index

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Outcome of an update pass."""
    updated: List[str] = field(default_factory=list)
    not_modified: List[str] = field(default_factory=list)

    @property
    def any_updated(self) -> bool:
        return bool(self.updated)


@dataclass
class UpdateStatus:
    """Last successful update pass, persisted next to the cache."""
    last_update_ts: Optional[str] = None
    updated_repo_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "last_update_ts": self.last_update_ts,
            "updated_repo_ids": self.updated_repo_ids,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UpdateStatus":
        return cls(
            last_update_ts=data.get("last_update_ts"),
            updated_repo_ids=data.get("updated_repo_ids", []),
        )


def _status_path(settings: Settings) -> Path:
    return settings.cache_root / "update-status.json"


def get_update_status(settings: Settings) -> UpdateStatus:
    path = _status_path(settings)
    if not path.exists():
        return UpdateStatus()
    try:
        return UpdateStatus.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, AttributeError) as e:
        logger.warning("Ignoring unreadable update status %s: %s", path, e)
        return UpdateStatus()


def _save_update_status(settings: Settings, result: UpdateResult) -> None:
    path = _status_path(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    status = UpdateStatus(
        last_update_ts=datetime.now(timezone.utc).isoformat(),
        updated_repo_ids=result.updated,
    )
    path.write_text(json.dumps(status.to_dict(), indent=2), encoding="utf-8")


def index_resource(settings: Settings, repo: Repository) -> FetchResource:
    return FetchResource(url=index_url(repo.url), local_path=settings.index_path(repo.id))


def update_indexes(
    settings: Settings,
    fetcher: Optional[IndexFetcher] = None,
    cache: Optional[CatalogCache] = None,
    cancel: Optional[threading.Event] = None,
) -> UpdateResult:
    """Fetch the index of every enabled repository.

    Any failure aborts the pass with an UpdateError naming the repository.
    The catalog cache is invalidated when at least one index changed, even
    if the pass is aborted afterwards; when nothing changed it is left alone.

    Raises:
        UpdateError: a repository could not be fetched or its index is not
            parseable.
        UpdateCancelled: ``cancel`` was set; checked before each repository.
    """
    fetcher = fetcher or IndexFetcher(timeout_s=settings.timeout_s)
    cache = cache or CatalogCache(settings.catalog_cache_path)
    result = UpdateResult()

    try:
        for repo in settings.enabled_repos():
            if cancel is not None and cancel.is_set():
                raise UpdateCancelled(completed=result.updated + result.not_modified)
            resource = index_resource(settings, repo)
            try:
                outcome = fetcher.fetch_or_raise(resource, cancel=cancel)
            except UpdateCancelled:
                raise UpdateCancelled(completed=result.updated + result.not_modified)
            except CatalogError as e:
                raise UpdateError(repo.id, e) from e

            if outcome.updated:
                # Reject a corrupt mirror now rather than on the next read
                try:
                    parse_index(resource.local_path, repo_url=repo.url)
                except (CatalogError, OSError) as e:
                    result.updated.append(repo.id)
                    # Without its ETag the next pass downloads the index again
                    resource.etag_path.unlink(missing_ok=True)
                    raise UpdateError(repo.id, e) from e
                result.updated.append(repo.id)
            else:
                result.not_modified.append(repo.id)
    finally:
        if result.any_updated:
            cache.invalidate()

    try:
        _save_update_status(settings, result)
    except OSError as e:
        logger.warning("Could not record update status: %s", e)
    logger.info("Update done: %d updated, %d not modified", len(result.updated), len(result.not_modified))
    return result


def load_repo_index(settings: Settings, repo: Repository) -> ParsedIndex:
    path = settings.index_path(repo.id)
    if not path.exists():
        raise UpdateError(repo.id, CatalogError("index does not exist; try 'apkcat update'"))
    try:
        return parse_index(path, repo_url=repo.url)
    except (CatalogError, OSError) as e:
        raise UpdateError(repo.id, e) from e


def load_catalog(settings: Settings, cache: Optional[CatalogCache] = None) -> Catalog:
    """Return the merged catalog, from cache when valid.

    Raises:
        UpdateError: an enabled repository's index is missing or unreadable.
    """
    cache = cache or CatalogCache(settings.catalog_cache_path, sources=settings.enabled_sources())
    catalog = cache.load()
    if catalog is not None:
        return catalog

    logger.info("Rebuilding catalog from %d repositories", len(settings.enabled_repos()))
    parsed = [load_repo_index(settings, repo) for repo in settings.enabled_repos()]
    catalog = merge_indexes(parsed)
    try:
        cache.store(catalog)
    except OSError as e:
        logger.warning("Could not store catalog cache: %s", e)
    return catalog


def clean(settings: Settings, index: bool = True, cache: bool = True) -> List[Path]:
    """Remove downloaded data.

    ``index`` removes the catalog cache, index containers and ETag sidecars;
    ``cache`` removes downloaded packages. Returns the removed paths.
    """
    removed: List[Path] = []
    if index:
        cache_path = settings.catalog_cache_path
        if CatalogCache(cache_path).invalidate():
            removed.append(cache_path)
        if settings.index_dir.exists():
            for pattern in ("*.jar", "*.jar-etag"):
                for path in sorted(settings.index_dir.glob(pattern)):
                    path.unlink(missing_ok=True)
                    removed.append(path)
    if cache:
        apks_dir = settings.apks_dir
        if apks_dir.exists():
            for path in sorted(apks_dir.iterdir()):
                if path.is_file():
                    path.unlink(missing_ok=True)
                    removed.append(path)
    return removed
