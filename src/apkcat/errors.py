"""Error types raised by the catalog pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class CatalogError(Exception):
    """Base error for catalog operations."""
    pass


class ConfigError(CatalogError):
    """Invalid repository configuration request."""
    pass


class NetworkError(CatalogError):
    """Transport-level failure reaching a repository."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot reach {url}: {reason}")


class HTTPStatusError(CatalogError):
    """Server rejected the request."""

    def __init__(self, url: str, status_code: int, reason: str = ""):
        self.url = url
        self.status_code = status_code
        detail = f"{status_code} {reason}".strip()
        super().__init__(f"Download of {url} failed: {detail}")


class IntegrityError(CatalogError):
    """Downloaded content does not match its expected checksum."""

    def __init__(self, path: str, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"sha256 mismatch for {path}: expected {expected}, got {actual}")


class StorageError(CatalogError):
    """A local file could not be written or moved into place."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write {path}: {reason}")


class FormatErrorKind(str, Enum):
    NO_INDEX_ENTRY = "no-index-entry"
    MALFORMED_DOCUMENT = "malformed-document"


class FormatError(CatalogError):
    """Container is missing its index entry or the entry cannot be decoded."""

    def __init__(self, kind: FormatErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        if kind == FormatErrorKind.NO_INDEX_ENTRY:
            msg = "No index entry found in container"
        else:
            msg = "Malformed index document"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class CacheSchemaMismatch(CatalogError):
    """Cached envelope was written by a different schema version."""

    def __init__(self, found: object, expected: int):
        self.found = found
        self.expected = expected
        super().__init__(f"Cache schema {found!r} does not match {expected}")


class CacheSourcesChanged(CatalogError):
    """Cached catalog was merged from a different set of repositories."""

    def __init__(self):
        super().__init__("Enabled repositories changed since the cache was built")


class NoCompatibleVariant(CatalogError):
    """No variant of an app can run on the target device."""

    def __init__(self, package_name: str):
        self.package_name = package_name
        super().__init__(f"No suitable package found for {package_name}")


class AppNotFound(CatalogError):
    def __init__(self, package_name: str):
        self.package_name = package_name
        super().__init__(f"Could not find app with ID '{package_name}'")


class VersionNotFound(CatalogError):
    def __init__(self, package_name: str, version_code: int):
        self.package_name = package_name
        self.version_code = version_code
        super().__init__(f"Could not find version {version_code} for app with ID '{package_name}'")


class UpdateError(CatalogError):
    """An update pass failed for one repository.

    Carries the repository id and the underlying cause so callers can tell
    network, integrity and format problems apart.
    """

    def __init__(self, repo_id: str, cause: Exception):
        self.repo_id = repo_id
        self.cause = cause
        super().__init__(f"Could not update repository '{repo_id}': {cause}")

    @property
    def kind(self) -> str:
        if isinstance(self.cause, HTTPStatusError):
            return "http-status"
        if isinstance(self.cause, NetworkError):
            return "network"
        if isinstance(self.cause, IntegrityError):
            return "integrity"
        if isinstance(self.cause, FormatError):
            return "format"
        if isinstance(self.cause, StorageError):
            return "storage"
        return "other"


class UpdateCancelled(CatalogError):
    """The update pass was cancelled between repositories."""

    def __init__(self, completed: Optional[list] = None):
        self.completed = completed or []
        super().__init__("Update cancelled")
