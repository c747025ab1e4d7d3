"""Conditional download of repository files.

Downloads go to a temporary file next to the target and are moved into
place only once complete (and verified, when a checksum is given), so the
previously committed file is never replaced by partial or unverified content.
The ETag of the last committed download is kept in a ``<file>-etag`` sidecar
and sent back as ``If-None-Match`` on the next request.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import requests

from ..errors import (
    FormatError,
    FormatErrorKind,
    HTTPStatusError,
    IntegrityError,
    NetworkError,
    StorageError,
    UpdateCancelled,
)
from ..models import Variant

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT_S = 60.0


class FetchStatus(str, Enum):
    UPDATED = "updated"
    NOT_MODIFIED = "not-modified"
    FAILED = "failed"


@dataclass
class FetchResource:
    """A remote file and where its committed copy lives."""
    url: str
    local_path: Path
    expected_checksum: Optional[str] = None     # sha256, hex

    def __post_init__(self):
        self.local_path = Path(self.local_path)

    @property
    def etag_path(self) -> Path:
        return self.local_path.with_name(self.local_path.name + "-etag")


@dataclass
class FetchOutcome:
    status: FetchStatus
    http_status: Optional[int] = None
    etag: str = ""

    @property
    def updated(self) -> bool:
        return self.status == FetchStatus.UPDATED


def read_etag(resource: FetchResource) -> str:
    """Stored ETag for a resource, or '' when there is no committed copy."""
    if not resource.local_path.exists():
        return ""
    try:
        return resource.etag_path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""


def _write_etag(resource: FetchResource, etag: str) -> None:
    resource.etag_path.write_text(etag, encoding="utf-8")


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class IndexFetcher:
    """Fetches repository files with ETag-based conditional requests."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ):
        self._session = session or requests.Session()
        self.timeout_s = timeout_s

    def fetch(
        self,
        resource: FetchResource,
        cancel: Optional[threading.Event] = None,
    ) -> FetchOutcome:
        """Fetch a resource, committing it only when it changed.

        Raises:
            NetworkError: the server could not be reached or the transfer broke.
            IntegrityError: the body does not match ``expected_checksum``.
            StorageError: the file could not be written or moved into place.
            UpdateCancelled: ``cancel`` was set while the body was streaming.
        """
        headers = {}
        etag = read_etag(resource)
        if etag:
            headers["If-None-Match"] = etag

        logger.info("Downloading %s", resource.url)
        try:
            response = self._session.get(
                resource.url,
                headers=headers,
                stream=True,
                timeout=self.timeout_s,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(resource.url, str(e)) from e

        with response:
            if response.status_code == 304:
                logger.info("%s not modified", resource.url)
                return FetchOutcome(FetchStatus.NOT_MODIFIED, http_status=304, etag=etag)
            if response.status_code >= 400:
                logger.warning("%s download failed: %d", resource.url, response.status_code)
                return FetchOutcome(FetchStatus.FAILED, http_status=response.status_code)

            new_etag = response.headers.get("ETag", "")
            try:
                self._commit(resource, response, cancel)
            except OSError as e:
                raise StorageError(str(resource.local_path), str(e)) from e

        try:
            _write_etag(resource, new_etag)
        except OSError as e:
            raise StorageError(str(resource.etag_path), str(e)) from e
        logger.debug("Committed %s (etag %r)", resource.local_path, new_etag)
        return FetchOutcome(FetchStatus.UPDATED, http_status=response.status_code, etag=new_etag)

    def fetch_or_raise(
        self,
        resource: FetchResource,
        cancel: Optional[threading.Event] = None,
    ) -> FetchOutcome:
        """Like fetch(), but a FAILED outcome raises HTTPStatusError."""
        outcome = self.fetch(resource, cancel=cancel)
        if outcome.status == FetchStatus.FAILED:
            raise HTTPStatusError(resource.url, outcome.http_status or 0)
        return outcome

    def _commit(
        self,
        resource: FetchResource,
        response: requests.Response,
        cancel: Optional[threading.Event],
    ) -> None:
        target = resource.local_path
        target.parent.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha256() if resource.expected_checksum else None

        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                try:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if cancel is not None and cancel.is_set():
                            raise UpdateCancelled()
                        if not chunk:
                            continue
                        f.write(chunk)
                        if digest is not None:
                            digest.update(chunk)
                except requests.exceptions.RequestException as e:
                    raise NetworkError(resource.url, str(e)) from e

            if digest is not None:
                expected = resource.expected_checksum.lower()
                actual = digest.hexdigest()
                if actual != expected:
                    raise IntegrityError(str(target), expected, actual)

            os.replace(tmp_path, target)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise


def download_variant(
    fetcher: IndexFetcher,
    variant: Variant,
    apks_dir: Union[str, Path],
) -> Path:
    """Download a variant's package file, verifying its sha256 hash.

    A file already present with the expected hash is reused without a request.

    Raises:
        FormatError: the index names the file with anything but a plain file
            name.
    """
    name = variant.apk_name
    if not name or name in (".", "..") or Path(name).name != name or "\\" in name:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"unsafe package file name {name!r}")
    path = Path(apks_dir) / name
    checksum = variant.hash if variant.hash_type == "sha256" and variant.hash else None

    if checksum and path.exists() and sha256_file(path) == checksum.lower():
        logger.info("%s already downloaded", path.name)
        return path

    fetcher.fetch_or_raise(FetchResource(url=variant.url, local_path=path, expected_checksum=checksum))
    return path
