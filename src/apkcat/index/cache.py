"""On-disk cache of the merged catalog.

The cache file holds a single envelope::

    {"schema_version": 4, "sources": [[id, url], ...], "catalog": {"apps": [...]}}

``sources`` lists the enabled repositories, in priority order, the catalog
was merged from. An envelope from any other schema version, or built from
other sources, is never read partially; it is a miss and the caller rebuilds
the catalog from the index files.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from ..errors import CacheSchemaMismatch, CacheSourcesChanged
from ..models import Catalog

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 4

Sources = Sequence[Tuple[str, str]]


def _sources_list(sources: Optional[Sources]) -> List[List[str]]:
    return [[repo_id, url] for repo_id, url in (sources or ())]


def encode_envelope(catalog: Catalog, sources: Optional[Sources] = None) -> str:
    return json.dumps(
        {
            "schema_version": SCHEMA_VERSION,
            "sources": _sources_list(sources),
            "catalog": catalog.to_dict(),
        },
        separators=(",", ":"),
        sort_keys=True,
    )


def decode_envelope(text: str, sources: Optional[Sources] = None) -> Catalog:
    """Decode an envelope.

    When ``sources`` is given, the envelope must have been built from exactly
    those repositories, in that order.

    Raises:
        CacheSchemaMismatch: envelope was written with another schema version.
        CacheSourcesChanged: envelope was built from other repositories.
        ValueError, KeyError, TypeError: envelope is not decodable.
    """
    data = json.loads(text)
    found = data.get("schema_version") if isinstance(data, dict) else None
    if found != SCHEMA_VERSION:
        raise CacheSchemaMismatch(found, SCHEMA_VERSION)
    if sources is not None and data.get("sources") != _sources_list(sources):
        raise CacheSourcesChanged()
    return Catalog.from_dict(data["catalog"])


class CatalogCache:
    """Persists the merged catalog between invocations.

    ``sources`` is the ordered ``(repo id, url)`` list of enabled
    repositories; it is recorded on store and checked on load.
    """

    def __init__(self, path: Union[str, Path], sources: Optional[Sources] = None):
        self.path = Path(path)
        self.sources = list(sources) if sources is not None else None

    def load(self) -> Optional[Catalog]:
        """Return the cached catalog, or None on a miss."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No catalog cache at %s", self.path)
            return None
        except OSError as e:
            logger.warning("Cannot read catalog cache %s: %s", self.path, e)
            return None

        try:
            catalog = decode_envelope(text, self.sources)
        except (CacheSchemaMismatch, CacheSourcesChanged) as e:
            logger.info("Discarding catalog cache: %s", e)
            return None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable catalog cache %s: %s", self.path, e)
            return None

        logger.debug("Loaded %d apps from catalog cache", len(catalog))
        return catalog

    def store(self, catalog: Catalog) -> Path:
        """Atomically replace the cache file with ``catalog``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(encode_envelope(catalog, self.sources))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Stored %d apps in catalog cache %s", len(catalog), self.path)
        return self.path

    def invalidate(self) -> bool:
        """Delete the cache file. Returns True when a file was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Invalidated catalog cache %s", self.path)
        return True
