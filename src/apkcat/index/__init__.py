"""Index module for apkcat.

Keeps the local catalog in step with the configured repositories:
- Conditional (ETag) download of each repository's index container
- Parsing of JSON and legacy XML indexes
- Priority-ordered merge into one catalog
- On-disk caching of the merged catalog
"""

from .cache import CatalogCache
from .fetcher import FetchOutcome, FetchResource, FetchStatus, IndexFetcher, download_variant
from .merger import merge_indexes
from .parser import parse_index
from .sync import UpdateResult, clean, get_update_status, load_catalog, update_indexes

__all__ = [
    "CatalogCache",
    "FetchOutcome",
    "FetchResource",
    "FetchStatus",
    "IndexFetcher",
    "download_variant",
    "merge_indexes",
    "parse_index",
    "UpdateResult",
    "clean",
    "get_update_status",
    "load_catalog",
    "update_indexes",
]
