"""Merging of per-repository indexes into one catalog."""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from ..models import App, Catalog, ParsedIndex

logger = logging.getLogger(__name__)


def merge_indexes(parsed_indexes: Iterable[ParsedIndex]) -> Catalog:
    """Merge parsed indexes, given highest priority first, into a Catalog.

    The first repository to declare a package provides its app record.
    Variants from later repositories are appended and the combined list is
    re-sorted by version code, descending, with a stable sort: among
    variants sharing a version code, the higher-priority repository's stays
    first.
    """
    merged: Dict[str, App] = {}
    for index in parsed_indexes:
        for app in index.apps:
            existing = merged.get(app.package_name)
            if existing is None:
                merged[app.package_name] = app.copy()
                continue
            variants = existing.variants + app.variants
            variants.sort(key=lambda v: v.version_code, reverse=True)
            existing.variants = variants
        logger.debug("Merged %d apps from %s", len(index.apps), index.repo_meta.address or index.repo_meta.name)

    logger.info("Catalog holds %d apps", len(merged))
    return Catalog(merged)
