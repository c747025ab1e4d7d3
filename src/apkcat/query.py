"""Lookups over a loaded catalog."""

from __future__ import annotations

from typing import Iterable, List

from .errors import AppNotFound, CatalogError, VersionNotFound
from .models import App, Catalog


def _matches(fields: List[str], terms: List[str]) -> bool:
    return any(all(term in f for term in terms) for f in fields)


def search_apps(catalog: Catalog, terms: Iterable[str]) -> List[App]:
    """Apps where a single field contains every term (case-insensitive)."""
    terms = [t.lower() for t in terms]
    result = []
    for app in catalog:
        fields = [
            app.package_name.lower(),
            app.name.lower(),
            app.summary.lower(),
            app.description.lower(),
        ]
        if _matches(fields, terms):
            result.append(app)
    return result


def find_apps(catalog: Catalog, ids: Iterable[str]) -> List[App]:
    """Resolve ``package`` or ``package:versionCode`` identifiers.

    A version code narrows the returned app's variants to that version.
    """
    result = []
    for ident in ids:
        package_name, sep, code = ident.partition(":")
        version_code = None
        if sep:
            try:
                version_code = int(code)
            except ValueError:
                raise CatalogError(f"Could not parse version code from '{ident}'")

        app = catalog.get(package_name)
        if app is None:
            raise AppNotFound(package_name)

        if version_code is not None:
            variants = [v for v in app.variants if v.version_code == version_code]
            if not variants:
                raise VersionNotFound(package_name, version_code)
            app = app.copy()
            app.variants = variants
        result.append(app)
    return result


def list_categories(catalog: Catalog) -> List[str]:
    return sorted({c for app in catalog for c in app.categories})
