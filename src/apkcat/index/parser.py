"""Index container parsing.

A repository publishes its index as a zip container. The format is picked by
the entry the container carries:

- ``index-v1.json``: the JSON index (current format)
- ``index.xml``: the legacy XML index

Both decode into the same ParsedIndex and go through the same
post-processing, so everything downstream is format-agnostic.
"""

from __future__ import annotations

import html
import io
import json
import logging
import xml.etree.ElementTree as ET
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Tuple, Union

from ..errors import FormatError, FormatErrorKind
from ..models import App, ParsedIndex, RepoMeta, Variant

logger = logging.getLogger(__name__)

JSON_INDEX_ENTRY = "index-v1.json"
XML_INDEX_ENTRY = "index.xml"

Container = Union[bytes, bytearray, str, Path, BinaryIO]


# --- Field helpers ---

def split_comma(value: Optional[str]) -> List[str]:
    """Split a comma-joined list, dropping empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def normalize_hex(value: Optional[str], field_name: str = "") -> str:
    """Validate a hex-encoded field and return it lower-cased."""
    value = (value or "").strip()
    if not value:
        return ""
    try:
        bytes.fromhex(value)
    except ValueError:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"invalid hex in {field_name or 'field'}: {value!r}")
    return value.lower()


def to_int(value: Any, field_name: str = "") -> int:
    """Integer from an int or a numeric string; missing/empty is 0."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"{field_name} is not a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"{field_name} is not a number: {value!r}")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"expected text, got {type(value).__name__}")
    return value


def _str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"{field_name} must be a list of strings")
    return list(value)


def _date_ms(value: Optional[str]) -> int:
    """Milliseconds since epoch for a YYYY-MM-DD date."""
    if not value:
        return 0
    try:
        d = datetime.strptime(value.strip(), "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"invalid date: {value!r}")
    return int(d.timestamp()) * 1000


# --- JSON index ---

def _permission_names(value: Any) -> List[str]:
    # Entries are [name, maxSdk-or-null]
    if value is None:
        return []
    if not isinstance(value, list):
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, "uses-permission must be a list")
    names = []
    for entry in value:
        if isinstance(entry, list) and entry and isinstance(entry[0], str):
            names.append(entry[0])
        elif isinstance(entry, str):
            names.append(entry)
        else:
            raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"invalid permission entry: {entry!r}")
    return names


def _json_variant(data: dict) -> Variant:
    return Variant(
        version_name=_text(data.get("versionName")),
        version_code=to_int(data.get("versionCode"), "versionCode"),
        size_bytes=to_int(data.get("size"), "size"),
        min_sdk=to_int(data.get("minSdkVersion"), "minSdkVersion"),
        max_sdk=to_int(data.get("maxSdkVersion"), "maxSdkVersion"),
        target_sdk=to_int(data.get("targetSdkVersion"), "targetSdkVersion"),
        abi_list=_str_list(data.get("nativecode"), "nativecode"),
        hash=normalize_hex(data.get("hash"), "hash"),
        hash_type=_text(data.get("hashType")),
        signer_hash=normalize_hex(data.get("signer"), "signer"),
        sig=normalize_hex(data.get("sig"), "sig"),
        permissions=_permission_names(data.get("uses-permission")),
        features=_str_list(data.get("features"), "features"),
        apk_name=_text(data.get("apkName")),
        added_ms=to_int(data.get("added"), "added"),
    )


def _json_app(data: dict) -> Tuple[App, Dict[str, dict]]:
    app = App(
        package_name=_text(data["packageName"]),
        name=_text(data.get("name")),
        summary=_text(data.get("summary")),
        description=_text(data.get("description")),
        license=_text(data.get("license")),
        categories=_str_list(data.get("categories"), "categories"),
        added_ms=to_int(data.get("added"), "added"),
        last_updated_ms=to_int(data.get("lastUpdated"), "lastUpdated"),
        website=_text(data.get("webSite", data.get("website"))),
        source_code=_text(data.get("sourceCode")),
        issue_tracker=_text(data.get("issueTracker")),
        changelog=_text(data.get("changelog")),
        donate=_text(data.get("donate")),
        suggested_version_name=_text(data.get("suggestedVersionName")),
        suggested_version_code=to_int(data.get("suggestedVersionCode"), "suggestedVersionCode"),
    )
    localized = data.get("localized") or {}
    if not isinstance(localized, dict):
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, "localized must be an object")
    return app, localized


def decode_json_index(raw: bytes) -> Tuple[RepoMeta, List[App], Dict[str, List[Variant]], Dict[str, Dict[str, dict]]]:
    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, str(e))
    if not isinstance(doc, dict):
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, "index must be an object")

    try:
        repo = doc.get("repo") or {}
        repo_meta = RepoMeta(
            name=_text(repo.get("name")),
            address=_text(repo.get("address")),
            timestamp_ms=to_int(repo.get("timestamp"), "timestamp"),
            version=to_int(repo.get("version"), "version"),
            max_age=to_int(repo.get("maxage"), "maxage"),
            description=_text(repo.get("description")),
        )

        apps: List[App] = []
        localizations: Dict[str, Dict[str, dict]] = {}
        for entry in doc.get("apps") or []:
            app, localized = _json_app(entry)
            apps.append(app)
            localizations.setdefault(app.package_name, localized)

        variants_by_package: Dict[str, List[Variant]] = {}
        for package_name, entries in (doc.get("packages") or {}).items():
            variants_by_package[package_name] = [_json_variant(v) for v in entries]
    except (KeyError, TypeError, AttributeError) as e:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"unexpected structure: {e}")

    return repo_meta, apps, variants_by_package, localizations


# --- Legacy XML index ---

def _child_text(elem: ET.Element, tag: str) -> str:
    child = elem.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text


def _xml_variant(elem: ET.Element) -> Variant:
    hash_elem = elem.find("hash")
    return Variant(
        version_name=_child_text(elem, "version"),
        version_code=to_int(_child_text(elem, "versioncode"), "versioncode"),
        size_bytes=to_int(_child_text(elem, "size"), "size"),
        min_sdk=to_int(_child_text(elem, "sdkver"), "sdkver"),
        max_sdk=to_int(_child_text(elem, "maxsdkver"), "maxsdkver"),
        target_sdk=to_int(_child_text(elem, "targetSdkVersion"), "targetSdkVersion"),
        abi_list=split_comma(_child_text(elem, "nativecode")),
        hash=normalize_hex(_child_text(elem, "hash"), "hash"),
        hash_type=hash_elem.get("type", "") if hash_elem is not None else "",
        sig=normalize_hex(_child_text(elem, "sig"), "sig"),
        permissions=split_comma(_child_text(elem, "permissions")),
        features=split_comma(_child_text(elem, "features")),
        apk_name=_child_text(elem, "apkname"),
        added_ms=_date_ms(_child_text(elem, "added")),
    )


def decode_xml_index(raw: bytes) -> Tuple[RepoMeta, List[App], Dict[str, List[Variant]], Dict[str, Dict[str, dict]]]:
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, str(e))

    repo = root.find("repo")
    if repo is None:
        repo_meta = RepoMeta()
    else:
        repo_meta = RepoMeta(
            name=repo.get("name", ""),
            address=repo.get("url", ""),
            # Legacy timestamps are in seconds
            timestamp_ms=to_int(repo.get("timestamp"), "timestamp") * 1000,
            version=to_int(repo.get("version"), "version"),
            max_age=to_int(repo.get("maxage"), "maxage"),
            description=_child_text(repo, "description"),
        )

    apps: List[App] = []
    variants_by_package: Dict[str, List[Variant]] = {}
    for elem in root.findall("application"):
        package_name = elem.get("id") or _child_text(elem, "id")
        if not package_name:
            raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, "application without id")
        if package_name in variants_by_package:
            logger.warning("Ignoring duplicate application %s", package_name)
            continue
        apps.append(App(
            package_name=package_name,
            name=_child_text(elem, "name"),
            summary=_child_text(elem, "summary"),
            description=_child_text(elem, "desc"),
            license=_child_text(elem, "license"),
            categories=split_comma(_child_text(elem, "categories")),
            added_ms=_date_ms(_child_text(elem, "added")),
            last_updated_ms=_date_ms(_child_text(elem, "lastupdated")),
            website=_child_text(elem, "web"),
            source_code=_child_text(elem, "source"),
            issue_tracker=_child_text(elem, "tracker"),
            changelog=_child_text(elem, "changelog"),
            donate=_child_text(elem, "donate"),
            suggested_version_name=_child_text(elem, "marketversion"),
            suggested_version_code=to_int(_child_text(elem, "marketvercode"), "marketvercode"),
        ))
        variants_by_package[package_name] = [_xml_variant(p) for p in elem.findall("package")]

    return repo_meta, apps, variants_by_package, {}


Decoder = Callable[[bytes], Tuple[RepoMeta, List[App], Dict[str, List[Variant]], Dict[str, Dict[str, dict]]]]

# Checked in order; the first entry present in the container wins
INDEX_FORMATS: List[Tuple[str, Decoder]] = [
    (JSON_INDEX_ENTRY, decode_json_index),
    (XML_INDEX_ENTRY, decode_xml_index),
]


# --- Post-processing ---

def _localized_fallback(localized: Dict[str, dict]) -> dict:
    for locale in ("en", "en-US"):
        entry = localized.get(locale)
        if isinstance(entry, dict):
            return entry
    return {}


def _clean_text(value: str) -> str:
    return html.unescape(value).strip()


def _post_process(
    repo_meta: RepoMeta,
    apps: List[App],
    variants_by_package: Dict[str, List[Variant]],
    localizations: Dict[str, Dict[str, dict]],
    repo_url: Optional[str],
) -> ParsedIndex:
    origin = (repo_url or repo_meta.address).rstrip("/")

    # The first record of a package wins, as in the merge
    unique: Dict[str, App] = {}
    for app in apps:
        if app.package_name in unique:
            logger.warning("Ignoring duplicate app record %s", app.package_name)
            continue
        unique[app.package_name] = app
    apps = sorted(unique.values(), key=lambda a: a.package_name)

    # Stable: equal version codes keep document order
    for package_name, variants in variants_by_package.items():
        variants.sort(key=lambda v: v.version_code, reverse=True)
        for variant in variants:
            variant.origin_repo_url = origin
            variant.owner_package_name = package_name
            variant.version_name = _clean_text(variant.version_name)

    for app in apps:
        english = _localized_fallback(localizations.get(app.package_name, {}))
        if not app.name:
            app.name = _text(english.get("name"))
        if not app.summary:
            app.summary = _text(english.get("summary"))
        if not app.description:
            app.description = _text(english.get("description"))
        app.name = _clean_text(app.name)
        app.summary = _clean_text(app.summary)
        app.description = _clean_text(app.description)
        app.variants = list(variants_by_package.get(app.package_name, []))

    return ParsedIndex(repo_meta=repo_meta, apps=apps, variants_by_package=variants_by_package)


# --- Container ---

def _open_container(container: Container) -> zipfile.ZipFile:
    if isinstance(container, (bytes, bytearray)):
        container = io.BytesIO(bytes(container))
    try:
        return zipfile.ZipFile(container)
    except zipfile.BadZipFile as e:
        raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"not a zip container: {e}")


def parse_index(container: Container, repo_url: Optional[str] = None) -> ParsedIndex:
    """Parse an index container into a ParsedIndex.

    Args:
        container: container bytes, a path to it, or a seekable binary file.
        repo_url: address stamped on every variant; defaults to the address
            the index declares for itself.

    Raises:
        FormatError: NO_INDEX_ENTRY when the container holds no known index
            entry, MALFORMED_DOCUMENT when it cannot be decoded.
    """
    with _open_container(container) as zf:
        names = set(zf.namelist())
        for entry_name, decode in INDEX_FORMATS:
            if entry_name not in names:
                continue
            try:
                raw = zf.read(entry_name)
            except (zipfile.BadZipFile, OSError) as e:
                raise FormatError(FormatErrorKind.MALFORMED_DOCUMENT, f"cannot read {entry_name}: {e}")
            logger.debug("Decoding %s (%d bytes)", entry_name, len(raw))
            repo_meta, apps, variants_by_package, localizations = decode(raw)
            return _post_process(repo_meta, apps, variants_by_package, localizations, repo_url)

    raise FormatError(FormatErrorKind.NO_INDEX_ENTRY, f"expected {JSON_INDEX_ENTRY} or {XML_INDEX_ENTRY}")
