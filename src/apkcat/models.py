"""Catalog data models.

Defines the normalized shapes shared by the parser, merger, cache and
resolver: repository metadata, apps, their installable variants and the
merged catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional


@dataclass
class RepoMeta:
    """Metadata block of a single repository index."""
    name: str = ""
    address: str = ""
    timestamp_ms: int = 0
    version: int = 0
    max_age: int = 0
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "address": self.address,
            "timestamp_ms": self.timestamp_ms,
            "version": self.version,
            "max_age": self.max_age,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RepoMeta":
        return cls(
            name=data.get("name", ""),
            address=data.get("address", ""),
            timestamp_ms=data.get("timestamp_ms", 0),
            version=data.get("version", 0),
            max_age=data.get("max_age", 0),
            description=data.get("description", ""),
        )


@dataclass
class Variant:
    """One installable package build of an app."""
    version_name: str
    version_code: int
    size_bytes: int = 0
    min_sdk: int = 0
    max_sdk: int = 0                            # 0 = no upper bound
    target_sdk: int = 0
    abi_list: List[str] = field(default_factory=list)  # Empty = any ABI
    hash: str = ""                              # Lower-case hex
    hash_type: str = ""
    signer_hash: str = ""
    sig: str = ""
    permissions: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    apk_name: str = ""
    added_ms: int = 0

    # Value copies, never references into another structure
    origin_repo_url: str = ""
    owner_package_name: str = ""

    @property
    def url(self) -> str:
        """Download URL of the package file."""
        return f"{self.origin_repo_url.rstrip('/')}/{self.apk_name}"

    def to_dict(self) -> dict:
        return {
            "version_name": self.version_name,
            "version_code": self.version_code,
            "size_bytes": self.size_bytes,
            "min_sdk": self.min_sdk,
            "max_sdk": self.max_sdk,
            "target_sdk": self.target_sdk,
            "abi_list": list(self.abi_list),
            "hash": self.hash,
            "hash_type": self.hash_type,
            "signer_hash": self.signer_hash,
            "sig": self.sig,
            "permissions": list(self.permissions),
            "features": list(self.features),
            "apk_name": self.apk_name,
            "added_ms": self.added_ms,
            "origin_repo_url": self.origin_repo_url,
            "owner_package_name": self.owner_package_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Variant":
        return cls(
            version_name=data.get("version_name", ""),
            version_code=data.get("version_code", 0),
            size_bytes=data.get("size_bytes", 0),
            min_sdk=data.get("min_sdk", 0),
            max_sdk=data.get("max_sdk", 0),
            target_sdk=data.get("target_sdk", 0),
            abi_list=list(data.get("abi_list", [])),
            hash=data.get("hash", ""),
            hash_type=data.get("hash_type", ""),
            signer_hash=data.get("signer_hash", ""),
            sig=data.get("sig", ""),
            permissions=list(data.get("permissions", [])),
            features=list(data.get("features", [])),
            apk_name=data.get("apk_name", ""),
            added_ms=data.get("added_ms", 0),
            origin_repo_url=data.get("origin_repo_url", ""),
            owner_package_name=data.get("owner_package_name", ""),
        )


@dataclass
class App:
    """An application and every variant known for it."""
    package_name: str
    name: str = ""
    summary: str = ""
    description: str = ""
    license: str = ""
    categories: List[str] = field(default_factory=list)
    added_ms: int = 0
    last_updated_ms: int = 0
    website: str = ""
    source_code: str = ""
    issue_tracker: str = ""
    changelog: str = ""
    donate: str = ""
    suggested_version_name: str = ""
    suggested_version_code: int = 0
    variants: List[Variant] = field(default_factory=list)  # version_code descending

    def copy(self) -> "App":
        """Shallow copy with an independent variant list."""
        return replace(self, categories=list(self.categories), variants=list(self.variants))

    def to_dict(self) -> dict:
        return {
            "package_name": self.package_name,
            "name": self.name,
            "summary": self.summary,
            "description": self.description,
            "license": self.license,
            "categories": list(self.categories),
            "added_ms": self.added_ms,
            "last_updated_ms": self.last_updated_ms,
            "website": self.website,
            "source_code": self.source_code,
            "issue_tracker": self.issue_tracker,
            "changelog": self.changelog,
            "donate": self.donate,
            "suggested_version_name": self.suggested_version_name,
            "suggested_version_code": self.suggested_version_code,
            "variants": [v.to_dict() for v in self.variants],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "App":
        return cls(
            package_name=data["package_name"],
            name=data.get("name", ""),
            summary=data.get("summary", ""),
            description=data.get("description", ""),
            license=data.get("license", ""),
            categories=list(data.get("categories", [])),
            added_ms=data.get("added_ms", 0),
            last_updated_ms=data.get("last_updated_ms", 0),
            website=data.get("website", ""),
            source_code=data.get("source_code", ""),
            issue_tracker=data.get("issue_tracker", ""),
            changelog=data.get("changelog", ""),
            donate=data.get("donate", ""),
            suggested_version_name=data.get("suggested_version_name", ""),
            suggested_version_code=data.get("suggested_version_code", 0),
            variants=[Variant.from_dict(v) for v in data.get("variants", [])],
        )


@dataclass
class ParsedIndex:
    """A single repository's index after parsing and post-processing."""
    repo_meta: RepoMeta
    apps: List[App] = field(default_factory=list)
    variants_by_package: Dict[str, List[Variant]] = field(default_factory=dict)


class Catalog:
    """Merged set of apps keyed by package name, iterated in package order.

    A catalog is treated as an immutable snapshot once built; the merger and
    the cache are the only producers.
    """

    def __init__(self, apps: Optional[Dict[str, App]] = None):
        apps = apps or {}
        self._apps: Dict[str, App] = {name: apps[name] for name in sorted(apps)}

    def __len__(self) -> int:
        return len(self._apps)

    def __iter__(self) -> Iterator[App]:
        return iter(self._apps.values())

    def __contains__(self, package_name: object) -> bool:
        return package_name in self._apps

    def __getitem__(self, package_name: str) -> App:
        return self._apps[package_name]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Catalog):
            return NotImplemented
        return self._apps == other._apps

    def __repr__(self) -> str:
        return f"Catalog({len(self._apps)} apps)"

    def get(self, package_name: str) -> Optional[App]:
        return self._apps.get(package_name)

    @property
    def package_names(self) -> List[str]:
        return list(self._apps)

    @property
    def apps(self) -> List[App]:
        return list(self._apps.values())

    def to_dict(self) -> dict:
        return {"apps": [app.to_dict() for app in self._apps.values()]}

    @classmethod
    def from_dict(cls, data: dict) -> "Catalog":
        apps = [App.from_dict(a) for a in data.get("apps", [])]
        return cls({app.package_name: app for app in apps})


@dataclass(frozen=True)
class DeviceCapabilities:
    """What a target device declares it can run.

    Supplied by the device layer; ``abi_list`` is in the device's priority
    order. An unknown ``api_level`` (None) skips the API level check.
    """
    abi_list: List[str] = field(default_factory=list)
    api_level: Optional[int] = None


@dataclass(frozen=True)
class InstalledPackage:
    """Installed state of one package on a device."""
    version_code: int
    version_name: str = ""
