"""Variant selection for a target device.

``suggest`` is a pure function of an app and the device capabilities; it never
raises for "nothing fits" and returns None instead. Install planning builds on
it for callers that need to decide between a fresh install, an upgrade and
leaving an app alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .errors import NoCompatibleVariant
from .models import App, Catalog, DeviceCapabilities, InstalledPackage, Variant


def is_abi_compatible(variant: Variant, abi_list: Sequence[str]) -> bool:
    if not variant.abi_list:
        return True  # No native code
    return any(abi in abi_list for abi in variant.abi_list)


def is_api_compatible(variant: Variant, api_level: int) -> bool:
    return api_level >= variant.min_sdk and (variant.max_sdk == 0 or api_level <= variant.max_sdk)


def is_compatible(variant: Variant, caps: Optional[DeviceCapabilities]) -> bool:
    """Whether a variant can run on a device; no device means no filtering."""
    if caps is None:
        return True
    if not is_abi_compatible(variant, caps.abi_list):
        return False
    return caps.api_level is None or is_api_compatible(variant, caps.api_level)


def suggest(app: App, caps: Optional[DeviceCapabilities]) -> Optional[Variant]:
    """Pick the variant to install for ``app`` on a device.

    Prefers the newest compatible variant at or below the suggested version
    code; falls back to the newest compatible variant overall. Relies on
    ``app.variants`` being sorted by version code, descending.
    """
    for variant in app.variants:
        if app.suggested_version_code >= variant.version_code and is_compatible(variant, caps):
            return variant
    for variant in app.variants:
        if is_compatible(variant, caps):
            return variant
    return None


# --- Install planning ---

class InstallAction(str, Enum):
    INSTALL = "install"
    UPGRADE = "upgrade"
    UP_TO_DATE = "up-to-date"


@dataclass
class InstallPlan:
    package_name: str
    action: InstallAction
    variant: Variant
    installed: Optional[InstalledPackage] = None


def plan_install(
    app: App,
    installed: Optional[InstalledPackage],
    caps: Optional[DeviceCapabilities],
) -> InstallPlan:
    """Decide what installing ``app`` would do on a device.

    Raises:
        NoCompatibleVariant: no variant of the app can run on the device.
    """
    variant = suggest(app, caps)
    if variant is None:
        raise NoCompatibleVariant(app.package_name)
    if installed is None:
        action = InstallAction.INSTALL
    elif installed.version_code >= variant.version_code:
        action = InstallAction.UP_TO_DATE
    else:
        action = InstallAction.UPGRADE
    return InstallPlan(package_name=app.package_name, action=action, variant=variant, installed=installed)


def find_upgrades(
    catalog: Catalog,
    installed: Dict[str, InstalledPackage],
    caps: Optional[DeviceCapabilities],
) -> List[InstallPlan]:
    """Upgrade plans for installed packages that have a newer suitable variant.

    Installed packages unknown to the catalog, or with nothing compatible,
    are skipped.
    """
    plans = []
    for package_name in sorted(installed):
        app = catalog.get(package_name)
        if app is None:
            continue
        try:
            plan = plan_install(app, installed[package_name], caps)
        except NoCompatibleVariant:
            continue
        if plan.action == InstallAction.UPGRADE:
            plans.append(plan)
    return plans
