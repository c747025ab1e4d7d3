"""CLI commands for apkcat.

Commands:
- update/status/clean
- search/show/list
- suggest/upgrades/download
- repo (list, add, remove, enable, disable)
"""

from __future__ import annotations

import argparse
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import Settings
from .errors import CatalogError, ConfigError, UpdateCancelled, UpdateError
from .index.cache import CatalogCache
from .index.fetcher import IndexFetcher, download_variant
from .index.sync import clean, get_update_status, load_catalog, update_indexes
from .models import App, DeviceCapabilities, InstalledPackage
from .query import find_apps, list_categories, search_apps
from .resolver import find_upgrades, plan_install, suggest

console = Console()

_UPDATE_HINTS = {
    "network": "check the network connection and the repository URL",
    "http-status": "check the repository URL and configuration",
    "integrity": "the mirror served corrupted content; try again later",
    "format": "the repository index is corrupted or in an unsupported format",
    "storage": "check free space and permissions of the data directory",
}


def _date(ms: int) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def _device_caps(args: argparse.Namespace) -> Optional[DeviceCapabilities]:
    abis: List[str] = []
    for value in getattr(args, "abi", None) or []:
        abis.extend(a.strip() for a in value.split(",") if a.strip())
    api_level = getattr(args, "api_level", None)
    if not abis and api_level is None:
        return None
    return DeviceCapabilities(abi_list=abis, api_level=api_level)


def _load_installed(path: str) -> Dict[str, InstalledPackage]:
    """Read installed packages as {package: {version_code, version_name}}."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return {
        name: InstalledPackage(
            version_code=int(entry["version_code"]),
            version_name=str(entry.get("version_name", "")),
        )
        for name, entry in data.items()
    }


def _print_error(e: Exception) -> None:
    console.print(f"[red]Error:[/red] {e}")


# --- Index Commands ---

def cmd_update(args: argparse.Namespace) -> int:
    """Update the index of every enabled repository."""
    settings = Settings.load()
    cancel = threading.Event()

    try:
        result = update_indexes(settings, cancel=cancel)
    except KeyboardInterrupt:
        cancel.set()
        console.print("[yellow]Update interrupted.[/yellow]")
        return 130
    except UpdateCancelled:
        console.print("[yellow]Update cancelled.[/yellow]")
        return 130
    except UpdateError as e:
        console.print(f"[red]Could not update repository '{e.repo_id}':[/red] {e.cause}")
        hint = _UPDATE_HINTS.get(e.kind)
        if hint:
            console.print(f"[dim]Hint: {hint}[/dim]")
        return 1

    for repo_id in result.updated:
        console.print(f"[green]{repo_id}[/green] updated")
    for repo_id in result.not_modified:
        console.print(f"[dim]{repo_id} not modified[/dim]")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show repository and cache status."""
    settings = Settings.load()
    status = get_update_status(settings)

    lines = []
    for i, repo in enumerate(settings.repos):
        state = "[green]enabled[/green]" if repo.enabled else "[dim]disabled[/dim]"
        present = "yes" if settings.index_path(repo.id).exists() else "no"
        lines.append(f"[bold]{i}. {repo.id}[/bold] {state}  {repo.url}  (index: {present})")

    lines.append("")
    if status.last_update_ts:
        lines.append(f"Last update: {status.last_update_ts}")
    else:
        lines.append("Last update: [dim]Never[/dim]")
    cached = settings.catalog_cache_path.exists()
    lines.append(f"Catalog cache: {'[green]valid[/green]' if cached else '[yellow]absent[/yellow]'}")

    console.print(Panel("\n".join(lines), title="apkcat status", border_style="cyan"))
    return 0


def cmd_clean(args: argparse.Namespace) -> int:
    """Remove downloaded indexes and/or packages."""
    settings = Settings.load()
    what = args.what
    removed = clean(settings, index=what in (None, "index"), cache=what in (None, "cache"))
    console.print(f"Removed {len(removed)} file(s).")
    return 0


# --- Catalog Commands ---

def _print_apps(apps: List[App], caps: Optional[DeviceCapabilities] = None) -> None:
    table = Table()
    table.add_column("Package", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Summary")
    for app in apps:
        variant = suggest(app, caps)
        version = variant.version_name if variant else "[dim]-[/dim]"
        table.add_row(app.package_name, app.name, version, app.summary)
    console.print(table)


def cmd_search(args: argparse.Namespace) -> int:
    """Search available apps."""
    try:
        catalog = load_catalog(Settings.load())
    except CatalogError as e:
        _print_error(e)
        return 1

    apps = search_apps(catalog, args.terms)
    if not apps:
        console.print("[yellow]No apps found.[/yellow]")
        return 0
    _print_apps(apps, _device_caps(args))
    console.print(f"\nTotal: {len(apps)} app(s)")
    return 0


def _print_app_detailed(app: App) -> None:
    lines = [
        f"[bold]Package:[/bold]      {app.package_name}",
        f"[bold]Name:[/bold]         {app.name}",
        f"[bold]Summary:[/bold]      {app.summary}",
        f"[bold]Added:[/bold]        {_date(app.added_ms)}",
        f"[bold]Last Updated:[/bold] {_date(app.last_updated_ms)}",
        f"[bold]Version:[/bold]      {app.suggested_version_name} ({app.suggested_version_code})",
    ]
    if app.license:
        lines.append(f"[bold]License:[/bold]      {app.license}")
    if app.categories:
        lines.append(f"[bold]Categories:[/bold]   {', '.join(app.categories)}")
    for label, value in (
        ("Website", app.website),
        ("Source", app.source_code),
        ("Issue Tracker", app.issue_tracker),
        ("Changelog", app.changelog),
        ("Donate", app.donate),
    ):
        if value:
            lines.append(f"[bold]{label + ':':<14}[/bold]{value}")
    console.print(Panel("\n".join(lines), title=app.name or app.package_name, border_style="cyan"))

    table = Table(title="Available Versions")
    table.add_column("Version")
    table.add_column("Code", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("MinSdk", justify="right")
    table.add_column("MaxSdk", justify="right")
    table.add_column("ABIs")
    table.add_column("Repository", style="dim")
    for v in app.variants:
        table.add_row(
            v.version_name,
            str(v.version_code),
            str(v.size_bytes),
            str(v.min_sdk),
            str(v.max_sdk) if v.max_sdk else "",
            ", ".join(v.abi_list),
            v.origin_repo_url,
        )
    console.print(table)


def cmd_show(args: argparse.Namespace) -> int:
    """Show detailed info about apps."""
    try:
        apps = find_apps(load_catalog(Settings.load()), args.ids)
    except CatalogError as e:
        _print_error(e)
        return 1

    for i, app in enumerate(apps):
        if i > 0:
            console.print()
        _print_app_detailed(app)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List all known values of a kind."""
    try:
        catalog = load_catalog(Settings.load())
    except CatalogError as e:
        _print_error(e)
        return 1

    if args.kind == "categories":
        for category in list_categories(catalog):
            console.print(category)
    else:
        _print_apps(catalog.apps)
    return 0


# --- Resolution Commands ---

def cmd_suggest(args: argparse.Namespace) -> int:
    """Show the variant that would be installed on a device."""
    caps = _device_caps(args)
    try:
        apps = find_apps(load_catalog(Settings.load()), args.ids)
    except CatalogError as e:
        _print_error(e)
        return 1

    status = 0
    for app in apps:
        variant = suggest(app, caps)
        if variant is None:
            console.print(f"[yellow]{app.package_name}:[/yellow] no suitable package found")
            status = 1
            continue
        console.print(
            f"[cyan]{app.package_name}[/cyan] {variant.version_name} ({variant.version_code}) "
            f"[dim]{variant.url}[/dim]"
        )
    return status


def cmd_upgrades(args: argparse.Namespace) -> int:
    """List installed packages with an available upgrade."""
    try:
        installed = _load_installed(args.installed)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        console.print(f"[red]Cannot read installed packages:[/red] {e}")
        return 1
    try:
        catalog = load_catalog(Settings.load())
    except CatalogError as e:
        _print_error(e)
        return 1

    plans = find_upgrades(catalog, installed, _device_caps(args))
    if not plans:
        console.print("All apps up to date.")
        return 0

    table = Table(title="Available Upgrades")
    table.add_column("Package", style="cyan")
    table.add_column("Installed")
    table.add_column("Available", style="green")
    for plan in plans:
        table.add_row(
            plan.package_name,
            f"{plan.installed.version_name} ({plan.installed.version_code})",
            f"{plan.variant.version_name} ({plan.variant.version_code})",
        )
    console.print(table)
    return 0


def cmd_download(args: argparse.Namespace) -> int:
    """Download the suggested package file of apps."""
    settings = Settings.load()
    caps = _device_caps(args)
    try:
        apps = find_apps(load_catalog(settings), args.ids)
        plans = [plan_install(app, None, caps) for app in apps]
    except CatalogError as e:
        _print_error(e)
        return 1

    fetcher = IndexFetcher(timeout_s=settings.timeout_s)
    for plan in plans:
        try:
            path = download_variant(fetcher, plan.variant, settings.apks_dir)
        except CatalogError as e:
            console.print(f"[red]Could not download {plan.package_name}:[/red] {e}")
            return 1
        console.print(f"[green]{plan.package_name}[/green] -> {path}")
    return 0


# --- Repository Commands ---

def cmd_repo(args: argparse.Namespace) -> int:
    """List or modify repositories."""
    settings = Settings.load()
    action = args.repo_action

    if action is None:
        table = Table(title="Repositories")
        table.add_column("Priority", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("URL")
        table.add_column("Enabled", justify="center")
        for i, repo in enumerate(settings.repos):
            enabled = "[green]Yes[/green]" if repo.enabled else "[red]No[/red]"
            table.add_row(str(i), repo.id, repo.url, enabled)
        console.print(table)
        return 0

    try:
        if action == "add":
            settings.add_repo(args.name, args.url)
        elif action == "remove":
            settings.remove_repo(args.name)
        elif action == "enable":
            settings.enable_repo(args.name)
        elif action == "disable":
            settings.disable_repo(args.name)
    except ConfigError as e:
        _print_error(e)
        return 1

    settings.save()
    CatalogCache(settings.catalog_cache_path).invalidate()
    done = {"add": "added", "remove": "removed", "enable": "enabled", "disable": "disabled"}[action]
    console.print(f"[green]Repository '{args.name}' {done}.[/green]")
    return 0


# --- Parser Setup ---

def _add_device_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--abi", action="append", help="Device ABI, in priority order (repeatable or comma-separated)")
    p.add_argument("--api-level", type=int, help="Device API level")


def add_commands(subparsers: argparse._SubParsersAction) -> None:
    """Add all commands to the main parser."""

    p_update = subparsers.add_parser("update", help="Update the index")
    p_update.set_defaults(func=cmd_update)

    p_status = subparsers.add_parser("status", help="Show repository and cache status")
    p_status.set_defaults(func=cmd_status)

    p_clean = subparsers.add_parser("clean", help="Remove downloaded indexes and packages")
    p_clean.add_argument("what", nargs="?", choices=["index", "cache"], help="Only clean one kind")
    p_clean.set_defaults(func=cmd_clean)

    p_search = subparsers.add_parser("search", help="Search available apps")
    p_search.add_argument("terms", nargs="*", help="Search terms")
    _add_device_args(p_search)
    p_search.set_defaults(func=cmd_search)

    p_show = subparsers.add_parser("show", help="Show detailed info about apps")
    p_show.add_argument("ids", nargs="+", help="Package names, optionally as name:versionCode")
    p_show.set_defaults(func=cmd_show)

    p_list = subparsers.add_parser("list", help="List all known values of a kind")
    p_list.add_argument("kind", choices=["apps", "categories"])
    p_list.set_defaults(func=cmd_list)

    p_suggest = subparsers.add_parser("suggest", help="Show the package that would be installed")
    p_suggest.add_argument("ids", nargs="+", help="Package names, optionally as name:versionCode")
    _add_device_args(p_suggest)
    p_suggest.set_defaults(func=cmd_suggest)

    p_upgrades = subparsers.add_parser("upgrades", help="List available upgrades")
    p_upgrades.add_argument("--installed", required=True, help="JSON file of installed packages")
    _add_device_args(p_upgrades)
    p_upgrades.set_defaults(func=cmd_upgrades)

    p_download = subparsers.add_parser("download", help="Download package files")
    p_download.add_argument("ids", nargs="+", help="Package names, optionally as name:versionCode")
    _add_device_args(p_download)
    p_download.set_defaults(func=cmd_download)

    p_repo = subparsers.add_parser("repo", help="Manage repositories")
    repo_sub = p_repo.add_subparsers(dest="repo_action")
    p_add = repo_sub.add_parser("add", help="Add a repository")
    p_add.add_argument("name")
    p_add.add_argument("url")
    for action in ("remove", "enable", "disable"):
        p_action = repo_sub.add_parser(action, help=f"{action.capitalize()} a repository")
        p_action.add_argument("name")
    p_repo.set_defaults(func=cmd_repo)


def run_command(args: argparse.Namespace) -> int:
    """Run a command if func is set."""
    if hasattr(args, "func") and args.func:
        return args.func(args)
    return -1
