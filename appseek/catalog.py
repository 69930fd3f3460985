from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Union

from .bundles import MetadataReader, read_info_plist, scan_bundles
from .detect import (
    Application,
    CatalogError,
    ScanFailure,
    ScanResult,
    catalog_sort_key,
    scan_desktop_entries,
)
from .icons import IconResolver
from .search import filter_apps


PLUGIN_PREFIX = "plugin:"


def slugify(text: str) -> str:
    slug = "".join(
        char if ("a" <= char <= "z" or "0" <= char <= "9") else "-" for char in text.lower()
    )
    return slug.strip("-")


def plugin_exec(plugin_id: str) -> str:
    return f"{PLUGIN_PREFIX}{plugin_id}"


def plugin_id(exec_cmd: str) -> str | None:
    exec_cmd = exec_cmd.strip()
    if not exec_cmd.startswith(PLUGIN_PREFIX):
        return None
    return exec_cmd[len(PLUGIN_PREFIX):]


@dataclass(frozen=True)
class PluginCommand:
    id: str
    name: str
    icon: str = ""


@dataclass
class InstalledApps:
    """Applications installed on this machine."""

    platform: str = sys.platform
    bundle_reader: MetadataReader = read_info_plist
    dirs: list[Path] | None = None
    roots: list[Path] | None = None

    def collect(self, resolver: IconResolver) -> ScanResult:
        if self.platform == "darwin":
            return scan_bundles(reader=self.bundle_reader, roots=self.roots)
        return scan_desktop_entries(resolver, dirs=self.dirs)


@dataclass
class PluginCommands:
    """Runtime-registered commands listed next to installed applications."""

    commands: list[PluginCommand] = field(default_factory=list)

    def collect(self, resolver: IconResolver) -> ScanResult:
        result = ScanResult()
        for command in self.commands:
            if not command.id.strip() or not command.name.strip():
                continue
            token = plugin_exec(command.id)
            result.apps.append(
                Application(
                    name=command.name,
                    exec_cmd=token,
                    icon_name=command.icon,
                    icon_path=resolver.resolve(command.icon),
                    path=token,
                )
            )
        return result


CatalogSource = Union[InstalledApps, PluginCommands]


@dataclass(frozen=True)
class Catalog:
    apps: tuple[Application, ...] = ()
    failures: tuple[ScanFailure, ...] = ()

    @property
    def error(self) -> CatalogError | None:
        if not self.failures:
            return None
        return CatalogError(self.failures)

    def search(self, query: str) -> list[Application]:
        return filter_apps(self.apps, query)

    def __len__(self) -> int:
        return len(self.apps)

    def __iter__(self) -> Iterator[Application]:
        return iter(self.apps)


def build_catalog(
    sources: Iterable[CatalogSource],
    resolver: IconResolver | None = None,
) -> Catalog:
    """Collect every source into one globally sorted catalog.

    Failures from any source are kept next to the partial result rather
    than raised.
    """
    resolver = resolver or IconResolver()
    merged = ScanResult()
    for source in sources:
        merged = merged.merge(source.collect(resolver))
    return Catalog(
        apps=tuple(sorted(merged.apps, key=catalog_sort_key)),
        failures=tuple(merged.failures),
    )

