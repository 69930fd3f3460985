from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .icons import IconResolver


logger = logging.getLogger(__name__)

DESKTOP_SUFFIX = ".desktop"
DEFAULT_DATA_DIRS = "/usr/local/share:/usr/share"
SNAP_DESKTOP_DIR = Path("/var/lib/snapd/desktop/applications")


@dataclass(frozen=True)
class Application:
    name: str
    exec_cmd: str
    icon_name: str = ""
    icon_path: str = ""
    path: str = ""


@dataclass(frozen=True)
class ScanFailure:
    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


class CatalogError(Exception):
    """Every per-item failure of one catalog build, in the order they occurred."""

    def __init__(self, failures: Iterable[ScanFailure]) -> None:
        self.failures = tuple(failures)
        super().__init__("\n".join(str(failure) for failure in self.failures))


@dataclass
class ScanResult:
    apps: list[Application] = field(default_factory=list)
    failures: list[ScanFailure] = field(default_factory=list)

    @property
    def error(self) -> CatalogError | None:
        if not self.failures:
            return None
        return CatalogError(self.failures)

    def merge(self, other: ScanResult) -> ScanResult:
        return ScanResult(
            apps=[*self.apps, *other.apps],
            failures=[*self.failures, *other.failures],
        )


def catalog_sort_key(app: Application) -> tuple[str, str]:
    return app.name.lower(), app.exec_cmd


def sanitize_exec(raw: str) -> str:
    return " ".join(token for token in raw.split() if "%" not in token)


def data_home() -> Path:
    override = os.environ.get("XDG_DATA_HOME")
    if override:
        return Path(override)
    return Path.home() / ".local/share"


def data_dirs() -> list[Path]:
    raw = os.environ.get("XDG_DATA_DIRS") or DEFAULT_DATA_DIRS
    return [Path(part.strip()) for part in raw.split(":") if part.strip()]


def desktop_dirs() -> list[Path]:
    dirs = [data_home() / "applications"]
    dirs.extend(data_dir / "applications" for data_dir in data_dirs())
    dirs.append(SNAP_DESKTOP_DIR)
    return dirs


def parse_desktop_entry(path: Path, resolver: IconResolver) -> Application | None:
    """Parse one ``.desktop`` file.

    Returns ``None`` for entries that are valid but not meant to be listed
    (wrong type, hidden, or missing a name or command). Read and decode
    errors propagate so the scanner can attribute them to ``path``.
    """
    name = ""
    exec_cmd = ""
    icon = ""
    app_type = ""
    hidden = False
    no_display = False
    in_desktop_entry = False

    raw = path.read_text(encoding="utf-8")

    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("[") and line.endswith("]"):
            in_desktop_entry = line == "[Desktop Entry]"
            continue
        if not in_desktop_entry:
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if key == "Type":
            app_type = value
        elif key == "Name":
            name = value
        elif key.startswith("Name[") and not name:
            name = value
        elif key == "Exec":
            exec_cmd = sanitize_exec(value)
        elif key == "Icon":
            icon = value
        elif key == "Hidden":
            hidden = value.lower() == "true"
        elif key == "NoDisplay":
            no_display = value.lower() == "true"

    if app_type != "Application" or hidden or no_display:
        return None
    if not name or not exec_cmd:
        return None

    return Application(
        name=name,
        exec_cmd=exec_cmd,
        icon_name=icon,
        icon_path=resolver.resolve(icon, path.parent),
        path=str(path),
    )


def scan_desktop_entries(
    resolver: IconResolver,
    dirs: Iterable[Path] | None = None,
) -> ScanResult:
    result = ScanResult()
    seen: set[str] = set()

    for desktop_dir in desktop_dirs() if dirs is None else dirs:
        try:
            entries = sorted(desktop_dir.iterdir())
        except FileNotFoundError:
            logger.debug("skipping missing application dir %s", desktop_dir)
            continue
        except OSError as exc:
            result.failures.append(ScanFailure(str(desktop_dir), f"read dir: {exc}"))
            continue

        for entry in entries:
            if not entry.name.endswith(DESKTOP_SUFFIX) or entry.is_dir():
                continue
            key = str(entry)
            if key in seen:
                continue
            seen.add(key)
            try:
                app = parse_desktop_entry(entry, resolver)
            except (OSError, UnicodeDecodeError) as exc:
                result.failures.append(ScanFailure(key, f"parse: {exc}"))
                continue
            if app:
                result.apps.append(app)

    result.apps.sort(key=catalog_sort_key)
    return result
