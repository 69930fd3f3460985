from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Callable, Iterable

from .detect import Application, ScanFailure, ScanResult, catalog_sort_key


logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".app"

MetadataReader = Callable[[Path], dict[str, Any]]


class BundleMetadataError(RuntimeError):
    pass


def bundle_roots() -> list[Path]:
    return [
        Path("/Applications"),
        Path("/System/Applications"),
        Path.home() / "Applications",
    ]


def read_info_plist(bundle: Path) -> dict[str, Any]:
    """Read ``Contents/Info.plist`` through ``plutil``.

    Binary and XML plists both come back as JSON, which is why the system
    converter is used instead of parsing the file directly.
    """
    info_path = bundle / "Contents" / "Info.plist"
    if not info_path.is_file():
        raise BundleMetadataError(f"Info.plist not found: {info_path}")

    command = ["plutil", "-convert", "json", "-o", "-", str(info_path)]
    try:
        completed = subprocess.run(command, check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise BundleMetadataError(f"plutil convert {info_path}: {exc}") from exc

    try:
        raw = json.loads(completed.stdout)
    except ValueError as exc:
        raise BundleMetadataError(f"parse json {info_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise BundleMetadataError(f"unexpected plist payload in {info_path}")
    return raw


def _string_field(info: dict[str, Any], key: str) -> str:
    value = info.get(key)
    return value.strip() if isinstance(value, str) else ""


def _string_list_field(info: dict[str, Any], key: str) -> list[str]:
    value = info.get(key)
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _first_non_empty(*values: str) -> str:
    for value in values:
        if value.strip():
            return value.strip()
    return ""


def resolve_bundle_icon(bundle: Path, info: dict[str, Any]) -> str:
    resources = bundle / "Contents" / "Resources"

    candidates: list[str] = []
    icon_file = _string_field(info, "CFBundleIconFile")
    if icon_file:
        candidates.append(icon_file)
    candidates.extend(_string_list_field(info, "CFBundleIconFiles"))

    for name in candidates:
        if not Path(name).suffix:
            candidate = resources / f"{name}.icns"
            if candidate.is_file():
                return str(candidate)
        candidate = resources / name
        if candidate.is_file():
            return str(candidate)

    try:
        entries = sorted(resources.iterdir())
    except OSError:
        return ""
    for entry in entries:
        if entry.suffix.lower() == ".icns" and entry.is_file():
            return str(entry)
    return ""


def parse_app_bundle(
    bundle: Path,
    reader: MetadataReader = read_info_plist,
) -> tuple[Application, BundleMetadataError | None]:
    """Build a best-effort record for one bundle.

    A metadata failure is handed back next to the record instead of being
    raised, so the bundle still shows up under its directory name.
    """
    error: BundleMetadataError | None = None
    try:
        info = reader(bundle)
    except BundleMetadataError as exc:
        info = {}
        error = exc

    stem = bundle.name[: -len(BUNDLE_SUFFIX)] if bundle.name.endswith(BUNDLE_SUFFIX) else bundle.name
    name = _first_non_empty(
        _string_field(info, "CFBundleDisplayName"),
        _string_field(info, "CFBundleName"),
        stem,
    )

    icon_path = resolve_bundle_icon(bundle, info)
    return (
        Application(
            name=name,
            exec_cmd=str(bundle),
            icon_name=os.path.basename(icon_path),
            icon_path=icon_path,
            path=str(bundle),
        ),
        error,
    )


def scan_bundles(
    reader: MetadataReader = read_info_plist,
    roots: Iterable[Path] | None = None,
) -> ScanResult:
    result = ScanResult()
    seen: set[str] = set()

    def on_walk_error(exc: OSError) -> None:
        if isinstance(exc, FileNotFoundError):
            logger.debug("skipping missing bundle path %s", exc.filename)
            return
        result.failures.append(ScanFailure(str(exc.filename), f"walk: {exc}"))

    for root in bundle_roots() if roots is None else roots:
        for dirpath, dirnames, _filenames in os.walk(root, onerror=on_walk_error):
            descend: list[str] = []
            for dirname in sorted(dirnames):
                if not dirname.lower().endswith(BUNDLE_SUFFIX):
                    descend.append(dirname)
                    continue
                bundle = Path(dirpath) / dirname
                if bundle.is_symlink():
                    continue
                key = str(bundle)
                if key in seen:
                    continue
                seen.add(key)
                app, error = parse_app_bundle(bundle, reader)
                if error is not None:
                    result.failures.append(ScanFailure(key, f"parse bundle: {error}"))
                if app.name.strip():
                    result.apps.append(app)
            # Recognized bundles are leaves: never look inside them.
            dirnames[:] = descend

    result.apps.sort(key=catalog_sort_key)
    return result
