from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Iterable

from .detect import data_dirs, data_home


logger = logging.getLogger(__name__)

ICON_EXTENSIONS = (".png", ".svg", ".xpm")
SYSTEM_PIXMAPS = Path("/usr/share/pixmaps")


def icon_dirs() -> list[Path]:
    home = data_home()
    dirs = [home / "icons", home / "pixmaps", Path.home() / ".icons"]
    for data_dir in data_dirs():
        dirs.append(data_dir / "icons")
        dirs.append(data_dir / "pixmaps")
    dirs.append(SYSTEM_PIXMAPS)
    return dirs


def icon_key(name: str) -> str:
    if not name:
        return ""
    base, ext = os.path.splitext(name)
    if ext.lower() in ICON_EXTENSIONS:
        name = base
    return name.lower()


def icon_score(path: str) -> int:
    score = 0
    if os.path.basename(os.path.dirname(path)) == "apps":
        score += 2
    ext = os.path.splitext(path)[1].lower()
    if ext == ".png":
        score += 2
    elif ext == ".svg":
        score += 1
    return score


def better_icon_candidate(new_path: str, existing_path: str) -> bool:
    new_score = icon_score(new_path)
    old_score = icon_score(existing_path)
    if new_score == old_score:
        return len(new_path) < len(existing_path)
    return new_score > old_score


def _log_walk_error(exc: OSError) -> None:
    logger.debug("icon walk skipped %s: %s", exc.filename, exc)


class IconIndex:
    """Icon-name to file-path map over the installed icon themes.

    The filesystem walk happens on first lookup and only once per instance,
    even when several threads race for it. Later lookups read the finished
    map without locking.
    """

    def __init__(self, dirs: Iterable[Path] | None = None) -> None:
        self._dirs = list(dirs) if dirs is not None else None
        self._entries: dict[str, str] | None = None
        self._lock = threading.Lock()

    def _build(self) -> dict[str, str]:
        entries: dict[str, str] = {}
        for icon_dir in self._dirs if self._dirs is not None else icon_dirs():
            for root, dirnames, filenames in os.walk(icon_dir, onerror=_log_walk_error):
                # Full ties go to the lexically first path.
                dirnames.sort()
                for filename in sorted(filenames):
                    if os.path.splitext(filename)[1].lower() not in ICON_EXTENSIONS:
                        continue
                    key = icon_key(filename)
                    if not key:
                        continue
                    path = os.path.join(root, filename)
                    existing = entries.get(key)
                    if existing is None or better_icon_candidate(path, existing):
                        entries[key] = path
        logger.debug("icon index built with %d entries", len(entries))
        return entries

    def _ensure_built(self) -> dict[str, str]:
        entries = self._entries
        if entries is not None:
            return entries
        with self._lock:
            if self._entries is None:
                self._entries = self._build()
            return self._entries

    def lookup(self, key: str) -> str:
        if not key:
            return ""
        return self._ensure_built().get(key, "")

    def __len__(self) -> int:
        return len(self._ensure_built())


def _is_file(path: str) -> bool:
    return os.path.isfile(path)


def find_icon_with_extensions(base: str) -> str:
    if _is_file(base):
        return base
    if os.path.splitext(base)[1]:
        return ""
    for ext in ICON_EXTENSIONS:
        candidate = base + ext
        if _is_file(candidate):
            return candidate
    return ""


class IconResolver:
    def __init__(self, index: IconIndex | None = None) -> None:
        self.index = index if index is not None else IconIndex()

    def resolve(self, icon: str, context_dir: Path | str | None = None) -> str:
        """Map an ``Icon=`` value to an existing file, or ``""``.

        Absolute paths are taken as-is. Relative names are looked up next to
        the descriptor first, then in the theme index.
        """
        if not icon:
            return ""

        if os.path.isabs(icon):
            return icon if _is_file(icon) else ""

        if context_dir is not None:
            context = os.fspath(context_dir)
            candidate = find_icon_with_extensions(os.path.join(context, icon))
            if candidate:
                return candidate
            if os.sep in icon:
                candidate = find_icon_with_extensions(os.path.normpath(os.path.join(context, icon)))
                if candidate:
                    return candidate

        return self.index.lookup(icon_key(icon))
