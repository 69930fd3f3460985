from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .catalog import Catalog, InstalledApps, build_catalog
from .icons import IconResolver
from .launch import LaunchError, PluginLaunchRequested, launch
from .search import rank


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appseek",
        description="Find installed applications by partial or misspelled name.",
    )
    parser.add_argument("--list-apps", action="store_true", help="List detected apps.")
    parser.add_argument("--search", metavar="QUERY", help="Rank apps matching QUERY.")
    parser.add_argument("--launch", metavar="QUERY", help="Launch the best match for QUERY.")
    parser.add_argument(
        "--resolve-icon",
        metavar="ICON",
        help="Show which file an Icon= value resolves to.",
    )
    parser.add_argument(
        "--context-dir",
        type=Path,
        default=None,
        help="Directory to treat as the descriptor location for --resolve-icon.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of search results to print (0 for all).",
    )
    parser.add_argument("--explain", action="store_true", help="Show match kind and score.")
    parser.add_argument("--dry-run", action="store_true", help="Preview --launch only.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero when any application could not be read.",
    )
    parser.add_argument("--verbose", action="store_true", help="Show every scan failure.")
    return parser


def _print(text: str, verbose: bool = False) -> None:
    if verbose:
        print(text)


def _info(message: str) -> None:
    print(f"INFO: {message}")


def _warn(message: str) -> None:
    print(f"WARN: {message}")


def _error(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)


def _report_failures(catalog: Catalog, verbose: bool) -> None:
    failures = catalog.failures
    if not failures:
        return
    max_items = len(failures) if verbose else min(5, len(failures))
    for failure in failures[:max_items]:
        _warn(str(failure))
    remaining = len(failures) - max_items
    if remaining > 0:
        _warn(f"... and {remaining} more failure(s). Re-run with --verbose for full details.")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    requested_actions = sum(
        1
        for selected in (args.list_apps, args.search is not None, args.launch, args.resolve_icon)
        if selected
    )
    if requested_actions == 0:
        parser.print_help()
        return 1
    if requested_actions > 1:
        parser.error("Choose only one action at a time.")

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="DEBUG: %(name)s: %(message)s")

    resolver = IconResolver()

    if args.resolve_icon:
        icon_path = resolver.resolve(args.resolve_icon, args.context_dir)
        if not icon_path:
            _warn(f"No icon found for {args.resolve_icon}")
            return 2
        print(icon_path)
        return 0

    catalog = build_catalog([InstalledApps()], resolver)
    _report_failures(catalog, args.verbose)

    if args.list_apps:
        _info(f"Detected applications: {len(catalog)}")
        for app in catalog:
            icon_state = "icon" if app.icon_path else "no-icon"
            print(f"- {app.name} ({app.exec_cmd}) [{icon_state}]")
            _print(f"    {app.path}", args.verbose)
        if args.strict and catalog.failures:
            return 4
        return 0

    if args.search is not None:
        results = rank(catalog.apps, args.search)
        if not results:
            _warn(f"No applications match '{args.search}'")
            return 0
        shown = results if args.limit <= 0 else results[: args.limit]
        for result in shown:
            line = f"{result.app.name} ({result.app.exec_cmd})"
            if args.explain:
                line = f"{line} [{result.kind} {result.score}]"
            print(line)
        return 0

    if args.launch:
        results = rank(catalog.apps, args.launch)
        if not results:
            _error(f"No applications match '{args.launch}'")
            return 2
        app = results[0].app
        if args.dry_run:
            _info(f"Would launch {app.name}: {app.exec_cmd}")
            return 0
        try:
            launch(app)
        except PluginLaunchRequested as exc:
            _warn(f"{app.name} is provided by plugin '{exc.plugin_id}' and cannot run from the command line.")
            return 2
        except LaunchError as exc:
            _error(str(exc))
            return 2
        _info(f"Launched {app.name}")
        return 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
