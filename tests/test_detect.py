from pathlib import Path

import pytest

from appseek.detect import (
    Application,
    CatalogError,
    catalog_sort_key,
    desktop_dirs,
    parse_desktop_entry,
    sanitize_exec,
    scan_desktop_entries,
)
from appseek.icons import IconIndex, IconResolver


def _resolver() -> IconResolver:
    return IconResolver(IconIndex(dirs=[]))


def _write_entry(path: Path, *lines: str) -> Path:
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_parse_desktop_entry_filters_hidden(tmp_path: Path) -> None:
    desktop_file = _write_entry(
        tmp_path / "hidden.desktop",
        "[Desktop Entry]",
        "Type=Application",
        "Name=Hidden App",
        "Exec=hidden",
        "Hidden=true",
    )

    assert parse_desktop_entry(desktop_file, _resolver()) is None


def test_parse_desktop_entry_accepts_application(tmp_path: Path) -> None:
    desktop_file = _write_entry(
        tmp_path / "demo.desktop",
        "# comment line",
        "[Desktop Entry]",
        "Type=Application",
        "Name=Demo App",
        "Icon=demo",
        "Exec=demo --start %U",
        "",
        "[Desktop Action new-window]",
        "Name=New Window",
        "Exec=demo --new-window",
    )

    app = parse_desktop_entry(desktop_file, _resolver())
    assert app == Application(
        name="Demo App",
        exec_cmd="demo --start",
        icon_name="demo",
        icon_path="",
        path=str(desktop_file),
    )


@pytest.mark.parametrize(
    "lines",
    [
        ("Type=Link", "Name=Docs", "Exec=docs"),
        ("Type=application", "Name=Docs", "Exec=docs"),
        ("Type=Application", "Name=Docs", "Exec=docs", "NoDisplay=TRUE"),
        ("Type=Application", "Name=Docs"),
        ("Type=Application", "Name=Docs", "Exec=%f %U"),
        ("Type=Application", "Exec=docs"),
        ("Name=Docs", "Exec=docs"),
    ],
)
def test_parse_desktop_entry_skips_ineligible(tmp_path: Path, lines: tuple[str, ...]) -> None:
    desktop_file = _write_entry(tmp_path / "docs.desktop", "[Desktop Entry]", *lines)

    assert parse_desktop_entry(desktop_file, _resolver()) is None


def test_keys_outside_main_section_are_ignored(tmp_path: Path) -> None:
    desktop_file = _write_entry(
        tmp_path / "other.desktop",
        "[Other Section]",
        "Type=Application",
        "Name=Other",
        "Exec=other",
    )

    assert parse_desktop_entry(desktop_file, _resolver()) is None


def test_first_localized_name_wins_without_plain_name(tmp_path: Path) -> None:
    desktop_file = _write_entry(
        tmp_path / "local.desktop",
        "[Desktop Entry]",
        "Type=Application",
        "Name[de]=Dateien",
        "Name[fr]=Fichiers",
        "Exec=files",
    )

    app = parse_desktop_entry(desktop_file, _resolver())
    assert app is not None
    assert app.name == "Dateien"


def test_plain_name_replaces_localized_name(tmp_path: Path) -> None:
    desktop_file = _write_entry(
        tmp_path / "local.desktop",
        "[Desktop Entry]",
        "Type=Application",
        "Name[de]=Dateien",
        "Name=Files",
        "Name[fr]=Fichiers",
        "Exec=files",
    )

    app = parse_desktop_entry(desktop_file, _resolver())
    assert app is not None
    assert app.name == "Files"


def test_parse_desktop_entry_raises_on_bad_encoding(tmp_path: Path) -> None:
    desktop_file = tmp_path / "broken.desktop"
    desktop_file.write_bytes(b"[Desktop Entry]\nName=\xff\xfe\nExec=x\n")

    with pytest.raises(UnicodeDecodeError):
        parse_desktop_entry(desktop_file, _resolver())


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("firefox %u", "firefox"),
        ("  env  FOO=1   app --file=%f  --flag ", "env FOO=1 app --flag"),
        ("%F", ""),
        ("plain", "plain"),
    ],
)
def test_sanitize_exec(raw: str, expected: str) -> None:
    assert sanitize_exec(raw) == expected
    assert sanitize_exec(sanitize_exec(raw)) == expected


def test_desktop_dirs_follow_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_DATA_HOME", "/data/home")
    monkeypatch.setenv("XDG_DATA_DIRS", "/opt/share: :/usr/share")

    assert desktop_dirs() == [
        Path("/data/home/applications"),
        Path("/opt/share/applications"),
        Path("/usr/share/applications"),
        Path("/var/lib/snapd/desktop/applications"),
    ]


def test_desktop_dirs_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("XDG_DATA_HOME", raising=False)
    monkeypatch.delenv("XDG_DATA_DIRS", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))

    assert desktop_dirs() == [
        tmp_path / ".local/share/applications",
        Path("/usr/local/share/applications"),
        Path("/usr/share/applications"),
        Path("/var/lib/snapd/desktop/applications"),
    ]


def test_scan_sorts_by_name_then_exec(tmp_path: Path) -> None:
    _write_entry(tmp_path / "b.desktop", "[Desktop Entry]", "Type=Application", "Name=beta", "Exec=b")
    _write_entry(tmp_path / "c.desktop", "[Desktop Entry]", "Type=Application", "Name=alpha", "Exec=z")
    _write_entry(tmp_path / "a.desktop", "[Desktop Entry]", "Type=Application", "Name=Alpha", "Exec=a")

    result = scan_desktop_entries(_resolver(), dirs=[tmp_path])

    assert [(app.name, app.exec_cmd) for app in result.apps] == [
        ("Alpha", "a"),
        ("alpha", "z"),
        ("beta", "b"),
    ]
    assert result.apps == sorted(result.apps, key=catalog_sort_key)
    assert result.error is None


def test_scan_deduplicates_paths_across_directories(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    share = tmp_path / "share"
    apps_dir = share / "applications"
    apps_dir.mkdir(parents=True)
    _write_entry(apps_dir / "editor.desktop", "[Desktop Entry]", "Type=Application", "Name=Editor", "Exec=edit")
    monkeypatch.setenv("XDG_DATA_HOME", str(share))
    monkeypatch.setenv("XDG_DATA_DIRS", f"{share}:{share}/")

    result = scan_desktop_entries(_resolver())

    ours = [app for app in result.apps if app.path.startswith(str(tmp_path))]
    assert [app.name for app in ours] == ["Editor"]


def test_scan_records_failures_and_keeps_partial_result(tmp_path: Path) -> None:
    _write_entry(tmp_path / "good.desktop", "[Desktop Entry]", "Type=Application", "Name=Good", "Exec=good")
    (tmp_path / "bad.desktop").write_bytes(b"[Desktop Entry]\nName=\xff\n")
    (tmp_path / "folder.desktop").mkdir()
    (tmp_path / "notes.txt").write_text("[Desktop Entry]\nName=Notes\nExec=notes\n", encoding="utf-8")

    result = scan_desktop_entries(_resolver(), dirs=[tmp_path / "missing", tmp_path])

    assert [app.name for app in result.apps] == ["Good"]
    assert len(result.failures) == 1
    assert result.failures[0].source == str(tmp_path / "bad.desktop")
    error = result.error
    assert isinstance(error, CatalogError)
    assert str(tmp_path / "bad.desktop") in str(error)


def test_scan_reports_unreadable_directory(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "applications"
    not_a_dir.write_text("", encoding="utf-8")

    result = scan_desktop_entries(_resolver(), dirs=[not_a_dir])

    assert result.apps == []
    assert [failure.source for failure in result.failures] == [str(not_a_dir)]
