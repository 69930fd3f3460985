from __future__ import annotations

import subprocess
from typing import Any, Callable

from .catalog import plugin_id
from .detect import Application


class LaunchError(RuntimeError):
    pass


class PluginLaunchRequested(Exception):
    """Raised for plugin entries; the plugin host decides what opening one means."""

    def __init__(self, plugin_id: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"plugin:{plugin_id}")


def launch(app: Application, runner: Callable[..., Any] = subprocess.Popen) -> Any:
    requested = plugin_id(app.exec_cmd)
    if requested is not None:
        raise PluginLaunchRequested(requested)

    command = app.exec_cmd.strip()
    if not command:
        raise LaunchError(f"No executable defined for {app.name}.")
    try:
        return runner(
            ["sh", "-c", command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        raise LaunchError(f"Failed to launch {app.name}: {exc}") from exc
