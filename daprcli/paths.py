"""Default locations of the local installation and the dashboard command."""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass, field
from typing import IO, Mapping

DEFAULT_DAPR_DIR_NAME = ".dapr"
DEFAULT_DAPR_BIN_DIR_NAME = "bin"
DEFAULT_COMPONENTS_DIR_NAME = "components"
DEFAULT_CONFIG_FILE_NAME = "config.yaml"


def _is_windows() -> bool:
    return sys.platform == "win32"


@dataclass
class Command:
    """A program to start: its executable, argv (argv[0] first), directory and environment."""

    path: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: Mapping[str, str] | None = None
    stdout: int | IO | None = None

    def start(self) -> subprocess.Popen:
        """Start the program without waiting for it."""
        argv = self.args or [self.path]
        return subprocess.Popen(
            argv,
            executable=self.path,
            cwd=self.cwd,
            env=dict(self.env) if self.env is not None else None,
            stdout=self.stdout,
        )


def default_dapr_dir_path() -> str:
    return os.path.join(os.path.expanduser("~"), DEFAULT_DAPR_DIR_NAME)


def default_dapr_bin_path() -> str:
    return os.path.join(default_dapr_dir_path(), DEFAULT_DAPR_BIN_DIR_NAME)


def binary_file_path(binary_dir: str, binary_file_prefix: str) -> str:
    """Path of a binary in a directory, with the platform's executable suffix."""
    binary_path = os.path.join(binary_dir, binary_file_prefix)
    if _is_windows():
        binary_path += ".exe"
    return binary_path


def default_components_dir_path() -> str:
    return os.path.join(default_dapr_dir_path(), DEFAULT_COMPONENTS_DIR_NAME)


def default_config_file_path() -> str:
    return os.path.join(default_dapr_dir_path(), DEFAULT_CONFIG_FILE_NAME)


def socket_path(directory: str, app_id: str, protocol: str) -> str:
    """Unix domain socket of an app's sidecar for one protocol."""
    return os.path.join(directory, f"dapr-{app_id}-{protocol}.socket")


def new_dashboard_cmd(port: int) -> Command:
    """Command that runs the dashboard from the default install location."""
    dashboard_path = default_dapr_bin_path()
    binary_name = "dashboard.exe" if _is_windows() else "dashboard"
    return Command(
        path=os.path.join(dashboard_path, binary_name),
        args=[binary_name, "--port", str(port)],
        cwd=dashboard_path,
    )