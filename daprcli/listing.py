"""Listing of the apps that run locally together with their sidecars."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

import psutil

from daprcli.metadata import get_metadata
from daprcli.transport import TransportError

SIDECAR_EXECUTABLES = frozenset({"daprd", "daprd.exe"})
CLI_EXECUTABLES = frozenset({"dapr", "dapr.exe"})
COMMAND_MAX_LENGTH = 20
CREATED_FORMAT = "%Y-%m-%d %H:%M.%S"

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_INTEGER = re.compile(r"[+-]?\d+")


@dataclass
class ListOutput:
    """One running app: its ID, ports, command and when its CLI process started."""

    app_id: str = ""
    http_port: int = 0
    grpc_port: int = 0
    app_port: int = 0
    metrics_enabled: bool = False
    command: str = ""
    age: str = ""
    created: str = ""
    pid: int = 0


@dataclass(frozen=True)
class _RunData:
    cli_pid: int
    sidecar_pid: int
    grpc_port: int
    http_port: int
    app_port: int
    app_id: str
    app_cmd: str
    enable_metrics: bool
    max_request_body_size: int


def sidecar_arguments(cmdline_items: Sequence[str]) -> dict[str, str]:
    """Pair up flags and values that follow the program name on a command line."""
    return dict(zip(cmdline_items[1::2], cmdline_items[2::2]))


def format_age(created: datetime, now: datetime) -> str:
    """Short age such as 45s, 12m, 3h or 2d."""
    seconds = max(0, int((now - created).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def truncate(text: str, max_length: int) -> str:
    """Shorten text to max_length characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _atoi(text: str | None) -> int:
    if text is None or not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    return int(text)


def _parse_bool(text: str | None) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def _executable(info: Mapping[str, Any]) -> str:
    return (info.get("name") or "").lower()


def _sidecar_run(info: Mapping[str, Any]) -> _RunData | None:
    cmdline = info.get("cmdline")
    if not cmdline:
        return None
    items = " ".join(cmdline).split()
    if len(items) <= 1:
        return None
    arguments = sidecar_arguments(items)

    try:
        http_port = _atoi(arguments.get("--dapr-http-port"))
        grpc_port = _atoi(arguments.get("--dapr-grpc-port"))
    except ValueError:
        return None

    try:
        app_port = _atoi(arguments.get("--app-port"))
    except ValueError:
        app_port = 0

    try:
        enable_metrics = _parse_bool(arguments.get("--enable-metrics"))
    except ValueError:
        enable_metrics = True

    app_id = arguments.get("--app-id", "")
    socket = arguments.get("--unix-domain-socket", "")
    app_cmd = ""
    cli_pid_text = ""
    try:
        meta = get_metadata(http_port, app_id, socket)
    except (TransportError, OSError, ValueError):
        pass
    else:
        extended = meta.get("extended") or {}
        if isinstance(extended, dict):
            app_cmd = str(extended.get("appCommand", ""))
            cli_pid_text = str(extended.get("cliPID", ""))

    try:
        cli_pid = _atoi(cli_pid_text)
        max_request_body_size = _atoi(arguments.get("--dapr-http-max-request-size"))
    except ValueError:
        return None

    return _RunData(
        cli_pid=cli_pid,
        sidecar_pid=info["pid"],
        grpc_port=grpc_port,
        http_port=http_port,
        app_port=app_port,
        app_id=app_id,
        app_cmd=app_cmd,
        enable_metrics=enable_metrics,
        max_request_body_size=max_request_body_size,
    )


def list_instances() -> list[ListOutput]:
    """All apps started by a CLI process whose sidecar reports an app ID."""
    processes = [
        proc.info for proc in psutil.process_iter(["pid", "name", "cmdline", "create_time"])
    ]

    sidecars: dict[int, _RunData] = {}
    for info in processes:
        if _executable(info) in SIDECAR_EXECUTABLES:
            run = _sidecar_run(info)
            if run is not None:
                sidecars[run.cli_pid] = run

    my_pid = os.getpid()
    now = datetime.now()
    instances = []
    for info in processes:
        if _executable(info) not in CLI_EXECUTABLES:
            continue
        pid = info["pid"]
        if pid == my_pid:
            continue
        create_time = info.get("create_time")
        if create_time is None:
            continue
        created = datetime.fromtimestamp(int(create_time))
        row = ListOutput(
            created=created.strftime(CREATED_FORMAT),
            age=format_age(created, now),
            pid=pid,
        )
        run = sidecars.get(pid)
        if run is not None:
            row.app_id = run.app_id
            row.http_port = run.http_port
            row.grpc_port = run.grpc_port
            row.app_port = run.app_port
            row.metrics_enabled = run.enable_metrics
            row.command = truncate(run.app_cmd, COMMAND_MAX_LENGTH)
        if row.app_id:
            instances.append(row)
    return instances