"""Clean-up of the deprecated local run-data file."""

from __future__ import annotations

import os
import tempfile
import time
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator

import psutil

RUN_DATA_FILE = "dapr-run-data.ldj"
RUN_DATA_LOCK_FILE = "dapr-run-data.lock"

_LOCK_ATTEMPTS = 10
_LOCK_RETRY_DELAY = 0.05


class LockUnavailableError(RuntimeError):
    """The run-data lock is held by another live process."""


@dataclass
class RunData:
    dapr_run_id: str
    dapr_http_port: int
    dapr_grpc_port: int
    app_id: str
    app_port: int
    command: str
    created: datetime
    pid: int


def _create_lock(lock_path: str) -> bool:
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return False
    with os.fdopen(fd, "w") as handle:
        handle.write(f"{os.getpid()}\n")
    return True


def _lock_owner(lock_path: str) -> int | None:
    try:
        with open(lock_path, encoding="utf-8") as handle:
            return int(handle.read().strip())
    except (OSError, ValueError):
        return None


def _try_lock(lock_path: str) -> bool:
    if _create_lock(lock_path):
        return True
    owner = _lock_owner(lock_path)
    if owner == os.getpid():
        return True
    if owner is not None and owner > 0 and psutil.pid_exists(owner):
        return False
    # The owner is gone or the file is unreadable: the lock is stale.
    with suppress(FileNotFoundError):
        os.remove(lock_path)
    return _create_lock(lock_path)


@contextmanager
def _run_data_lock(directory: str) -> Iterator[None]:
    lock_path = os.path.join(os.path.abspath(directory), RUN_DATA_LOCK_FILE)
    for _ in range(_LOCK_ATTEMPTS):
        if _try_lock(lock_path):
            break
        time.sleep(_LOCK_RETRY_DELAY)
    else:
        raise LockUnavailableError(f"cannot acquire lock {lock_path}")
    try:
        yield
    finally:
        with suppress(FileNotFoundError):
            os.remove(lock_path)


def delete_run_data_file(directory: str | None = None) -> None:
    """Delete the deprecated run-data file under the lock; the directory defaults to the temp dir."""
    directory = directory or tempfile.gettempdir()
    with _run_data_lock(directory):
        os.remove(os.path.join(directory, RUN_DATA_FILE))