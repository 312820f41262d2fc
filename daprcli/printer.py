"""Status output for the command line: decorated lines, plain lines or JSON records."""

from __future__ import annotations

import enum
import itertools
import json
import re
import sys
import threading
from datetime import datetime, timezone
from typing import Callable, TextIO

_SPINNER_FRAMES = ("←", "↖", "↑", "↗", "→", "↘", "↓", "↙")
_SPINNER_INTERVAL = 0.1
_CYAN = "\x1b[36m"
_RESET = "\x1b[0m"
_ERASE_LINE = "\r\x1b[K"

_log_as_json = False


class Result(enum.Enum):
    """Outcome reported when a spinner is stopped."""

    SUCCESS = True
    FAILURE = False

    def __bool__(self) -> bool:
        return self.value


def enable_json_format() -> None:
    """Write every status event as a JSON record from now on."""
    global _log_as_json
    _log_as_json = True


def disable_json_format() -> None:
    """Go back to human-readable status lines."""
    global _log_as_json
    _log_as_json = False


def is_json_log_enabled() -> bool:
    return _log_as_json


def _is_windows() -> bool:
    return sys.platform == "win32"


def _format(fmtstr: str, args: tuple) -> str:
    if not args:
        return fmtstr
    template = re.sub(r"%[%v]", lambda m: "%%" if m.group() == "%%" else "%s", fmtstr)
    return template % args


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _log_json(stream: TextIO, status: str, message: str) -> None:
    record = {"time": _timestamp(), "status": status, "msg": message}
    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        stream.write(f"{message}\n")
        return
    stream.write(f"{line}\n")


def _emit(stream: TextIO, status: str, symbol: str, fmtstr: str, args: tuple) -> None:
    message = _format(fmtstr, args)
    if _log_as_json:
        _log_json(stream, status, message)
    elif _is_windows():
        stream.write(f"{message}\n")
    else:
        stream.write(f"{symbol}  {message}\n")


def success_status_event(stream: TextIO, fmtstr: str, *args) -> None:
    """Report a success event."""
    _emit(stream, "success", "✅", fmtstr, args)


def failure_status_event(stream: TextIO, fmtstr: str, *args) -> None:
    """Report a failure event."""
    _emit(stream, "failure", "❌", fmtstr, args)


def warning_status_event(stream: TextIO, fmtstr: str, *args) -> None:
    """Report a warning."""
    _emit(stream, "warning", "⚠", fmtstr, args)


def pending_status_event(stream: TextIO, fmtstr: str, *args) -> None:
    """Report a pending event."""
    _emit(stream, "pending", "⌛", fmtstr, args)


def info_status_event(stream: TextIO, fmtstr: str, *args) -> None:
    """Report status information."""
    _emit(stream, "info", "ℹ️", fmtstr, args)


class _Animation:
    """A terminal spinner drawn from a background thread."""

    def __init__(self, stream: TextIO, message: str) -> None:
        self._stream = stream
        self._message = message
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._draw, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _draw(self) -> None:
        for frame in itertools.cycle(_SPINNER_FRAMES):
            self._stream.write(f"\r{_CYAN}{frame}{_RESET}  {self._message}")
            self._stream.flush()
            if self._stopped.wait(_SPINNER_INTERVAL):
                break

    def stop(self) -> None:
        self._stopped.set()
        self._thread.join()
        self._stream.write(_ERASE_LINE)
        self._stream.flush()


def spinner(stream: TextIO, fmtstr: str, *args) -> Callable[[Result], None]:
    """Show progress for a task; the returned function ends it once with a result."""
    message = _format(fmtstr, args)
    animation: _Animation | None = None

    if _log_as_json:
        _log_json(stream, "pending", message)
    elif _is_windows():
        stream.write(f"{message}\n")
        return lambda result: None
    else:
        animation = _Animation(stream, message)
        animation.start()

    lock = threading.Lock()
    finished = False

    def stop(result: Result) -> None:
        nonlocal finished
        with lock:
            if finished:
                return
            finished = True
        if animation is not None:
            animation.stop()
        if result:
            success_status_event(stream, message)
        else:
            failure_status_event(stream, message)

    return stop