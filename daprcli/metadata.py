"""Reading and writing the metadata of an app's sidecar."""

from __future__ import annotations

import json
import os
import stat
import time
from typing import Any

from daprcli.paths import socket_path
from daprcli.transport import TransportError, request

RUNTIME_API_VERSION = "1.0"

_PUT_RETRY_MAX = 4
_PUT_WAIT_MIN = 1.0
_PUT_WAIT_MAX = 30.0


def metadata_get_endpoint(http_port: int) -> str:
    if http_port == 0:
        return f"http://unix/v{RUNTIME_API_VERSION}/metadata"
    return f"http://127.0.0.1:{http_port}/v{RUNTIME_API_VERSION}/metadata"


def metadata_put_endpoint(http_port: int, key: str) -> str:
    if http_port == 0:
        return f"http://unix/v{RUNTIME_API_VERSION}/metadata/{key}"
    return f"http://127.0.0.1:{http_port}/v{RUNTIME_API_VERSION}/metadata/{key}"


def _parse_metadata(body: bytes) -> dict[str, Any]:
    data = json.loads(body)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("metadata response is not a JSON object")
    return data


def get_metadata(http_port: int, app_id: str, socket: str = "") -> dict[str, Any]:
    """Fetch a sidecar's metadata; socket may be a socket file or its directory."""
    url = metadata_get_endpoint(http_port)
    unix_socket = None
    if socket:
        info = os.stat(socket)
        if stat.S_ISDIR(info.st_mode):
            socket = socket_path(socket, app_id, "http")
        unix_socket = socket
    response = request("GET", url, unix_socket=unix_socket)
    return _parse_metadata(response.body)


def _should_retry(status: int) -> bool:
    return status == 0 or status >= 500


def _backoff(attempt: int) -> float:
    return min(_PUT_WAIT_MIN * 2**attempt, _PUT_WAIT_MAX)


def put_metadata(http_port: int, key: str, value: str, app_id: str, socket: str = "") -> None:
    """Set one metadata attribute, retrying on connection errors and server errors."""
    url = metadata_put_endpoint(http_port, key)
    unix_socket = socket_path(socket, app_id, "http") if socket else None
    body = value.encode("utf-8")
    attempts = _PUT_RETRY_MAX + 1

    for attempt in range(attempts):
        try:
            response = request("PUT", url, body=body, unix_socket=unix_socket)
        except TransportError:
            pass
        else:
            if not _should_retry(response.status):
                return
        if attempt < attempts - 1:
            time.sleep(_backoff(attempt))

    raise TransportError(f"PUT {url} giving up after {attempts} attempts")