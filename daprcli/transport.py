"""Minimal HTTP client that talks over TCP or a Unix domain socket."""

from __future__ import annotations

import http.client
import socket
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import urlsplit


class TransportError(Exception):
    """A request could not be sent or its response could not be read."""


@dataclass(frozen=True)
class Response:
    """A complete HTTP response; header names are lower case."""

    status: int
    reason: str
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def status_line(self) -> str:
        return f"{self.status} {self.reason}"

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class _UnixHTTPConnection(http.client.HTTPConnection):
    def __init__(self, socket_file: str, host: str, port: int | None) -> None:
        super().__init__(host, port)
        self._socket_file = socket_file

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self._socket_file)
        except OSError:
            sock.close()
            raise
        self.sock = sock


def request(
    method: str,
    url: str,
    body: bytes | str | None = None,
    headers: Mapping[str, str] | None = None,
    unix_socket: str | None = None,
) -> Response:
    """Send one HTTP request; with unix_socket the connection goes to that socket."""
    parts = urlsplit(url)
    if parts.scheme != "http":
        raise TransportError(f"unsupported URL scheme in {url!r}")
    target = parts.path or "/"
    if parts.query:
        target += f"?{parts.query}"
    if isinstance(body, str):
        body = body.encode("utf-8")

    try:
        port = parts.port
    except ValueError as exc:
        raise TransportError(f"invalid URL {url!r}: {exc}") from exc
    host = parts.hostname or "localhost"

    if unix_socket:
        conn: http.client.HTTPConnection = _UnixHTTPConnection(unix_socket, host, port)
    else:
        conn = http.client.HTTPConnection(host, port)

    try:
        conn.request(method, target, body=body, headers=dict(headers or {}))
        raw = conn.getresponse()
        payload = raw.read()
        return Response(
            status=raw.status,
            reason=raw.reason,
            body=payload,
            headers={name.lower(): value for name, value in raw.getheaders()},
        )
    except (OSError, http.client.HTTPException) as exc:
        raise TransportError(f"{method} {url}: {exc}") from exc
    finally:
        conn.close()