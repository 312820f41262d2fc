import json
import os
import threading
import time
from datetime import datetime, timedelta
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace
from unittest import mock

import pytest

from daprcli.listing import (
    ListOutput,
    format_age,
    list_instances,
    sidecar_arguments,
    truncate,
)

CLI_PID = 4242


@pytest.fixture
def metadata_server():
    payload = json.dumps(
        {"id": "myapp", "extended": {"cliPID": str(CLI_PID), "appCommand": "python app.py"}}
    ).encode()

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address[1]
    server.shutdown()
    server.server_close()


def _proc(pid, name, cmdline=None, create_time=None):
    return SimpleNamespace(
        info={"pid": pid, "name": name, "cmdline": cmdline, "create_time": create_time}
    )


def _sidecar(port, with_size=True):
    cmdline = [
        "daprd",
        "--app-id", "myapp",
        "--dapr-http-port", str(port),
        "--dapr-grpc-port", "50001",
        "--app-port", "3000",
    ]
    if with_size:
        cmdline += ["--dapr-http-max-request-size", "4"]
    return _proc(111, "daprd", cmdline)


def test_sidecar_arguments_pairs():
    items = ["daprd", "--app-id", "x", "--dapr-http-port", "3500"]
    assert sidecar_arguments(items) == {"--app-id": "x", "--dapr-http-port": "3500"}


def test_sidecar_arguments_ignores_dangling_flag():
    items = ["daprd", "--app-id", "x", "--enable-metrics"]
    assert sidecar_arguments(items) == {"--app-id": "x"}


def test_sidecar_arguments_program_only():
    assert sidecar_arguments(["daprd"]) == {}


def test_format_age_units():
    now = datetime(2024, 1, 10, 12, 0, 0)
    assert format_age(now - timedelta(seconds=30), now) == "30s"
    assert format_age(now - timedelta(minutes=5), now) == "5m"
    assert format_age(now - timedelta(days=2), now) == "2d"


def test_format_age_is_never_negative():
    now = datetime(2024, 1, 10, 12, 0, 0)
    assert format_age(now + timedelta(seconds=5), now) == format_age(now, now)


def test_truncate_short_text_unchanged():
    assert truncate("short", 20) == "short"


def test_truncate_long_text():
    text = "python my_long_application_name.py --flag"
    result = truncate(text, 20)
    assert len(result) == 20
    assert result.endswith("...")
    assert text.startswith(result[:-3])


def test_list_instances_links_cli_and_sidecar(metadata_server):
    port = metadata_server
    procs = [_sidecar(port), _proc(CLI_PID, "dapr", ["dapr", "run"], time.time() - 120)]
    with mock.patch("psutil.process_iter", return_value=procs):
        rows = list_instances()
    assert len(rows) == 1
    row = rows[0]
    assert isinstance(row, ListOutput)
    assert row.app_id == "myapp"
    assert row.http_port == port
    assert row.grpc_port == 50001
    assert row.app_port == 3000
    assert row.metrics_enabled is True
    assert row.command == "python app.py"
    assert row.pid == CLI_PID


def test_list_instances_skips_sidecar_without_request_size(metadata_server):
    procs = [
        _sidecar(metadata_server, with_size=False),
        _proc(CLI_PID, "dapr", ["dapr", "run"], time.time()),
    ]
    with mock.patch("psutil.process_iter", return_value=procs):
        assert list_instances() == []


def test_list_instances_skips_own_process(metadata_server):
    procs = [_proc(os.getpid(), "dapr", ["dapr", "list"], time.time())]
    with mock.patch("psutil.process_iter", return_value=procs):
        assert list_instances() == []


def test_list_instances_cli_without_sidecar():
    procs = [_proc(CLI_PID, "DAPR.EXE", ["dapr"], time.time())]
    with mock.patch("psutil.process_iter", return_value=procs):
        assert list_instances() == []