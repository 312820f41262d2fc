import os
import re
import socket
import sys

import pytest

from daprcli import printer
from daprcli.paths import default_components_dir_path, default_config_file_path
from daprcli.run import (
    DaprMeta,
    RunConfig,
    RunConfigError,
    generate_app_name,
    get_app_command,
    get_dapr_command,
    mtls_endpoint,
    run,
)


def _arg_value(args, key):
    value = ""
    for index, arg in enumerate(args):
        if arg == "--" + key and index + 1 < len(args):
            if not args[index + 1].startswith("--"):
                value = args[index + 1]
    return value


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    os.makedirs(default_components_dir_path())
    open(default_config_file_path(), "w").close()
    return tmp_path


@pytest.fixture
def basic_config(home):
    return RunConfig(
        app_id="MyID",
        app_port=3000,
        http_port=8000,
        grpc_port=50001,
        log_level="WARN",
        arguments=["MyCommand", "--my-arg"],
        enable_profiling=False,
        profile_port=9090,
        protocol="http",
        components_path=default_components_dir_path(),
        app_ssl=True,
        metrics_port=9001,
        max_request_body_size=-1,
        enable_api_logging=True,
    )


def _assert_common_args(config, output):
    assert output.app_id == "MyID"
    assert output.dapr_http_port == 8000
    assert output.dapr_grpc_port == 50001
    args = output.dapr_cmd.args
    assert "daprd" in args[0]
    assert _arg_value(args, "app-id") == "MyID"
    assert _arg_value(args, "dapr-http-port") == "8000"
    assert _arg_value(args, "dapr-grpc-port") == "50001"
    assert _arg_value(args, "log-level") == config.log_level
    assert _arg_value(args, "app-max-concurrency") == "-1"
    assert _arg_value(args, "app-protocol") == "http"
    assert _arg_value(args, "app-port") == "3000"
    assert _arg_value(args, "components-path") == default_components_dir_path()
    assert _arg_value(args, "app-ssl") == ""
    assert "--app-ssl" in args
    assert _arg_value(args, "metrics-port") == "9001"
    assert _arg_value(args, "dapr-http-max-request-size") == "-1"


def test_run_happy_http(basic_config):
    output = run(basic_config)
    _assert_common_args(basic_config, output)
    assert output.app_cmd.args[0] == "MyCommand"
    assert output.app_cmd.args[1] == "--my-arg"
    env = output.app_cmd.env
    assert env["DAPR_GRPC_PORT"] == "50001"
    assert env["DAPR_HTTP_PORT"] == "8000"
    assert env["DAPR_METRICS_PORT"] == "9001"
    assert env["APP_ID"] == "MyID"
    assert env["APP_PORT"] == "3000"


def test_run_without_app_command(basic_config):
    basic_config.arguments = []
    basic_config.log_level = "INFO"
    basic_config.config_file = default_config_file_path()
    output = run(basic_config)
    _assert_common_args(basic_config, output)
    assert _arg_value(output.dapr_cmd.args, "config") == default_config_file_path()
    assert "--enable-mtls" not in output.dapr_cmd.args
    assert output.app_cmd is None


def test_run_without_port(basic_config):
    basic_config.http_port = -1
    basic_config.grpc_port = -1
    basic_config.metrics_port = -1
    output = run(basic_config)
    args = output.dapr_cmd.args
    assert _arg_value(args, "dapr-http-port") not in ("", "-1")
    assert _arg_value(args, "dapr-grpc-port") not in ("", "-1")
    assert _arg_value(args, "metrics-port") not in ("", "-1")
    assert output.dapr_http_port > 0
    assert output.dapr_grpc_port > 0


def test_run_generates_app_id(basic_config):
    basic_config.app_id = ""
    output = run(basic_config)
    assert re.fullmatch(r"[A-Za-z]+-[A-Za-z]+", output.app_id)
    assert _arg_value(output.dapr_cmd.args, "app-id") == output.app_id


def test_validate_placement_default(basic_config):
    basic_config.validate()
    expected = "localhost:6050" if sys.platform == "win32" else "localhost:50005"
    assert basic_config.placement_host_addr == expected


def test_validate_placement_keeps_port(basic_config):
    basic_config.placement_host_addr = "placement:1234"
    basic_config.validate()
    assert basic_config.placement_host_addr == "placement:1234"


def test_validate_negative_app_port(basic_config):
    basic_config.app_port = -5
    basic_config.validate()
    assert basic_config.app_port == 0


def test_validate_missing_components_path(basic_config, home):
    basic_config.components_path = str(home / "missing")
    with pytest.raises(FileNotFoundError):
        basic_config.validate()


def test_validate_invalid_component_file(basic_config):
    with open(os.path.join(basic_config.components_path, "bad.yaml"), "w") as handle:
        handle.write("key: [unclosed\n")
    with pytest.raises(RunConfigError):
        basic_config.validate()


def test_validate_port_in_use(basic_config):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("", 0))
        listener.listen()
        port = listener.getsockname()[1]
        basic_config.http_port = port
        with pytest.raises(RunConfigError) as info:
            basic_config.validate()
    assert str(info.value) == f"invalid configuration for HTTPPort. Port {port} is not available"


def test_get_env_skips_unset_numbers():
    config = RunConfig(app_id="x", http_port=3500, app_port=0, grpc_port=-1)
    assert config.get_env() == {"APP_ID": "x", "DAPR_HTTP_PORT": "3500"}


def test_get_args_bool_and_empty_strings():
    config = RunConfig(app_id="x", enable_profiling=True)
    args = config.get_args()
    assert "--enable-profiling" in args
    assert "--app-ssl" not in args
    assert "--log-level" not in args
    assert _arg_value(args, "app-port") == "0"


def test_get_args_json_logging():
    printer.enable_json_format()
    try:
        args = RunConfig(app_id="x").get_args()
    finally:
        printer.disable_json_format()
    assert args[-1] == "--log-as-json"


def test_get_args_mtls(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("spec:\n  mtls:\n    enabled: true\n")
    args = RunConfig(app_id="x", config_file=str(config_file)).get_args()
    assert args[-3:] == ["--enable-mtls", "--sentry-address", "localhost:50001"]


def test_mtls_endpoint(tmp_path):
    enabled = tmp_path / "on.yaml"
    enabled.write_text("spec:\n  mtls:\n    enabled: true\n")
    disabled = tmp_path / "off.yaml"
    disabled.write_text("spec:\n  mtls:\n    enabled: false\n")
    assert mtls_endpoint(str(enabled)) == "localhost:50001"
    assert mtls_endpoint(str(disabled)) == ""
    assert mtls_endpoint(str(tmp_path / "missing.yaml")) == ""
    assert mtls_endpoint("") == ""


def test_get_dapr_command(home):
    command = get_dapr_command(RunConfig(app_id="x"))
    assert command.args[0] == command.path
    assert os.path.basename(command.path).startswith("daprd")
    assert _arg_value(command.args, "app-id") == "x"


def test_get_app_command_none_without_arguments():
    assert get_app_command(RunConfig()) is None


def test_dapr_meta_ports():
    meta = DaprMeta(existing_ports={12345})
    assert meta.port_exists(12345) is True
    assert meta.port_exists(0) is False
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("", 0))
        free = probe.getsockname()[1]
    assert meta.port_exists(free) is False
    assert free in meta.existing_ports
    assert meta.port_exists(free) is True


def test_dapr_meta_ids():
    meta = DaprMeta(existing_ids={"taken"})
    assert meta.id_exists("taken") is True
    assert meta.id_exists("free") is False
    new_id = meta.new_app_id()
    assert " " not in new_id
    assert new_id not in meta.existing_ids


def test_generate_app_name_has_two_words():
    words = generate_app_name().split(" ")
    assert len(words) == 2
    assert all(word[0].isupper() for word in words)