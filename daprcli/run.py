"""Configuration and commands for running an app together with its sidecar."""

from __future__ import annotations

import os
import random
import shutil
import socket
import sys
from dataclasses import dataclass, field, fields
from typing import Any

import yaml

from daprcli import printer
from daprcli.listing import list_instances
from daprcli.paths import Command, binary_file_path, default_dapr_bin_path

SENTRY_DEFAULT_ADDRESS = "localhost:50001"

_ADJECTIVES = (
    "Amber", "Bold", "Brave", "Calm", "Clever", "Crimson", "Dusty", "Eager",
    "Fancy", "Gentle", "Golden", "Happy", "Hidden", "Jolly", "Lively", "Lucky",
    "Mellow", "Misty", "Noble", "Proud", "Quiet", "Rapid", "Silent", "Silver",
    "Swift", "Tidy", "Velvet", "Wild", "Witty", "Zesty",
)
_NOUNS = (
    "Badger", "Bear", "Comet", "Eagle", "Falcon", "Fox", "Glacier", "Hawk",
    "Heron", "Lion", "Lynx", "Meadow", "Moose", "Otter", "Owl", "Panda",
    "Pine", "Raven", "River", "Robin", "Salmon", "Sparrow", "Storm", "Tiger",
    "Walrus", "Whale", "Willow", "Wolf", "Yak", "Zebra",
)


class RunConfigError(ValueError):
    """The run configuration cannot be used."""


def _opt(default: Any, arg: str | None = None, env: str | None = None) -> Any:
    metadata = {}
    if arg:
        metadata["arg"] = arg
    if env:
        metadata["env"] = env
    return field(default=default, metadata=metadata)


def _is_windows() -> bool:
    return sys.platform == "win32"


def generate_app_name() -> str:
    """A random two-word name such as 'Brave Falcon'."""
    return f"{random.choice(_ADJECTIVES)} {random.choice(_NOUNS)}"


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]


@dataclass
class DaprMeta:
    """App IDs and ports already taken by running instances."""

    existing_ids: set[str] = field(default_factory=set)
    existing_ports: set[int] = field(default_factory=set)

    def id_exists(self, app_id: str) -> bool:
        return app_id in self.existing_ids

    def port_exists(self, port: int) -> bool:
        """True if the port is taken; a port found free is recorded as taken from now on."""
        if port <= 0:
            return False
        if port in self.existing_ports:
            return True
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            if not _is_windows():
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind(("", port))
                sock.listen()
            except OSError:
                return True
        self.existing_ports.add(port)
        return False

    def new_app_id(self) -> str:
        """A generated app ID that no running instance uses."""
        while True:
            app_id = generate_app_name().replace(" ", "-")
            if not self.id_exists(app_id):
                return app_id


def new_dapr_meta() -> DaprMeta:
    """IDs and ports of the instances running on this machine."""
    meta = DaprMeta()
    for instance in list_instances():
        meta.existing_ids.add(instance.app_id)
        meta.existing_ports.update((instance.app_port, instance.http_port, instance.grpc_port))
    return meta


def _load_components(path: str) -> list[dict]:
    components = []
    with os.scandir(path) as entries:
        files = sorted(e.path for e in entries if e.is_file())
    for file_path in files:
        if not file_path.endswith((".yaml", ".yml")):
            continue
        with open(file_path, encoding="utf-8") as handle:
            text = handle.read()
        try:
            documents = list(yaml.safe_load_all(text))
        except yaml.YAMLError as exc:
            raise RunConfigError(f"invalid component file {file_path}: {exc}") from exc
        components.extend(
            doc for doc in documents if isinstance(doc, dict) and doc.get("kind") == "Component"
        )
    return components


@dataclass
class RunConfig:
    """Parameters of an app and its sidecar."""

    app_id: str = _opt("", arg="app-id", env="APP_ID")
    app_port: int = _opt(0, arg="app-port", env="APP_PORT")
    http_port: int = _opt(0, arg="dapr-http-port", env="DAPR_HTTP_PORT")
    grpc_port: int = _opt(0, arg="dapr-grpc-port", env="DAPR_GRPC_PORT")
    config_file: str = _opt("", arg="config")
    protocol: str = _opt("", arg="app-protocol")
    arguments: list[str] = field(default_factory=list)
    enable_profiling: bool = _opt(False, arg="enable-profiling")
    profile_port: int = _opt(0, arg="profile-port")
    log_level: str = _opt("", arg="log-level")
    max_concurrency: int = _opt(0, arg="app-max-concurrency")
    placement_host_addr: str = _opt("", arg="placement-host-address")
    components_path: str = _opt("", arg="components-path")
    app_ssl: bool = _opt(False, arg="app-ssl")
    metrics_port: int = _opt(0, arg="metrics-port", env="DAPR_METRICS_PORT")
    max_request_body_size: int = _opt(0, arg="dapr-http-max-request-size")
    unix_domain_socket: str = _opt("", arg="unix-domain-socket")
    enable_api_logging: bool = _opt(False, arg="enable-api-logging")

    def _validate_component_path(self) -> None:
        os.stat(self.components_path)
        _load_components(self.components_path)

    def _validate_placement_host_addr(self) -> None:
        address = self.placement_host_addr or "localhost"
        if ":" not in address:
            address += ":6050" if _is_windows() else ":50005"
        self.placement_host_addr = address

    @staticmethod
    def _validate_port(name: str, port: int, meta: DaprMeta) -> int:
        if port <= 0:
            return _free_port()
        if meta.port_exists(port):
            raise RunConfigError(f"invalid configuration for {name}. Port {port} is not available")
        return port

    def validate(self) -> None:
        """Fill in defaults and check the configuration; raises on an unusable one."""
        meta = new_dapr_meta()
        if not self.app_id:
            self.app_id = meta.new_app_id()

        self._validate_component_path()

        if self.app_port < 0:
            self.app_port = 0

        self.http_port = self._validate_port("HTTPPort", self.http_port, meta)
        self.grpc_port = self._validate_port("GRPCPort", self.grpc_port, meta)
        self.metrics_port = self._validate_port("MetricsPort", self.metrics_port, meta)
        if self.enable_profiling:
            self.profile_port = self._validate_port("ProfilePort", self.profile_port, meta)

        if self.max_concurrency < 1:
            self.max_concurrency = -1
        if self.max_request_body_size < 0:
            self.max_request_body_size = -1

        self._validate_placement_host_addr()

    def get_args(self) -> list[str]:
        """Command-line arguments of the sidecar."""
        args: list[str] = []
        for f in fields(self):
            key = f.metadata.get("arg")
            if not key:
                continue
            flag = f"--{key}"
            value = getattr(self, f.name)
            if isinstance(value, bool):
                if value:
                    args.append(flag)
            else:
                text = str(value)
                if text:
                    args += [flag, text]

        if self.config_file:
            sentry_address = mtls_endpoint(self.config_file)
            if sentry_address:
                args += ["--enable-mtls", "--sentry-address", sentry_address]

        if printer.is_json_log_enabled():
            args.append("--log-as-json")
        return args

    def get_env(self) -> dict[str, str]:
        """Environment variables handed to the app; unset numbers are left out."""
        env: dict[str, str] = {}
        for f in fields(self):
            key = f.metadata.get("env")
            if not key:
                continue
            value = getattr(self, f.name)
            if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
                continue
            env[key] = str(value)
        return env


@dataclass
class RunOutput:
    dapr_cmd: Command
    dapr_http_port: int
    dapr_grpc_port: int
    app_id: str
    app_cmd: Command | None = None
    dapr_err: BaseException | None = None
    app_err: BaseException | None = None


def mtls_endpoint(config_file: str) -> str:
    """The sentry address if the configuration file enables mTLS, else an empty string."""
    if not config_file:
        return ""
    try:
        with open(config_file, encoding="utf-8") as handle:
            config = yaml.safe_load(handle)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return ""
    if not isinstance(config, dict):
        return ""
    spec = config.get("spec")
    mtls = spec.get("mtls") if isinstance(spec, dict) else None
    if isinstance(mtls, dict) and mtls.get("enabled") is True:
        return SENTRY_DEFAULT_ADDRESS
    return ""


def get_dapr_command(config: RunConfig) -> Command:
    """The sidecar command from the default install location."""
    daprd = binary_file_path(default_dapr_bin_path(), "daprd")
    return Command(path=daprd, args=[daprd, *config.get_args()])


def get_app_command(config: RunConfig) -> Command | None:
    """The app's command with the sidecar settings in its environment, if there is one."""
    if not config.arguments:
        return None
    program = config.arguments[0]
    return Command(
        path=shutil.which(program) or program,
        args=list(config.arguments),
        env={**os.environ, **config.get_env()},
    )


def run(config: RunConfig) -> RunOutput:
    """Validate the configuration and build the sidecar and app commands."""
    config.validate()
    return RunOutput(
        dapr_cmd=get_dapr_command(config),
        app_cmd=get_app_command(config),
        app_id=config.app_id,
        dapr_http_port=config.http_port,
        dapr_grpc_port=config.grpc_port,
    )