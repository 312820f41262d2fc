"""Chart values and version checks used when upgrading a cluster installation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from packaging.version import Version

from daprcli.docker import run_cmd_and_wait

OPERATOR_NAME = "dapr-operator"

CRDS = ("components", "configuration", "subscription")

CRDS_FULL_RESOURCES = (
    "components.dapr.io",
    "configurations.dapr.io",
    "subscriptions.dapr.io",
)

_CRD_URL = "https://raw.githubusercontent.com/dapr/dapr/{version}/charts/dapr/crds/{crd}.yaml"
_MAX_INDEX = 65536
_INDEXED_SEGMENT = re.compile(r"^(.*?)((?:\[\d+\])*)$", re.DOTALL)
_INDEX = re.compile(r"\[(\d+)\]")


@dataclass
class UpgradeConfig:
    runtime_version: str
    args: list[str] = field(default_factory=list)
    timeout: int = 300


def _split_unescaped(text: str, sep: str, *, track_braces: bool = False, maxsplit: int = -1) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    escaped = False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\":
            current.append(ch)
            escaped = True
            continue
        if track_braces:
            if ch == "{":
                depth += 1
            elif ch == "}" and depth:
                depth -= 1
        if ch == sep and depth == 0 and maxsplit != 0:
            parts.append("".join(current))
            current = []
            maxsplit -= 1
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text, flags=re.DOTALL)


def _typed(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    if value == "0":
        return 0
    if value and value[0] != "0" and re.fullmatch(r"[+-]?\d+", value):
        number = int(value)
        if -(2**63) <= number < 2**63:
            return number
    return value


def _parse_value(raw: str) -> Any:
    if raw.startswith("{") and raw.endswith("}") and len(raw) >= 2:
        inner = raw[1:-1]
        if inner == "":
            return []
        return [_typed(_unescape(item)) for item in _split_unescaped(inner, ",")]
    return _typed(_unescape(raw))


def _parse_key(key: str) -> list[tuple[str, list[int]]]:
    path = []
    for segment in _split_unescaped(key, "."):
        match = _INDEXED_SEGMENT.match(segment)
        name, index_text = match.group(1), match.group(2)
        indices = [int(i) for i in _INDEX.findall(index_text)]
        for index in indices:
            if index > _MAX_INDEX:
                raise ValueError(f"index of {index} is greater than maximum supported index {_MAX_INDEX}")
        path.append((_unescape(name), indices))
    return path


def _assign(container: dict, path: list[tuple[str, list[int]]], value: Any) -> None:
    name, indices = path[0]
    rest = path[1:]
    if not indices:
        if not rest:
            container[name] = value
            return
        child = container.get(name)
        if not isinstance(child, dict):
            child = {}
            container[name] = child
        _assign(child, rest, value)
        return
    items = container.get(name)
    if not isinstance(items, list):
        items = []
        container[name] = items
    _assign_indexed(items, indices, rest, value)


def _assign_indexed(items: list, indices: list[int], rest: list, value: Any) -> None:
    index = indices[0]
    if len(items) <= index:
        items.extend([None] * (index + 1 - len(items)))
    if len(indices) > 1:
        child = items[index] if isinstance(items[index], list) else []
        items[index] = child
        _assign_indexed(child, indices[1:], rest, value)
    elif rest:
        child = items[index] if isinstance(items[index], dict) else {}
        items[index] = child
        _assign(child, rest, value)
    else:
        items[index] = value


def parse_into(value: str, target: dict) -> None:
    """Merge a `key.path=value,other=value` setting into nested chart values."""
    entries = _split_unescaped(value, ",", track_braces=True)
    for position, entry in enumerate(entries):
        if entry == "" and position == len(entries) - 1:
            continue
        pair = _split_unescaped(entry, "=", maxsplit=1)
        if len(pair) < 2:
            raise ValueError(f'key "{_unescape(entry)}" has no value')
        key, raw = pair
        if key == "":
            raise ValueError(f'key for value "{_unescape(raw)}" is empty')
        _assign(target, _parse_key(key), _parse_value(raw))


def high_availability_enabled(status: Iterable[Any]) -> bool:
    """True if any control-plane service runs more than one replica."""
    return any(s.replicas > 1 for s in status)


def upgrade_chart_values(
    ca: str,
    issuer_cert: str,
    issuer_key: str,
    ha_mode: bool,
    mtls: bool,
    args: Iterable[str],
) -> dict[str, Any]:
    """Chart values for an upgrade: user settings plus trust chain and HA settings."""
    settings = list(args)
    if mtls and ca and issuer_cert and issuer_key:
        settings += [
            f"dapr_sentry.tls.root.certPEM={ca}",
            f"dapr_sentry.tls.issuer.certPEM={issuer_cert}",
            f"dapr_sentry.tls.issuer.keyPEM={issuer_key}",
        ]
    else:
        settings.append("global.mtls.enabled=false")

    if ha_mode:
        settings.append("global.ha.enabled=true")

    chart_values: dict[str, Any] = {}
    for setting in settings:
        parse_into(setting, chart_values)
    return chart_values


def is_downgrade(target_version: str, existing_version: str) -> bool:
    """True if the target version is older than the one installed."""
    return Version(target_version) < Version(existing_version)


def apply_crds(version: str) -> None:
    """Apply the custom resource definitions of a release with kubectl."""
    for crd in CRDS:
        url = _CRD_URL.format(version=version, crd=crd)
        run_cmd_and_wait("kubectl", "apply", "-f", url)