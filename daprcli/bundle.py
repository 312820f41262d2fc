"""Details file shipped with an offline installation bundle."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields

BUNDLE_DETAILS_FILE_NAME = "details.json"

_JSON_KEYS = {
    "runtime_version": "daprd",
    "dashboard_version": "dashboard",
    "cli_version": "cli",
    "binary_sub_dir": "daprBinarySubDir",
    "image_sub_dir": "dockerImageSubDir",
    "dapr_image_name": "daprImageName",
    "dapr_image_file_name": "daprImageFileName",
}

_REQUIRED = (
    "runtime_version",
    "dashboard_version",
    "dapr_image_name",
    "dapr_image_file_name",
    "binary_sub_dir",
    "image_sub_dir",
)


class BundleError(ValueError):
    """The bundle details file is malformed or incomplete."""


@dataclass(frozen=True)
class BundleDetails:
    runtime_version: str | None = None
    dashboard_version: str | None = None
    cli_version: str | None = None
    binary_sub_dir: str | None = None
    image_sub_dir: str | None = None
    dapr_image_name: str | None = None
    dapr_image_file_name: str | None = None

    @property
    def placement_image_name(self) -> str | None:
        return self.dapr_image_name

    @property
    def placement_image_file_name(self) -> str | None:
        return self.dapr_image_file_name


def _is_blank(value: str | None) -> bool:
    return value is None or value.strip() == ""


def read_bundle_details(details_file_path: str) -> BundleDetails:
    """Read and validate a details file; raises BundleError if it is unusable."""
    with open(details_file_path, encoding="utf-8") as handle:
        raw = handle.read()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BundleError(f"cannot parse {details_file_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise BundleError(f"cannot parse {details_file_path}: expected a JSON object")

    values = {}
    for attr in (f.name for f in fields(BundleDetails)):
        key = _JSON_KEYS[attr]
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise BundleError(f"cannot parse {details_file_path}: {key} must be a string")
        values[attr] = value

    details = BundleDetails(**values)
    if any(_is_blank(getattr(details, attr)) for attr in _REQUIRED):
        raise BundleError(f"required fields are missing in {details_file_path}")
    return details