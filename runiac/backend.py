"""Terraform backend declarations and saved-plan documents."""

from __future__ import annotations

import json
import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from runiac.execution import LoggerLike, RegionDeployType


class BackendType(Enum):
    """Kind of Terraform state backend."""

    S3 = "s3"
    AZURERM = "azurerm"
    GCS = "gcs"
    LOCAL = "local"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


_KNOWN_BACKENDS = {
    "s3": BackendType.S3,
    "azurerm": BackendType.AZURERM,
    "gcs": BackendType.GCS,
    "local": BackendType.LOCAL,
}


def string_to_backend_type(name: str) -> BackendType:
    """Return the backend type named ``name``; raise ValueError for unknown names."""
    try:
        return _KNOWN_BACKENDS[name]
    except KeyError:
        raise ValueError(f"Invalid backend string: {name!r}") from None


@dataclass
class S3AssumeRole:
    """The assume_role block of an S3 backend."""

    role_arn: str = ""


@dataclass
class TerraformBackend:
    """The settings declared in a backend.tf file."""

    type: BackendType = BackendType.LOCAL
    key: str = ""
    assume_role: S3AssumeRole = field(default_factory=S3AssumeRole)
    s3_bucket: str = ""
    azu_resource_group_name: str = ""
    azu_storage_account_name: str = ""
    gcs_bucket: str = ""
    gcs_prefix: str = ""
    path: str = ""
    config: dict[str, Any] = field(default_factory=dict)


_BACKEND_MARKER = 'backend "'


def _field(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern + r'\s*=\s*"(.+)"')


_KEY = _field("key")
_ROLE_ARN = _field("role_arn")
_BUCKET = _field("bucket")
_PREFIX = _field("prefix")
_RESOURCE_GROUP = _field("resource_group_name")
_STORAGE_ACCOUNT = _field("storage_account_name")
_PATH = _field("path")


def _first(pattern: re.Pattern[str], text: str) -> str:
    match = pattern.search(text)
    return match.group(1) if match else ""


def parse_tf_backend(logger: LoggerLike, path: str) -> TerraformBackend:
    """Read the backend declared in the file at ``path``.

    A file that cannot be read yields a local backend. A file without a
    backend block, or with an unknown backend type, raises ValueError.
    """
    backend = TerraformBackend()
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as err:
        logger.error("Unable to read backend file %s: %s", path, err)
        backend.type = BackendType.LOCAL
        return backend

    parts = text.split(_BACKEND_MARKER)
    if len(parts) < 2:
        raise ValueError(f"no backend block found in {path}")
    type_name = parts[1].split('"')[0]
    try:
        backend.type = string_to_backend_type(type_name)
    except ValueError:
        logger.error("Invalid backend type: %s", type_name)
        raise

    backend.key = _first(_KEY, text)
    backend.assume_role.role_arn = _first(_ROLE_ARN, text)

    bucket = _first(_BUCKET, text)
    if bucket:
        if backend.type is BackendType.S3:
            backend.s3_bucket = bucket
        elif backend.type is BackendType.GCS:
            backend.gcs_bucket = bucket

    if backend.type is BackendType.GCS:
        backend.gcs_prefix = _first(_PREFIX, text)

    backend.azu_resource_group_name = _first(_RESOURCE_GROUP, text)
    backend.azu_storage_account_name = _first(_STORAGE_ACCOUNT, text)
    backend.path = _first(_PATH, text)
    return backend


def state_file_name(
    name: str,
    namespace: str,
    ring: str,
    environment: str,
    region: str,
    region_type: RegionDeployType,
) -> str:
    """Return the state file name for a step, namespaced and split by region."""
    result = f"{namespace}-{name}" if namespace else name
    if region != "us-east-1" or region_type is RegionDeployType.REGIONAL:
        result = posixpath.normpath(posixpath.join(result, f"{region_type.value}-{region}"))
    return result


@dataclass
class Change:
    """A proposed change to one object."""

    actions: list[str] = field(default_factory=list)
    before: Any = None
    after: Any = None
    after_unknown: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Change:
        data = data or {}
        return cls(
            actions=list(data.get("actions") or []),
            before=data.get("before"),
            after=data.get("after"),
            after_unknown=data.get("after_unknown"),
        )


@dataclass
class ResourceChange:
    """A planned change to one resource instance."""

    address: str = ""
    module_address: str = ""
    mode: str = ""
    type: str = ""
    name: str = ""
    provider_name: str = ""
    deposed: str = ""
    change: Change = field(default_factory=Change)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceChange:
        return cls(
            address=data.get("address", ""),
            module_address=data.get("module_address", ""),
            mode=data.get("mode", ""),
            type=data.get("type", ""),
            name=data.get("name", ""),
            provider_name=data.get("provider_name", ""),
            deposed=data.get("deposed", ""),
            change=Change.from_dict(data.get("change")),
        )


@dataclass
class Plan:
    """The JSON form of a saved Terraform plan."""

    format_version: str = ""
    terraform_version: str = ""
    resource_changes: list[ResourceChange] = field(default_factory=list)
    output_changes: dict[str, Change] = field(default_factory=dict)
    prior_state: Any = None
    configuration: Any = None


def parse_plan(text: str) -> Plan:
    """Parse the output of ``terraform show -json``; raise ValueError if malformed."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("terraform plan is not a JSON object")
    return Plan(
        format_version=data.get("format_version", ""),
        terraform_version=data.get("terraform_version", ""),
        resource_changes=[
            ResourceChange.from_dict(item) for item in data.get("resource_changes") or []
        ],
        output_changes={
            key: Change.from_dict(value)
            for key, value in (data.get("output_changes") or {}).items()
        },
        prior_state=data.get("prior_state"),
        configuration=data.get("configuration"),
    )