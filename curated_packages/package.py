"""Package resources: the desired and observed state of an installed package."""

from __future__ import annotations

import datetime
import os
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml

PACKAGE_KIND = "Package"
PACKAGE_NAMESPACE = "eksa-packages"
NAMESPACE_PREFIX = PACKAGE_NAMESPACE + "-"
CLUSTER_NAME_ENV_VAR = "CLUSTER_NAME"


def _join_path(*parts: str) -> str:
    """Join non-empty slash-separated parts and clean the result."""
    elements = [part for part in parts if part]
    if not elements:
        return ""
    cleaned = posixpath.normpath("/".join(elements))
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _as_json_value(value: Any) -> Any:
    """Normalise a loaded YAML value to what a JSON document would hold."""
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, int):
        return float(value)
    if isinstance(value, float):
        return value
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): _as_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_as_json_value(item) for item in value]
    return str(value)


@dataclass
class ObjectMeta:
    """Name and namespace identifying a resource."""

    name: str = ""
    namespace: str = ""


@dataclass
class PackageSpec:
    """Desired state of a package."""

    package_name: str = ""
    package_version: str = ""
    config: str = ""
    target_namespace: str = ""


class StateEnum(str, Enum):
    INITIALIZING = "initializing"
    INSTALLING = "installing"
    INSTALLING_DEPENDENCIES = "installing dependencies"
    INSTALLED = "installed"
    UPDATING = "updating"
    UNINSTALLING = "uninstalling"
    UNKNOWN = "unknown"


@dataclass
class PackageOCISource:
    """Location of a specific package version in an OCI registry."""

    version: str = ""
    registry: str = ""
    repository: str = ""
    digest: str = ""

    def chart_uri(self) -> str:
        return "oci://" + _join_path(self.registry, self.repository)


@dataclass
class PackageAvailableUpgrade:
    """An upgraded version of a package offered by the bundle."""

    version: str = ""
    tag: str = ""


@dataclass
class PackageStatus:
    """Observed state of a package."""

    source: PackageOCISource = field(default_factory=PackageOCISource)
    current_version: str = ""
    target_version: str = ""
    state: StateEnum | None = None
    detail: str = ""
    upgrades_available: list[PackageAvailableUpgrade] = field(default_factory=list)
    spec: PackageSpec = field(default_factory=PackageSpec)


@dataclass
class Package:
    """A package installation request and its status."""

    kind: str = ""
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PackageSpec = field(default_factory=PackageSpec)
    status: PackageStatus = field(default_factory=PackageStatus)

    def get_values(self) -> dict[str, Any]:
        """Parse the spec's configuration into a mapping of values."""
        try:
            loaded = yaml.safe_load(self.spec.config)
        except yaml.YAMLError as exc:
            raise ValueError(f"error converting YAML to JSON: {exc}") from exc
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ValueError(
                f"cannot unmarshal {type(loaded).__name__} into a mapping of values"
            )
        return _as_json_value(loaded)

    def cluster_name(self) -> str:
        namespace = self.metadata.namespace
        if namespace.startswith(NAMESPACE_PREFIX):
            return namespace[len(NAMESPACE_PREFIX):]
        return ""

    def is_old_namespace(self) -> bool:
        return self.cluster_name() == ""

    def is_valid_namespace(self) -> bool:
        namespace = self.metadata.namespace
        return namespace.startswith(NAMESPACE_PREFIX) or namespace == PACKAGE_NAMESPACE

    def is_installed_on_workload(self) -> bool:
        """True if the package targets a cluster other than the management cluster."""
        management_cluster = os.environ.get(CLUSTER_NAME_ENV_VAR, "")
        return management_cluster != self.cluster_name()


def new_package(package_name: str, name: str, namespace: str, config: str) -> Package:
    return Package(
        kind=PACKAGE_KIND,
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=PackageSpec(package_name=package_name, config=config),
    )