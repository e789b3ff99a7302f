"""Package bundle controllers: which bundle a cluster sources packages from."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum

from curated_packages.package import PACKAGE_NAMESPACE, ObjectMeta, _join_path

PACKAGE_BUNDLE_CONTROLLER_KIND = "PackageBundleController"
DEFAULT_REGISTRY = "public.ecr.aws/eks-anywhere"
DEFAULT_IMAGE_REGISTRY = "783794618700.dkr.ecr.us-west-2.amazonaws.com"


@dataclass(frozen=True)
class GroupVersion:
    """API group and version under which the resources are registered."""

    group: str
    version: str

    def __str__(self) -> str:
        return f"{self.group}/{self.version}"


GROUP_VERSION = GroupVersion(group="packages.eks.amazonaws.com", version="v1alpha1")


@dataclass
class PackageBundleControllerSpec:
    """Desired state of a package bundle controller."""

    log_level: int | None = None
    upgrade_check_interval: datetime.timedelta = datetime.timedelta(0)
    upgrade_check_short_interval: datetime.timedelta = datetime.timedelta(0)
    active_bundle: str = ""
    private_registry: str = ""
    default_registry: str = ""
    default_image_registry: str = ""
    bundle_repository: str = ""
    create_namespace: bool = False


class BundleControllerStateEnum(str, Enum):
    IGNORED = "ignored"
    ACTIVE = "active"
    UPGRADE_AVAILABLE = "upgrade available"
    DISCONNECTED = "disconnected"


@dataclass
class PackageBundleControllerStatus:
    """Observed state of a package bundle controller."""

    state: BundleControllerStateEnum | None = None
    detail: str = ""
    spec: PackageBundleControllerSpec = field(default_factory=PackageBundleControllerSpec)


@dataclass
class PackageBundleController:
    """Selects the active bundle and the registries packages come from."""

    kind: str = ""
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PackageBundleControllerSpec = field(default_factory=PackageBundleControllerSpec)
    status: PackageBundleControllerStatus = field(
        default_factory=PackageBundleControllerStatus
    )

    def is_ignored(self) -> bool:
        """Controllers outside the package namespace are not acted upon."""
        return self.metadata.namespace != PACKAGE_NAMESPACE

    def default_registry(self) -> str:
        return self.spec.default_registry or DEFAULT_REGISTRY

    def default_image_registry(self) -> str:
        return self.spec.default_image_registry or DEFAULT_IMAGE_REGISTRY

    def bundle_uri(self) -> str:
        return _join_path(self.default_registry(), self.spec.bundle_repository)

    def active_bundle_uri(self) -> str:
        return f"{self.bundle_uri()}:{self.spec.active_bundle}"

    def is_default_registry_default(self) -> bool:
        """True if charts and bundles come from the public default registry."""
        return self.default_registry() == DEFAULT_REGISTRY