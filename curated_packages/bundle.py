"""Package bundles: the set of packages and versions offered for a cluster."""

from __future__ import annotations

import base64
import binascii
import functools
import gzip
import re
import zlib
from dataclasses import dataclass, field
from enum import Enum

from curated_packages.package import ObjectMeta, PackageOCISource

PACKAGE_BUNDLE_KIND = "PackageBundle"
LATEST = "latest"

_INTEGER = re.compile(r"[+-]?[0-9]+")


class PackageNotFoundError(LookupError):
    """A package is not part of a bundle."""


class VersionNotFoundError(LookupError):
    """A package version is not part of a bundle."""


class InvalidBundleVersionError(ValueError):
    """A bundle name does not hold a valid version."""


class SchemaDecodeError(ValueError):
    """A package's configuration schema cannot be decoded."""


def _atoi(text: str) -> int | None:
    if _INTEGER.fullmatch(text):
        return int(text)
    return None


def _version_fields(name: str) -> list[str]:
    fields = name.split("-") + ["", "", ""]
    fields[0] = fields[0].removeprefix("v")
    return fields


def major_minor_from_string(kube_version: str) -> tuple[int, int]:
    """Return the Kubernetes major and minor version; zero where unparsable."""
    fields = _version_fields(kube_version)
    return _atoi(fields[0]) or 0, _atoi(fields[1]) or 0


@dataclass(frozen=True)
class KubeVersionInfo:
    major: str
    minor: str


@dataclass
class VersionImages:
    repository: str = ""
    digest: str = ""


@dataclass
class SourceVersion:
    """A version of a package within a repository."""

    name: str = ""
    digest: str = ""
    images: list[VersionImages] = field(default_factory=list)
    schema: str = ""
    dependencies: list[str] = field(default_factory=list)

    def key(self) -> str:
        return f"{self.name} {self.digest}"


@dataclass
class BundlePackageSource:
    """Location of a package and the versions offered."""

    registry: str = ""
    repository: str = ""
    versions: list[SourceVersion] = field(default_factory=list)

    def package_matches(self, other: BundlePackageSource) -> bool:
        """True if both sources name the same location and the same versions."""
        return (
            self.registry == other.registry
            and self.repository == other.repository
            and {v.key() for v in self.versions} == {v.key() for v in other.versions}
        )


@dataclass
class BundlePackage:
    """A package within a bundle."""

    name: str = ""
    source: BundlePackageSource = field(default_factory=BundlePackageSource)
    workload_only: bool = False

    def json_schema(self, version: SourceVersion) -> bytes:
        """Decode the base64-encoded, gzipped configuration schema of a version."""
        try:
            decoded = base64.b64decode(version.schema, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SchemaDecodeError(f"error decoding configurations {exc}") from exc
        try:
            return gzip.decompress(decoded)
        except (OSError, EOFError, zlib.error) as exc:
            raise SchemaDecodeError(f"error when uncompressing configurations {exc}") from exc


@dataclass
class PackageBundleSpec:
    packages: list[BundlePackage] = field(default_factory=list)
    min_version: str = ""


class PackageBundleStateEnum(str, Enum):
    AVAILABLE = "available"
    IGNORED = "ignored"
    INVALID = "invalid"
    UPGRADE_REQUIRED = "controller upgrade required"


@dataclass
class PackageBundleStatus:
    spec: PackageBundleSpec = field(default_factory=PackageBundleSpec)
    state: PackageBundleStateEnum | None = None


@dataclass
class PackageBundle:
    """A named set of packages; the name encodes Kubernetes and build versions."""

    kind: str = ""
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PackageBundleSpec = field(default_factory=PackageBundleSpec)
    status: PackageBundleStatus = field(default_factory=PackageBundleStatus)

    def find_package(self, pkg_name: str) -> BundlePackage:
        wanted = pkg_name.casefold()
        for pkg in self.spec.packages:
            if pkg.name.casefold() == wanted:
                return pkg
        raise PackageNotFoundError(
            f"package not found in bundle ({self.metadata.name}): {pkg_name}"
        )

    def get_dependencies(self, version: SourceVersion) -> list[BundlePackage]:
        return [self.find_package(dep) for dep in version.dependencies]

    def find_version(self, pkg: BundlePackage, pkg_version: str) -> SourceVersion:
        """Find a version by name or digest; "latest" selects the first listed."""
        for version in pkg.source.versions:
            if pkg_version in (version.name, version.digest) or pkg_version == LATEST:
                return version
        raise VersionNotFoundError(
            f"package version not found in bundle ({self.metadata.name}): "
            f"{pkg.name} @ {pkg_version}"
        )

    def find_oci_source_by_name(self, pkg_name: str, pkg_version: str) -> PackageOCISource:
        return self.find_oci_source(self.find_package(pkg_name), pkg_version)

    def find_oci_source(self, pkg: BundlePackage, pkg_version: str) -> PackageOCISource:
        return self.oci_source(pkg, self.find_version(pkg, pkg_version))

    def oci_source(self, pkg: BundlePackage, version: SourceVersion) -> PackageOCISource:
        return PackageOCISource(
            version=version.name,
            registry=pkg.source.registry,
            repository=pkg.source.repository,
            digest=version.digest,
        )

    def _parse_version(self) -> tuple[int, int, int, str | None]:
        name = self.metadata.name
        fields = _version_fields(name)
        major = _atoi(fields[0])
        if major is None:
            return 0, 0, 0, f"invalid major number <{name}>"
        minor = _atoi(fields[1])
        if minor is None:
            return major, 0, 0, f"invalid minor number <{name}>"
        build = _atoi(fields[2])
        if build is None:
            return major, minor, 0, f"invalid build number <{name}>"
        return major, minor, build, None

    def major_minor_build(self) -> tuple[int, int, int]:
        """Return Kubernetes major, minor and bundle build numbers from the name."""
        major, minor, build, error = self._parse_version()
        if error is not None:
            raise InvalidBundleVersionError(error)
        return major, minor, build

    def less_than(self, other: PackageBundle) -> bool:
        """True if this bundle is older than the other one."""
        lhs_major, lhs_minor, lhs_build, _ = self._parse_version()
        rhs_major, rhs_minor, rhs_build, _ = other._parse_version()
        return lhs_major < rhs_major or lhs_minor < rhs_minor or lhs_build < rhs_build

    def kube_version_matches(self, target: KubeVersionInfo) -> bool:
        """Compare only the Kubernetes major and minor versions."""
        major, minor, _ = self.major_minor_build()
        return str(major) == target.major and str(minor) == target.minor

    def is_valid_version(self) -> bool:
        return self._parse_version()[3] is None


def _compare_bundles(lhs: PackageBundle, rhs: PackageBundle) -> int:
    if lhs.less_than(rhs):
        return -1
    if rhs.less_than(lhs):
        return 1
    return 0


def sort_bundles_by_version(bundles: list[PackageBundle]) -> list[PackageBundle]:
    """Return the bundles ordered from oldest to newest."""
    return sorted(bundles, key=functools.cmp_to_key(_compare_bundles))