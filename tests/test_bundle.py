import base64
import gzip
import json

import pytest

from curated_packages.bundle import (
    LATEST,
    BundlePackage,
    BundlePackageSource,
    InvalidBundleVersionError,
    KubeVersionInfo,
    PackageBundle,
    PackageBundleSpec,
    PackageNotFoundError,
    SchemaDecodeError,
    SourceVersion,
    VersionNotFoundError,
    major_minor_from_string,
    sort_bundles_by_version,
)
from curated_packages.package import ObjectMeta, PackageOCISource

DIGEST_010 = "sha256:eaa07ae1c06ffb563fe3c16cdb317f7ac31c8f829d5f1f32442f0e5ab982c3e7"

GZIPPED_SCHEMA = (
    "H4sIAAAAAAAAA5VQvW7DIBDe/RQIdawh9ZgtqjplqZonuOCzTYIBHViRG+XdizGNImWoun7/d9eKMf6iW75lf"
    "IjRh62UAxrjajyHGux8GZBQeFBn6DGIhAoY4dtZuASh3CiDGnAEcQrO8tectiKPiQtZF6GjXrYEXZTNptnUb0"
    "1JWM1RR4PZ+jSiCGafeXc8oYor5sl5pKgxJOaakIQFN5HCL+x1iDTf8YeEhGvb54SMt9jBZOJC+elotBKoSKQ"
    "z5dOKog+KtI86HZ48h1zIqDSyzhErbxM8e26r9X7jfxbt8s/Zx/7Adn8teXc2grZILDf9tldlAYe21YsWzOfj"
    "4zowAatb9QNC+U5rEwIAAA=="
)


def given_bundle(versions, registry="public.ecr.aws/l0g8r8j6", repository="hello-eks-anywhere"):
    return PackageBundle(
        spec=PackageBundleSpec(
            packages=[
                BundlePackage(
                    name="hello-eks-anywhere",
                    source=BundlePackageSource(
                        registry=registry, repository=repository, versions=versions
                    ),
                )
            ]
        )
    )


def named_bundle(name):
    return PackageBundle(metadata=ObjectMeta(name=name))


def test_find():
    sut = given_bundle([SourceVersion(name="0.1.0", digest=DIGEST_010)])
    expected = PackageOCISource(
        registry="public.ecr.aws/l0g8r8j6",
        repository="hello-eks-anywhere",
        digest=DIGEST_010,
        version="0.1.0",
    )
    assert sut.find_oci_source_by_name("hello-eks-anywhere", "0.1.0") == expected
    assert sut.find_oci_source_by_name("hello-eks-anywhere", DIGEST_010) == expected

    sut.metadata.name = "fake bundle"
    with pytest.raises(PackageNotFoundError) as exc:
        sut.find_package("Bogus")
    assert str(exc.value) == "package not found in bundle (fake bundle): Bogus"

    with pytest.raises(VersionNotFoundError) as exc:
        sut.find_oci_source_by_name("hello-eks-anywhere", "9.9.9")
    assert str(exc.value) == (
        "package version not found in bundle (fake bundle): hello-eks-anywhere @ 9.9.9"
    )


def test_latest_returns_first_item():
    latest = given_bundle(
        [
            SourceVersion(name="0.1.1", digest="sha256:deadbeef"),
            SourceVersion(name="0.1.0", digest=DIGEST_010),
        ]
    )
    expected = PackageOCISource(
        registry="public.ecr.aws/l0g8r8j6",
        repository="hello-eks-anywhere",
        digest="sha256:deadbeef",
        version="0.1.1",
    )
    assert latest.find_oci_source_by_name("hello-eks-anywhere", LATEST) == expected


def test_latest_returns_first_item_even_if_later_version_follows():
    latest = given_bundle(
        [
            SourceVersion(name="0.1.0", digest=DIGEST_010),
            SourceVersion(name="0.1.1", digest="sha256:deadbeef"),
        ]
    )
    expected = PackageOCISource(
        registry="public.ecr.aws/l0g8r8j6",
        repository="hello-eks-anywhere",
        digest=DIGEST_010,
        version="0.1.0",
    )
    assert latest.find_oci_source_by_name("hello-eks-anywhere", LATEST) == expected


def test_find_package_is_case_insensitive():
    bundle = given_bundle([SourceVersion(name="0.1.0", digest=DIGEST_010)])
    assert bundle.find_package("Hello-EKS-Anywhere").name == "hello-eks-anywhere"


@pytest.mark.parametrize(
    "target, expected",
    [("v1-21-1", (1, 21)), ("v1-21", (1, 21)), ("1-21-1", (1, 21)), ("", (0, 0))],
)
def test_major_minor_from_string(target, expected):
    assert major_minor_from_string(target) == expected


@pytest.mark.parametrize(
    "major, minor, expected",
    [("1", "21", True), ("2", "21", False), ("1", "22", False)],
)
def test_kube_version_matches(major, minor, expected):
    bundle = named_bundle("v1-21-1001")
    assert bundle.kube_version_matches(KubeVersionInfo(major=major, minor=minor)) is expected


@pytest.mark.parametrize(
    "name, message",
    [
        ("vx-21-1001", "invalid major number <vx-21-1001>"),
        ("v1-x-1001", "invalid minor number <v1-x-1001>"),
        ("v1-21-x", "invalid build number <v1-21-x>"),
    ],
)
def test_kube_version_matches_bogus(name, message):
    with pytest.raises(InvalidBundleVersionError) as exc:
        named_bundle(name).kube_version_matches(KubeVersionInfo(major="1", minor="21"))
    assert str(exc.value) == message


def test_major_minor_build():
    assert named_bundle("v1-21-1001").major_minor_build() == (1, 21, 1001)


def test_is_valid_version():
    assert named_bundle("v1-21-1001").is_valid_version() is True
    assert named_bundle("v1-21-oops").is_valid_version() is False


ORIG = BundlePackageSource(
    registry="registry",
    repository="repository",
    versions=[
        SourceVersion(name="v1", digest="sha256:deadbeef"),
        SourceVersion(name="v2", digest="sha256:cafebabe"),
    ],
)


@pytest.mark.parametrize(
    "registry, repository, versions, expected",
    [
        ("registry", "repository", [("v1", "sha256:deadbeef"), ("v2", "sha256:cafebabe")], True),
        ("registry2", "repository", [("v1", "sha256:deadbeef"), ("v2", "sha256:cafebabe")], False),
        ("registry", "repository2", [("v1", "sha256:deadbeef"), ("v2", "sha256:cafebabe")], False),
        (
            "registry",
            "repository",
            [("v1", "sha256:deadbeef"), ("v2", "sha256:cafebabe"), ("v3", "sha256:deadf00d")],
            False,
        ),
        ("registry", "repository", [("v2", "sha256:cafebabe")], False),
        ("registry", "repository", [("v1", "sha256:feedface"), ("v2", "sha256:cafebabe")], False),
    ],
)
def test_package_matches(registry, repository, versions, expected):
    other = BundlePackageSource(
        registry=registry,
        repository=repository,
        versions=[SourceVersion(name=n, digest=d) for n, d in versions],
    )
    assert ORIG.package_matches(other) is expected


def test_source_version_key():
    s = SourceVersion(name="v1", digest="sha256:blah")
    assert s.key() == "v1 sha256:blah"
    assert "v1" in s.key()
    assert "sha256:blah" in s.key()


@pytest.mark.parametrize(
    "current, candidate, expected",
    [
        ("v1-21-10002", "v1-21-10003", True),
        ("v1-21-10002", "v1-21-10001", False),
        ("v1-21-10002", "v1-21-10002", False),
        ("v1-21-10002", "v2-21-10002", True),
        ("v1-21-10002", "v1-22-10002", True),
    ],
)
def test_less_than(current, candidate, expected):
    assert named_bundle(current).less_than(named_bundle(candidate)) is expected


def test_find_package_succeeds():
    bundle = given_bundle([SourceVersion(name="0.1.0", digest=DIGEST_010)])
    assert bundle.find_package("hello-eks-anywhere").name == bundle.spec.packages[0].name


def test_find_package_fails():
    bundle = given_bundle([SourceVersion(name="0.1.0", digest=DIGEST_010)])
    with pytest.raises(PackageNotFoundError):
        bundle.find_package("harbor")


def test_get_dependencies():
    bundle = given_bundle([SourceVersion(name="0.1.0", digest=DIGEST_010)])
    version = SourceVersion(name="1.0", digest="sha256:abc", dependencies=["hello-eks-anywhere"])
    deps = bundle.get_dependencies(version)
    assert [d.name for d in deps] == ["hello-eks-anywhere"]
    assert bundle.get_dependencies(SourceVersion()) == []
    with pytest.raises(PackageNotFoundError):
        bundle.get_dependencies(SourceVersion(dependencies=["harbor"]))


def test_json_schema_from_bundle_succeeds():
    bundle = given_bundle([SourceVersion(schema=GZIPPED_SCHEMA)], registry="", repository="")
    package = bundle.spec.packages[0]
    schema = package.json_schema(package.source.versions[0])
    parsed = json.loads(schema)
    assert parsed["title"] == "hello-eks-anywhere"
    assert parsed["type"] == "object"
    assert parsed["additionalProperties"] is False
    assert parsed["properties"]["title"]["default"] == "Amazon EKS Anywhere"
    assert parsed["properties"]["sourceRegistry"]["default"] == "public.ecr.aws/eks-anywhere"
    assert schema.endswith(b"}\n")


def test_json_schema_round_trip():
    raw = b'{"title": "example"}\n'
    encoded = base64.b64encode(gzip.compress(raw)).decode()
    package = BundlePackage(name="example")
    assert package.json_schema(SourceVersion(schema=encoded)) == raw


def test_json_schema_fails_when_not_compressed():
    encoded = base64.b64encode(b'{"title": "example"}\n').decode()
    package = BundlePackage(name="example")
    with pytest.raises(SchemaDecodeError, match="error when uncompressing configurations"):
        package.json_schema(SourceVersion(schema=encoded))


def test_json_schema_fails_when_not_base64():
    package = BundlePackage(name="example")
    with pytest.raises(SchemaDecodeError, match="error decoding configurations"):
        package.json_schema(SourceVersion(schema="not base64!"))


def test_sort_bundles_by_version():
    bundles = [named_bundle("v1-21-003"), named_bundle("v1-21-001"), named_bundle("v1-21-002")]
    result = sort_bundles_by_version(bundles)
    assert [b.metadata.name for b in result] == ["v1-21-001", "v1-21-002", "v1-21-003"]