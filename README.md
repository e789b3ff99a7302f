# curated-packages

Data model and reconciliation logic for curated package bundles deployed to
Kubernetes clusters. It describes packages, package bundles and the bundle
controller that chooses which bundle is active, and it provides reconcilers
that decide what to do with bundles and bundle controllers and when to look
at them again.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Packages (`curated_packages.package`)

```python
from curated_packages.package import new_package

pkg = new_package("hello-eks-anywhere", "my-hello", "eksa-packages-maggie", "title: hi\n")
pkg.cluster_name()           # "maggie"
pkg.is_old_namespace()       # False
pkg.is_valid_namespace()     # True
pkg.get_values()             # {"title": "hi"}
```

A package in the `eksa-packages-<cluster>` namespace belongs to that cluster;
one in plain `eksa-packages` uses the old namespace layout and has an empty
cluster name. Any other namespace is not valid. `is_installed_on_workload()`
compares the package's cluster name with the `CLUSTER_NAME` environment
variable.

`get_values()` parses the YAML in `spec.config` into a mapping. Numbers come
back as floats, as they would from a JSON document. An empty configuration
gives an empty mapping; YAML that is not a mapping raises `ValueError`.

## Bundles (`curated_packages.bundle`)

A `PackageBundle` lists the packages and versions that are available. Bundle
names carry the Kubernetes version and a build number, such as `v1-21-1001`.

```python
from curated_packages.bundle import (
    BundlePackage, BundlePackageSource, KubeVersionInfo, PackageBundle,
    PackageBundleSpec, SourceVersion, sort_bundles_by_version,
)
from curated_packages.package import ObjectMeta

bundle = PackageBundle(
    metadata=ObjectMeta(name="v1-21-1001"),
    spec=PackageBundleSpec(packages=[
        BundlePackage(
            name="hello-eks-anywhere",
            source=BundlePackageSource(
                registry="registry.example.com",
                repository="hello-eks-anywhere",
                versions=[SourceVersion(name="0.1.1", digest="sha256:deadbeef")],
            ),
        ),
    ]),
)

source = bundle.find_oci_source_by_name("hello-eks-anywhere", "latest")
source.chart_uri()           # "oci://registry.example.com/hello-eks-anywhere"

bundle.major_minor_build()                            # (1, 21, 1001)
bundle.kube_version_matches(KubeVersionInfo("1", "21"))  # True
ordered = sort_bundles_by_version(bundles)            # oldest first
```

The version given to `find_version`, `find_oci_source` and
`find_oci_source_by_name` may be a version name, a digest, or `latest`;
`latest` picks the first version listed. Package names are matched without
regard to case. A missing package raises `PackageNotFoundError`, a missing
version `VersionNotFoundError`. `major_minor_build()` and
`kube_version_matches()` raise `InvalidBundleVersionError` when the bundle name
cannot be parsed; `is_valid_version()` reports the same as a boolean.

`BundlePackageSource.package_matches(other)` is true when both sources have
the same registry, repository and set of versions (name and digest).
`BundlePackage.json_schema(version)` decodes the base64, gzip-compressed
configuration schema of a version and returns its bytes, or raises
`SchemaDecodeError`.

## Bundle controller (`curated_packages.bundle_controller`)

`PackageBundleController` sets the registries, the bundle repository and the
active bundle:

```python
pbc.default_registry()           # spec value, or the public default registry
pbc.default_image_registry()     # spec value, or the default image registry
pbc.bundle_uri()                 # "<registry>/<bundle repository>"
pbc.active_bundle_uri()          # "<registry>/<bundle repository>:<active bundle>"
pbc.is_default_registry_default()
pbc.is_ignored()                 # True outside the eksa-packages namespace
```

`GROUP_VERSION` names the API group and version of these resources
(`packages.eks.amazonaws.com/v1alpha1`).

## Reconcilers (`curated_packages.reconcilers`)

Both reconcilers have a `reconcile(request)` method that takes a `Request`
(wrapping a `NamespacedName`) and returns a `Result` with `requeue` and
`requeue_after` fields.

- `PackageBundleReconciler(client, bundle_client, bundle_manager, registry_client, log=None)`
  fetches the bundle, hands it to `bundle_manager.process_bundle(bundle)` and
  writes the status back through the client when that returns true. A deleted
  bundle is ignored. A failure in processing is raised as `RuntimeError`
  ("package bundle update: ..."). `map_bundle_reconcile_requests()` returns a
  request for every bundle in the `eksa-packages` namespace, or an empty list if
  listing fails.
- `PackageBundleControllerReconciler(client, bundle_manager, cert_injector, log=None)`
  requeues after 24 hours by default, or after the controller's
  `upgrade_check_interval`. Controllers outside the package namespace are marked
  ignored and not requeued; deleted ones are not requeued either. For a
  non-default registry it calls `cert_injector.update_if_needed(name)` first.
  If `bundle_manager.process_bundle_controller(pbc)` fails before it has ever
  succeeded, the request is retried after 10 seconds; later failures use
  `upgrade_check_short_interval` when it is set.

The objects passed in are duck-typed. The client needs
`get(namespaced_name, kind)` (raising `NotFoundError` for a missing object),
`list(kind, namespace=...)` and `update_status(obj)`.

## What this package does not do

It holds no client for a Kubernetes API server, no bundle manager, no
certificate injector and no registry client: these are supplied by the caller.
There is no controller process, watch loop, webhook server or command-line
entry point, and nothing reconciles individual `Package` objects.