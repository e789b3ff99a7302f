"""Reconcilers that drive package bundles and bundle controllers to their desired state."""

from __future__ import annotations

import dataclasses
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from curated_packages.bundle import PackageBundle
from curated_packages.bundle_controller import (
    BundleControllerStateEnum,
    PackageBundleController,
)
from curated_packages.package import PACKAGE_NAMESPACE

DEFAULT_UPGRADE_CHECK_INTERVAL = datetime.timedelta(hours=24)
WEBHOOK_INITIALIZATION_REQUEUE_INTERVAL = datetime.timedelta(seconds=10)

_LOG = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """The requested resource does not exist."""


@dataclass(frozen=True)
class NamespacedName:
    namespace: str = ""
    name: str = ""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Request:
    """A request to reconcile one named resource."""

    namespaced_name: NamespacedName

    @property
    def name(self) -> str:
        return self.namespaced_name.name

    @property
    def namespace(self) -> str:
        return self.namespaced_name.namespace


@dataclass(frozen=True)
class Result:
    """Outcome of a reconciliation: whether and when to run again."""

    requeue: bool = False
    requeue_after: datetime.timedelta = datetime.timedelta(0)


def without_requeue(result: Result) -> Result:
    return dataclasses.replace(result, requeue=False)


class _Client(Protocol):
    def get(self, name: NamespacedName, kind: type) -> Any: ...

    def list(self, kind: type, namespace: str) -> list[Any]: ...

    def update_status(self, obj: Any) -> None: ...


class _BundleManager(Protocol):
    def process_bundle(self, bundle: PackageBundle) -> bool: ...

    def process_bundle_controller(self, controller: PackageBundleController) -> None: ...


class _CertInjector(Protocol):
    def update_if_needed(self, name: str) -> None: ...


class PackageBundleReconciler:
    """Reconciles package bundles."""

    def __init__(
        self,
        client: _Client,
        bundle_client: Any,
        bundle_manager: _BundleManager,
        registry_client: Any,
        log: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.bundle_client = bundle_client
        self.bundle_manager = bundle_manager
        self.registry_client = registry_client
        self.log = log or _LOG

    def reconcile(self, request: Request) -> Result:
        self.log.debug("Reconcile: bundle %s", request.namespaced_name)
        try:
            bundle = self.client.get(request.namespaced_name, PackageBundle)
        except NotFoundError:
            return Result()

        self.log.info("Add/ProcessBundle: bundle %s", request.namespaced_name)
        try:
            changed = self.bundle_manager.process_bundle(bundle)
        except Exception as exc:
            raise RuntimeError(f"package bundle update: {exc}") from exc
        if changed:
            self.client.update_status(bundle)
        return Result()

    def map_bundle_reconcile_requests(self) -> list[Request]:
        """Produce a reconcile request for every package bundle."""
        try:
            bundles = self.client.list(PackageBundle, namespace=PACKAGE_NAMESPACE)
        except Exception:
            self.log.exception("listing package bundles")
            return []
        return [
            Request(
                NamespacedName(
                    namespace=bundle.metadata.namespace, name=bundle.metadata.name
                )
            )
            for bundle in bundles
        ]


class PackageBundleControllerReconciler:
    """Reconciles package bundle controllers."""

    def __init__(
        self,
        client: _Client,
        bundle_manager: _BundleManager,
        cert_injector: _CertInjector,
        log: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.bundle_manager = bundle_manager
        self.cert_injector = cert_injector
        self.log = log or _LOG
        # Until the first success, failures are taken to mean the webhook is not up yet.
        self.webhook_initialized = False

    def reconcile(self, request: Request) -> Result:
        self.log.debug("Reconcile: PackageBundleController %s", request.namespaced_name)
        result = Result(requeue=True, requeue_after=DEFAULT_UPGRADE_CHECK_INTERVAL)

        try:
            pbc = self.client.get(request.namespaced_name, PackageBundleController)
        except NotFoundError:
            self.log.info(
                "Bundle controller deleted (ignoring): %s", request.namespaced_name
            )
            return without_requeue(result)
        except Exception as exc:
            raise RuntimeError(f"retrieving package bundle controller: {exc}") from exc

        if pbc.spec.upgrade_check_interval > datetime.timedelta(0):
            result = dataclasses.replace(
                result, requeue_after=pbc.spec.upgrade_check_interval
            )

        if pbc.is_ignored():
            if pbc.status.state != BundleControllerStateEnum.IGNORED:
                pbc.status.state = BundleControllerStateEnum.IGNORED
                self.log.debug(
                    "update PackageBundleController %s state %s",
                    pbc.metadata.name,
                    pbc.status.state.value,
                )
                try:
                    self.client.update_status(pbc)
                except Exception:
                    self.log.exception("updating ignored status")
            return without_requeue(result)

        if not pbc.is_default_registry_default():
            try:
                self.cert_injector.update_if_needed(pbc.metadata.name)
            except Exception as exc:
                raise RuntimeError(f"ensuring registry CA cert updated: {exc}") from exc

        try:
            self.bundle_manager.process_bundle_controller(pbc)
        except Exception:
            if not self.webhook_initialized:
                self.log.info("delaying reconciliation until webhook is initialized")
                return dataclasses.replace(
                    result, requeue_after=WEBHOOK_INITIALIZATION_REQUEUE_INTERVAL
                )
            self.log.exception("processing bundle controller")
            if pbc.spec.upgrade_check_short_interval > datetime.timedelta(0):
                result = dataclasses.replace(
                    result, requeue_after=pbc.spec.upgrade_check_short_interval
                )
            return result

        self.webhook_initialized = True
        self.log.debug("Reconciled: PackageBundleController %s", request.namespaced_name)
        return result