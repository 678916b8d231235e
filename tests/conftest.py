"""Pytest configuration and fixtures for CA injector tests."""

import re
from typing import Any, Optional
from unittest.mock import MagicMock

import certifi
import pytest
from kubernetes import client

from sentinel_cainjector import names
from sentinel_cainjector.context import ReconcileContext
from sentinel_cainjector.exceptions import NotFoundError
from sentinel_cainjector.models import CANONICAL_BUNDLE_REF, ConfigMapResource, ResourceRef
from sentinel_cainjector.retry import RetryPolicy
from sentinel_cainjector.status import HealthReporter
from sentinel_cainjector.store import ResourceStore

CERTIFICATE_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----\n.*?-----END CERTIFICATE-----\n", re.DOTALL
)


def make_configmap(
    name: str,
    namespace: str = "default",
    labels: Optional[dict[str, str]] = None,
    data: Optional[dict[str, str]] = None,
) -> ConfigMapResource:
    return ConfigMapResource(
        name=name, namespace=namespace, labels=labels or {}, data=data or {}
    )


def make_target(name: str, namespace: str = "default", bundle: Optional[str] = None) -> ConfigMapResource:
    """Labelled ConfigMap, optionally already holding ``bundle``."""
    data = {"other": "kept"}
    if bundle is not None:
        data[names.TRUSTED_CA_BUNDLE_CONFIGMAP_KEY] = bundle
    return make_configmap(
        name,
        namespace,
        labels={names.TRUSTED_CA_BUNDLE_CONFIGMAP_LABEL: "true"},
        data=data,
    )


def make_canonical(bundle: str) -> ConfigMapResource:
    return make_configmap(
        CANONICAL_BUNDLE_REF.name,
        CANONICAL_BUNDLE_REF.namespace,
        data={names.TRUSTED_CA_BUNDLE_CONFIGMAP_KEY: bundle},
    )


class FakeStore(ResourceStore):
    """In-memory store that records calls and injects failures."""

    def __init__(self, configmaps=()):
        self.configmaps: dict[ResourceRef, ConfigMapResource] = {cm.ref: cm for cm in configmaps}
        self.get_errors: dict[ResourceRef, Exception] = {}
        self.list_error: Optional[Exception] = None
        # Errors raised by successive apply attempts on a ref
        self.apply_errors: dict[ResourceRef, list[Exception]] = {}
        self.get_calls: list[ResourceRef] = []
        self.list_calls: list[dict[str, str]] = []
        self.apply_calls: list[tuple[ResourceRef, dict[str, Any], str]] = []

    def get(self, ref, ctx):
        ctx.raise_if_canceled()
        self.get_calls.append(ref)
        if ref in self.get_errors:
            raise self.get_errors[ref]
        if ref not in self.configmaps:
            raise NotFoundError(f"configmap {ref} not found")
        return self.configmaps[ref].model_copy(deep=True)

    def list(self, labels, ctx):
        ctx.raise_if_canceled()
        self.list_calls.append(labels)
        if self.list_error is not None:
            raise self.list_error
        return [
            cm.model_copy(deep=True)
            for cm in self.configmaps.values()
            if all(cm.labels.get(k) == v for k, v in labels.items())
        ]

    def apply(self, document, field_manager, ctx):
        ctx.raise_if_canceled()
        metadata = document["metadata"]
        ref = ResourceRef(namespace=metadata["namespace"], name=metadata["name"])
        self.apply_calls.append((ref, document, field_manager))
        errors = self.apply_errors.get(ref)
        if errors:
            raise errors.pop(0)
        current = self.configmaps[ref]
        merged = current.model_copy(update={"data": {**current.data, **document["data"]}})
        self.configmaps[ref] = merged
        return merged.model_copy(deep=True)

    def applied_refs(self) -> "list[ResourceRef]":
        return [ref for ref, _, _ in self.apply_calls]


@pytest.fixture(scope="session")
def certificates() -> list[str]:
    """Real PEM certificates taken from the certifi CA bundle."""
    with open(certifi.where(), encoding="utf-8") as f:
        found = CERTIFICATE_RE.findall(f.read())
    assert len(found) >= 3
    return found


@pytest.fixture
def ca_bundle(certificates) -> str:
    """Two-certificate bundle."""
    return certificates[0] + certificates[1]


@pytest.fixture
def other_ca_bundle(certificates) -> str:
    return certificates[2]


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def health():
    """Mock health reporter."""
    return MagicMock(spec=HealthReporter)


@pytest.fixture
def ctx() -> ReconcileContext:
    return ReconcileContext.background()


@pytest.fixture
def no_wait_policy() -> RetryPolicy:
    """Retry policy that never sleeps."""
    return RetryPolicy(max_attempts=6, initial_delay=0, max_delay=0)


@pytest.fixture
def mock_cluster_connection():
    """Mock cluster connection for testing."""
    mock_conn = MagicMock()
    mock_conn.core_v1 = MagicMock(spec=client.CoreV1Api)
    return mock_conn


@pytest.fixture
def k8s_configmap():
    """Kubernetes ConfigMap object as returned by the API."""
    return client.V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=client.V1ObjectMeta(
            name="app-ca",
            namespace="team-a",
            labels={names.TRUSTED_CA_BUNDLE_CONFIGMAP_LABEL: "true"},
            resource_version="42",
        ),
        data={"ca-bundle.crt": "old", "other": "kept"},
    )
