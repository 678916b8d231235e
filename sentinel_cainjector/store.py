"""ConfigMap store access with optimistic-concurrency error mapping."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from .cluster import ClusterConnection
from .context import ReconcileContext
from .exceptions import CanceledError, ConflictError, NotFoundError, StoreError
from .models import ConfigMapResource, ResourceRef

logger = logging.getLogger(__name__)

APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"
LIST_PAGE_SIZE = 500


class ResourceStore(ABC):
    """Key-value store of ConfigMaps with label queries and conditional writes."""

    @abstractmethod
    def get(self, ref: ResourceRef, ctx: ReconcileContext) -> ConfigMapResource:
        """
        Read one ConfigMap.

        Raises:
            NotFoundError: If it does not exist
            StoreError: On any other failure
            CanceledError: If the context is cancelled
        """

    @abstractmethod
    def list(self, labels: dict[str, str], ctx: ReconcileContext) -> list[ConfigMapResource]:
        """List ConfigMaps in all namespaces matching every label in ``labels``."""

    @abstractmethod
    def apply(
        self, document: dict[str, Any], field_manager: str, ctx: ReconcileContext
    ) -> ConfigMapResource:
        """
        Server-side apply a partial ConfigMap document owned by ``field_manager``.

        Raises:
            ConflictError: On an optimistic-concurrency rejection
            StoreError: On any other failure
            CanceledError: If the context is cancelled
        """


def label_selector(labels: dict[str, str]) -> Optional[str]:
    if not labels:
        return None
    return ",".join(f"{k}={v}" for k, v in labels.items())


class ConfigMapStore(ResourceStore):
    """ResourceStore backed by the Kubernetes core API."""

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize the store.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1

    def get(self, ref: ResourceRef, ctx: ReconcileContext) -> ConfigMapResource:
        ctx.raise_if_canceled()
        try:
            obj = self.core_v1.read_namespaced_config_map(
                ref.name, ref.namespace, _request_timeout=ctx.request_timeout()
            )
        except (ApiException, HTTPError) as e:
            raise self._translate(e, ctx, f"get configmap {ref}") from e
        return ConfigMapResource.from_k8s(obj)

    def list(self, labels: dict[str, str], ctx: ReconcileContext) -> list[ConfigMapResource]:
        selector = label_selector(labels)
        items: list[ConfigMapResource] = []
        continue_token: Optional[str] = None

        while True:
            ctx.raise_if_canceled()
            kwargs: dict[str, Any] = {
                "label_selector": selector,
                "limit": LIST_PAGE_SIZE,
                "_request_timeout": ctx.request_timeout(),
            }
            if continue_token:
                kwargs["_continue"] = continue_token
            try:
                result = self.core_v1.list_config_map_for_all_namespaces(**kwargs)
            except (ApiException, HTTPError) as e:
                raise self._translate(e, ctx, f"list configmaps ({selector})") from e

            items.extend(ConfigMapResource.from_k8s(obj) for obj in result.items)
            continue_token = getattr(result.metadata, "_continue", None) if result.metadata else None
            if not continue_token:
                break

        logger.debug(f"Listed {len(items)} configmaps with selector {selector}")
        return items

    def apply(
        self, document: dict[str, Any], field_manager: str, ctx: ReconcileContext
    ) -> ConfigMapResource:
        metadata = document["metadata"]
        ref = ResourceRef(namespace=metadata["namespace"], name=metadata["name"])
        ctx.raise_if_canceled()
        try:
            obj = self.core_v1.patch_namespaced_config_map(
                name=ref.name,
                namespace=ref.namespace,
                body=document,
                field_manager=field_manager,
                force=True,
                _content_type=APPLY_PATCH_CONTENT_TYPE,
                _request_timeout=ctx.request_timeout(),
            )
        except (ApiException, HTTPError) as e:
            raise self._translate(e, ctx, f"apply configmap {ref}") from e
        return ConfigMapResource.from_k8s(obj)

    @staticmethod
    def _translate(error: Exception, ctx: ReconcileContext, action: str) -> Exception:
        """Map a client exception onto the injector's error taxonomy."""
        if ctx.canceled:
            return CanceledError(f"{action}: canceled ({error})")
        if isinstance(error, ApiException):
            if error.status == 404:
                return NotFoundError(f"{action}: not found")
            if error.status == 409:
                return ConflictError(f"{action}: conflict ({error.reason})")
            return StoreError(f"{action}: {error.status} {error.reason}", status=error.status)
        return StoreError(f"{action}: {type(error).__name__}: {error}")
