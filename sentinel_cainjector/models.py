"""Resource and result models for the trust bundle injector."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from . import names


class ResourceRef(BaseModel):
    """Namespaced identity of a ConfigMap."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


CANONICAL_BUNDLE_REF = ResourceRef(
    namespace=names.TRUSTED_CA_BUNDLE_CONFIGMAP_NS,
    name=names.TRUSTED_CA_BUNDLE_CONFIGMAP,
)


class ConfigMapResource(BaseModel):
    """The parts of a ConfigMap the injector reads."""

    name: str
    namespace: str
    labels: dict[str, str] = Field(default_factory=dict)
    data: dict[str, str] = Field(default_factory=dict)
    resource_version: Optional[str] = None

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(namespace=self.namespace, name=self.name)

    @classmethod
    def from_k8s(cls, obj: Any) -> "ConfigMapResource":
        """
        Build from a kubernetes ``V1ConfigMap``.

        Args:
            obj: V1ConfigMap returned by the API

        Returns:
            ConfigMapResource snapshot
        """
        metadata = obj.metadata
        return cls(
            name=metadata.name,
            namespace=metadata.namespace,
            labels=dict(metadata.labels or {}),
            data=dict(obj.data or {}),
            resource_version=metadata.resource_version,
        )


class ReconcileRequest(BaseModel):
    """Names the one ConfigMap whose change triggered a pass."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(namespace=self.namespace, name=self.name)

    @classmethod
    def for_ref(cls, ref: ResourceRef) -> "ReconcileRequest":
        return cls(namespace=ref.namespace, name=ref.name)


class WatchEvent(BaseModel):
    """Kubernetes watch event for a ConfigMap."""

    event_type: str  # ADDED, MODIFIED, DELETED, BOOKMARK, ERROR
    name: str
    namespace: str
    labels: dict[str, str] = Field(default_factory=dict)
    resource_version: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(namespace=self.namespace, name=self.name)


class SyncOutcome(str, Enum):
    """Per-target result of applying the bundle."""

    UNCHANGED = "unchanged"
    UPDATED = "updated"
    FAILED = "failed"


class PassCondition(str, Enum):
    """Terminal condition of a reconciliation pass."""

    SUCCESS = "Success"
    PARTIAL_FAILURE = "PartialFailure"
    TOO_MANY_FAILURES = "TooManyFailures"
    INVALID_CONFIG = "InvalidInjectorConfig"
    LIST_ERROR = "ListConfigMapError"
    TARGET_READ_ERROR = "ClusterConfigError"
    SOURCE_READ_ERROR = "SourceReadError"
    SKIPPED = "Skipped"
    CANCELED = "Canceled"


class TargetResult(BaseModel):
    """Outcome of syncing one target."""

    ref: ResourceRef
    outcome: SyncOutcome
    attempts: int = 0
    error: Optional[str] = None


class PassResult(BaseModel):
    """Aggregate outcome of one reconciliation pass."""

    request: ReconcileRequest
    condition: PassCondition
    message: str = ""
    targets: list[TargetResult] = Field(default_factory=list)
    skipped_targets: int = 0
    requeue: bool = False

    @property
    def failures(self) -> int:
        return sum(1 for t in self.targets if t.outcome == SyncOutcome.FAILED)

    @property
    def updated(self) -> int:
        return sum(1 for t in self.targets if t.outcome == SyncOutcome.UPDATED)

    @property
    def unchanged(self) -> int:
        return sum(1 for t in self.targets if t.outcome == SyncOutcome.UNCHANGED)
