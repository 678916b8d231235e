"""Sentinel CA Injector - keeps labelled ConfigMaps in sync with the trusted CA bundle."""

from .applier import BundleApplier
from .bundle import SourceBundleReader, TrustBundle, validate_trust_bundle
from .cluster import ClusterConnection
from .config import Settings, get_settings
from .context import ReconcileContext
from .exceptions import (
    BundleValidationError,
    CanceledError,
    ConflictError,
    InjectorError,
    NotFoundError,
    StoreError,
)
from .filters import accepts, should_update_configmaps
from .models import (
    CANONICAL_BUNDLE_REF,
    ConfigMapResource,
    PassCondition,
    PassResult,
    ReconcileRequest,
    ResourceRef,
    SyncOutcome,
    TargetResult,
    WatchEvent,
)
from .reconciler import ReconcileDriver
from .resolver import TargetResolver
from .retry import RetryPolicy, retry_on_conflict
from .status import ComponentHealth, HealthReporter, HealthStatus, StatusRegistry, get_status_registry
from .store import ConfigMapStore, ResourceStore
from .watch import ConfigMapWatcher, InjectorController, create_controller

__version__ = "0.1.0"

__all__ = [
    # Reconciliation
    "ReconcileDriver",
    "SourceBundleReader",
    "TargetResolver",
    "BundleApplier",
    "TrustBundle",
    "validate_trust_bundle",
    "accepts",
    "should_update_configmaps",
    # Retry and cancellation
    "RetryPolicy",
    "retry_on_conflict",
    "ReconcileContext",
    # Store
    "ResourceStore",
    "ConfigMapStore",
    "ClusterConnection",
    # Health
    "HealthReporter",
    "StatusRegistry",
    "ComponentHealth",
    "HealthStatus",
    "get_status_registry",
    # Dispatch
    "ConfigMapWatcher",
    "InjectorController",
    "create_controller",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "InjectorError",
    "NotFoundError",
    "BundleValidationError",
    "StoreError",
    "ConflictError",
    "CanceledError",
    # Models
    "CANONICAL_BUNDLE_REF",
    "ResourceRef",
    "ConfigMapResource",
    "ReconcileRequest",
    "WatchEvent",
    "SyncOutcome",
    "PassCondition",
    "TargetResult",
    "PassResult",
]
