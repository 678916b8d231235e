"""Decides which ConfigMap notifications trigger reconciliation."""

from typing import Optional

from . import names
from .models import CANONICAL_BUNDLE_REF, WatchEvent

DELETED = "DELETED"
# Event types that never carry a ConfigMap
IGNORED_EVENT_TYPES = frozenset({"BOOKMARK", "ERROR"})


def is_injection_target(labels: Optional[dict[str, str]]) -> bool:
    """True when the ConfigMap has opted in to trust bundle injection."""
    return (labels or {}).get(
        names.TRUSTED_CA_BUNDLE_CONFIGMAP_LABEL
    ) == names.TRUSTED_CA_BUNDLE_LABEL_VALUE


def is_canonical_bundle(name: str, namespace: str) -> bool:
    return name == CANONICAL_BUNDLE_REF.name and namespace == CANONICAL_BUNDLE_REF.namespace


def should_update_configmaps(name: str, namespace: str, labels: Optional[dict[str, str]]) -> bool:
    return is_injection_target(labels) or is_canonical_bundle(name, namespace)


def accepts(event: WatchEvent) -> bool:
    """
    Filter a watch event.

    Deletions are always rejected; garbage collection owns them.
    """
    if event.event_type == DELETED or event.event_type in IGNORED_EVENT_TYPES:
        return False
    return should_update_configmaps(event.name, event.namespace, event.labels)
