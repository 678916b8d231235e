"""Writes the trust bundle into a single target ConfigMap."""

import logging
from typing import Any

from . import names
from .bundle import TrustBundle
from .context import ReconcileContext
from .exceptions import NotFoundError, StoreError
from .models import ConfigMapResource, SyncOutcome, TargetResult
from .retry import RetryPolicy, retry_on_conflict
from .store import ResourceStore

logger = logging.getLogger(__name__)


def build_patch(target: ConfigMapResource, data: str) -> dict[str, Any]:
    """Sparse ConfigMap carrying only the identity and the injected key."""
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": target.name,
            "namespace": target.namespace,
        },
        "data": {
            names.TRUSTED_CA_BUNDLE_CONFIGMAP_KEY: data,
        },
    }


class BundleApplier:
    """Idempotent, conflict-retried injection of the bundle into one target."""

    def __init__(
        self,
        store: ResourceStore,
        retry_policy: RetryPolicy = RetryPolicy(),
        field_manager: str = names.FIELD_MANAGER,
    ):
        self.store = store
        self.retry_policy = retry_policy
        self.field_manager = field_manager

    def apply(
        self, target: ConfigMapResource, bundle: TrustBundle, ctx: ReconcileContext
    ) -> TargetResult:
        """
        Bring ``target`` in line with ``bundle``.

        Args:
            target: ConfigMap as resolved for this pass
            bundle: Validated canonical bundle
            ctx: Pass context

        Returns:
            TargetResult with outcome unchanged, updated or failed

        Raises:
            CanceledError: If the pass is cancelled mid-write
        """
        if target.data.get(names.TRUSTED_CA_BUNDLE_CONFIGMAP_KEY) == bundle.data:
            return TargetResult(ref=target.ref, outcome=SyncOutcome.UNCHANGED)

        document = build_patch(target, bundle.data)
        attempts = 0

        def submit() -> ConfigMapResource:
            nonlocal attempts
            attempts += 1
            return self.store.apply(document, self.field_manager, ctx)

        try:
            retry_on_conflict(self.retry_policy, ctx, submit)
        except (StoreError, NotFoundError) as e:
            logger.warning(f"Failed to update configmap {target.ref}: {e}")
            return TargetResult(
                ref=target.ref, outcome=SyncOutcome.FAILED, attempts=attempts, error=str(e)
            )

        logger.info(f"Injected trust bundle into configmap {target.ref}")
        return TargetResult(ref=target.ref, outcome=SyncOutcome.UPDATED, attempts=attempts)
