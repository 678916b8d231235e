"""Resolves the ConfigMaps a pass has to write."""

import logging
from typing import Optional

from . import names
from .context import ReconcileContext
from .exceptions import NotFoundError
from .filters import is_canonical_bundle, is_injection_target
from .models import ConfigMapResource, ReconcileRequest
from .store import ResourceStore

logger = logging.getLogger(__name__)


class TargetResolver:
    """Computes the target set for a reconciliation request."""

    def __init__(self, store: ResourceStore):
        self.store = store

    def resolve(
        self, request: ReconcileRequest, ctx: ReconcileContext
    ) -> Optional[list[ConfigMapResource]]:
        """
        Resolve targets for ``request``.

        A change to the canonical bundle fans out to every labelled ConfigMap.
        Any other request names a single labelled ConfigMap.

        Args:
            request: Triggering request
            ctx: Pass context

        Returns:
            Targets to sync, or None when the named ConfigMap is gone or no
            longer carries the injection label

        Raises:
            StoreError: If listing or reading fails
        """
        if is_canonical_bundle(request.name, request.namespace):
            targets = self.store.list(
                {names.TRUSTED_CA_BUNDLE_CONFIGMAP_LABEL: names.TRUSTED_CA_BUNDLE_LABEL_VALUE},
                ctx,
            )
            logger.info(
                f"{names.TRUSTED_CA_BUNDLE_CONFIGMAP} changed, updating {len(targets)} configMaps"
            )
            return targets

        try:
            target = self.store.get(request.ref, ctx)
        except NotFoundError:
            logger.info(f"ConfigMap '{request.ref}' not found; reconciliation will be skipped")
            return None

        if not is_injection_target(target.labels):
            logger.info(
                f"ConfigMap '{request.ref}' is no longer labelled for injection; skipping"
            )
            return None
        return [target]
