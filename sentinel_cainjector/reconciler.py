"""Reconciliation pass for the trust bundle injector."""

import logging
import time
from typing import Optional

from . import names
from .applier import BundleApplier
from .bundle import SourceBundleReader, TrustBundle
from .context import ReconcileContext
from .exceptions import BundleValidationError, CanceledError, StoreError
from .filters import is_canonical_bundle
from .metrics import reconcile_duration_seconds, reconcile_passes_total, target_outcomes_total
from .models import (
    ConfigMapResource,
    PassCondition,
    PassResult,
    ReconcileRequest,
    SyncOutcome,
    TargetResult,
)
from .resolver import TargetResolver
from .retry import RetryPolicy
from .status import HealthReporter
from .store import ResourceStore

logger = logging.getLogger(__name__)


class ReconcileDriver:
    """
    Runs one reconciliation pass per request.

    A pass moves through ReadSource -> ResolveTargets -> ApplyAll -> Report.
    Nothing is kept between passes; the store and the health reporter are the
    only shared state, so concurrent passes over overlapping targets are safe
    as long as the store rejects conflicting writes.
    """

    def __init__(
        self,
        store: ResourceStore,
        health: HealthReporter,
        retry_policy: RetryPolicy = RetryPolicy(),
        failure_threshold: int = names.MAX_TARGET_FAILURES,
        component: str = names.INJECTOR_CONFIG_COMPONENT,
    ):
        """
        Initialize the driver.

        Args:
            store: ConfigMap store
            health: Health reporter for the injector component
            retry_policy: Conflict retry policy for writes
            failure_threshold: Failed targets after which a pass aborts
            component: Component id reported to ``health``
        """
        self.reader = SourceBundleReader(store)
        self.resolver = TargetResolver(store)
        self.applier = BundleApplier(store, retry_policy)
        self.health = health
        self.failure_threshold = failure_threshold
        self.component = component

    def reconcile(
        self, request: ReconcileRequest, ctx: Optional[ReconcileContext] = None
    ) -> PassResult:
        """
        Reconcile the ConfigMaps affected by ``request``.

        Args:
            request: ConfigMap whose change triggered the pass
            ctx: Pass context; a context without deadline when omitted

        Returns:
            PassResult describing the terminal condition and per-target outcomes
        """
        ctx = ctx or ReconcileContext.background()
        logger.info(f"Reconciling configmap from {request.namespace}/{request.name}")

        start = time.monotonic()
        try:
            result = self._run(request, ctx)
        except CanceledError as e:
            logger.info(f"Reconciliation of {request.ref} canceled: {e}")
            result = PassResult(
                request=request, condition=PassCondition.CANCELED, message=str(e), requeue=True
            )
        reconcile_duration_seconds.observe(time.monotonic() - start)
        reconcile_passes_total.labels(condition=result.condition.value).inc()
        return result

    def _run(self, request: ReconcileRequest, ctx: ReconcileContext) -> PassResult:
        # ReadSource
        try:
            bundle = self.reader.read(ctx)
        except BundleValidationError as e:
            message = f"Failed to validate trusted CA certificates in {e.resource}: {e}"
            logger.error(message)
            self.health.set_degraded(self.component, PassCondition.INVALID_CONFIG.value, message)
            return PassResult(
                request=request, condition=PassCondition.INVALID_CONFIG, message=message
            )
        except StoreError as e:
            logger.error(f"Failed to read the trusted CA bundle: {e}")
            return PassResult(
                request=request,
                condition=PassCondition.SOURCE_READ_ERROR,
                message=str(e),
                requeue=True,
            )
        if bundle is None:
            return PassResult(request=request, condition=PassCondition.SKIPPED)

        # ResolveTargets
        try:
            targets = self.resolver.resolve(request, ctx)
        except StoreError as e:
            return self._resolve_failed(request, e)
        if targets is None:
            return PassResult(request=request, condition=PassCondition.SKIPPED)

        # ApplyAll, then Report
        return self._apply_all(request, bundle, targets, ctx)

    def _resolve_failed(self, request: ReconcileRequest, error: StoreError) -> PassResult:
        if is_canonical_bundle(request.name, request.namespace):
            condition = PassCondition.LIST_ERROR
            message = f"Error getting the list of affected configmaps: {error}"
        else:
            condition = PassCondition.TARGET_READ_ERROR
            message = f"failed to get configmap '{request.ref}': {error}"
        logger.error(message)
        self.health.set_degraded(self.component, condition.value, message)
        return PassResult(request=request, condition=condition, message=message, requeue=True)

    def _apply_all(
        self,
        request: ReconcileRequest,
        bundle: TrustBundle,
        targets: list[ConfigMapResource],
        ctx: ReconcileContext,
    ) -> PassResult:
        results: list[TargetResult] = []
        failures = 0

        for index, target in enumerate(targets):
            try:
                result = self.applier.apply(target, bundle, ctx)
            except CanceledError as e:
                logger.info(f"Reconciliation of {request.ref} canceled at {target.ref}: {e}")
                self._count(results)
                if failures:
                    # The cancellation is not a failure; the targets that failed before it are.
                    self.health.set_degraded(
                        self.component,
                        PassCondition.PARTIAL_FAILURE.value,
                        f"some configmaps didn't fully update with CA cert. data "
                        f"({failures} failed before the pass was canceled)",
                    )
                return PassResult(
                    request=request,
                    condition=PassCondition.CANCELED,
                    message=str(e),
                    targets=results,
                    skipped_targets=len(targets) - index,
                    requeue=True,
                )
            results.append(result)

            if result.outcome == SyncOutcome.FAILED:
                failures += 1
                if failures >= self.failure_threshold:
                    remaining = len(targets) - index - 1
                    logger.error(
                        f"Aborting after {failures} failed configmap updates, "
                        f"{remaining} left untouched"
                    )
                    return self._report(
                        request,
                        PassCondition.TOO_MANY_FAILURES,
                        "Too many errors seen when updating trusted CA configmaps",
                        results,
                        skipped=remaining,
                    )

        if failures:
            return self._report(
                request,
                PassCondition.PARTIAL_FAILURE,
                f"some configmaps didn't fully update with CA cert. data "
                f"({failures} of {len(targets)} failed)",
                results,
            )
        return self._report(request, PassCondition.SUCCESS, "", results)

    def _report(
        self,
        request: ReconcileRequest,
        condition: PassCondition,
        message: str,
        results: list[TargetResult],
        skipped: int = 0,
    ) -> PassResult:
        self._count(results)
        if condition == PassCondition.SUCCESS:
            self.health.set_healthy(self.component)
        else:
            self.health.set_degraded(self.component, condition.value, message)

        result = PassResult(
            request=request,
            condition=condition,
            message=message,
            targets=results,
            skipped_targets=skipped,
            requeue=condition != PassCondition.SUCCESS,
        )
        logger.info(
            f"Reconciled {request.ref}: {condition.value} "
            f"(updated={result.updated}, unchanged={result.unchanged}, "
            f"failed={result.failures}, skipped={skipped})"
        )
        return result

    @staticmethod
    def _count(results: list[TargetResult]) -> None:
        for result in results:
            target_outcomes_total.labels(outcome=result.outcome.value).inc()
