"""Prometheus metrics for reconciliation passes."""

from prometheus_client import Counter, Histogram

reconcile_passes_total = Counter(
    "cainjector_reconcile_passes_total",
    "Reconciliation passes by terminal condition",
    ["condition"],
)

target_outcomes_total = Counter(
    "cainjector_target_outcomes_total",
    "Per-target sync outcomes",
    ["outcome"],
)

reconcile_duration_seconds = Histogram(
    "cainjector_reconcile_duration_seconds",
    "Reconciliation pass duration in seconds",
)
