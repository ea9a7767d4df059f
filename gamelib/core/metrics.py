"""
Prometheus metrics for the library sync engine.

Metrics exposed:
- Sync run counters and duration histograms by platform and mode
- Reconciled item counters by outcome
- Catalog match counters by phase
- Upstream API failure counters
"""
from prometheus_client import Counter, Histogram

# Sync runs
library_sync_runs_total = Counter(
    "library_sync_runs_total",
    "Total library sync runs",
    ["platform", "mode", "status"]
)

library_sync_duration_seconds = Histogram(
    "library_sync_duration_seconds",
    "Library sync duration in seconds",
    ["platform", "mode"],
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300)
)

# Reconciliation
reconciled_items_total = Counter(
    "reconciled_items_total",
    "Total reconciled library items",
    ["platform", "outcome"]  # outcome: imported, updated, failed
)

# Identity matching
catalog_matches_total = Counter(
    "catalog_matches_total",
    "Total raw games resolved against the catalog",
    ["platform", "phase"]  # phase: exact, fuzzy, unmatched
)

# Upstream APIs
upstream_requests_failure_total = Counter(
    "upstream_requests_failure_total",
    "Total failed platform/catalog API requests",
    ["source", "error_type"]
)
