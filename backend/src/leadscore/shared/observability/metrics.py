"""Prometheus metrics for the lead-scoring backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Dispatch metrics ─────────────────────────────────────────
DISPATCH_ATTEMPTS = Counter(
    "provider_dispatch_attempts_total",
    "Provider attempts made while dispatching an operation",
    ["operation", "provider", "outcome"],  # success / failure / no_credential
)

DISPATCH_RESULTS = Counter(
    "provider_dispatch_results_total",
    "Dispatch calls by final outcome",
    ["operation", "outcome"],  # succeeded / exhausted / no_providers / timeout
)

PROVIDER_LATENCY = Histogram(
    "provider_invocation_latency_seconds",
    "Latency of a single provider invocation",
    ["operation", "provider"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

# ── Priority sync metrics ────────────────────────────────────
PRIORITY_SYNC_UPDATES = Counter(
    "priority_sync_mapping_updates_total",
    "Operation mappings realigned to their provider priority",
    ["trigger"],  # set_priority / sync_all
)
