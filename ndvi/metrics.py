from __future__ import annotations

from prometheus_client import Counter, Histogram

agro_upstream_requests_total = Counter(
    "agro_upstream_requests_total",
    "Count of upstream field provider requests",
    labelnames=["operation", "outcome"],
)

agro_upstream_latency_seconds = Histogram(
    "agro_upstream_latency_seconds",
    "Latency of upstream field provider requests",
    labelnames=["operation"],
    buckets=(0.1, 0.3, 0.5, 1, 2, 5, 10, 20, 30),
)

imagery_scene_failures_total = Counter(
    "imagery_scene_failures_total",
    "Scenes dropped because an index statistics fetch failed",
    labelnames=["error_type"],
)

fields_stale_results_total = Counter(
    "fields_stale_results_total",
    "Results discarded because the selection changed in flight",
    labelnames=["kind"],
)

fields_cache_hit_total = Counter(
    "fields_cache_hit_total",
    "Session cache hits by layer",
    labelnames=["layer"],
)
