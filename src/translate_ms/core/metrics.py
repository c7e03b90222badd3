"""
Prometheus Metrics for the gateway.

Each GatewayMetrics instance owns a private CollectorRegistry, so several
apps (or tests) in one process never collide on metric names.

Metrics Exposed:
    gateway_requests_total            - requests by operation and status
    gateway_request_duration_seconds  - latency by operation
    gateway_cache_hits_total          - cache hits by tier
    gateway_cache_misses_total        - cache misses by tier
    gateway_dedupe_joins_total        - callers that joined an in-flight call
    gateway_retries_total             - retry attempts by call name
    gateway_fallbacks_total           - speech fallbacks by from/to provider
    gateway_speech_bytes_total        - synthesized audio bytes by provider
    gateway_queue_depth               - tasks waiting in a batching queue

Usage:
    metrics = GatewayMetrics()
    metrics.record_request("translate", "ok", 0.42)
    metrics.record_cache("hit", tier="shared")
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class GatewayMetrics:
    """
    Counters, histograms and gauges for the orchestration layer.

    Cache tiers used as labels: ``ephemeral`` (per-process translation
    cache), ``shared`` (durable translation cache), ``audio`` (speech
    cache) and ``client`` (client-side API cache).
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "gateway_requests_total",
            "Total gateway requests",
            ["operation", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "gateway_request_duration_seconds",
            "Gateway request duration in seconds",
            ["operation"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._cache_hits = Counter(
            "gateway_cache_hits_total",
            "Total cache hits",
            ["tier"],
            registry=self._registry,
        )
        self._cache_misses = Counter(
            "gateway_cache_misses_total",
            "Total cache misses",
            ["tier"],
            registry=self._registry,
        )
        self._dedupe_joins = Counter(
            "gateway_dedupe_joins_total",
            "Callers that joined an already in-flight call",
            registry=self._registry,
        )
        self._retries = Counter(
            "gateway_retries_total",
            "Retry attempts after a failed call",
            ["call"],
            registry=self._registry,
        )
        self._fallbacks = Counter(
            "gateway_fallbacks_total",
            "Speech provider fallbacks",
            ["from_provider", "to_provider"],
            registry=self._registry,
        )
        self._speech_bytes = Counter(
            "gateway_speech_bytes_total",
            "Synthesized audio bytes",
            ["provider"],
            registry=self._registry,
        )
        self._queue_depth = Gauge(
            "gateway_queue_depth",
            "Tasks waiting in the batching queue",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, operation: str, status: str, duration: float) -> None:
        """
        Record a completed request.

        Args:
            operation: "translate", "speak" or "speak_chunk".
            status: "ok" or "error".
            duration: Wall time in seconds.
        """
        self._requests_total.labels(operation=operation, status=status).inc()
        self._request_duration.labels(operation=operation).observe(duration)

    def record_cache(self, result: str, tier: str) -> None:
        if result == "hit":
            self._cache_hits.labels(tier=tier).inc()
        else:
            self._cache_misses.labels(tier=tier).inc()

    def inc_dedupe_joins(self) -> None:
        self._dedupe_joins.inc()

    def inc_retries(self, call: str) -> None:
        self._retries.labels(call=call).inc()

    def record_fallback(self, from_provider: str, to_provider: str) -> None:
        self._fallbacks.labels(from_provider=from_provider, to_provider=to_provider).inc()

    def record_speech_bytes(self, provider: str, count: int) -> None:
        if count > 0:
            self._speech_bytes.labels(provider=provider).inc(count)

    def set_queue_depth(self, depth: int) -> None:
        self._queue_depth.set(depth)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Prometheus text exposition as (content, content_type)."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST
