"""Operational helpers."""

from propline.ops.rate_limiter import RateLimiter, get_rate_limiter
from propline.ops.metrics import MetricsRecorder, InMemoryMetricsRecorder

__all__ = ["RateLimiter", "get_rate_limiter", "MetricsRecorder", "InMemoryMetricsRecorder"]
