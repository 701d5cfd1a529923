"""
可观测性模块 — 可选的分布式追踪。
"""

from context_compactor.observability.tracing import NOOP_TRACING, TracingMiddleware, create_tracing

__all__ = [
    "NOOP_TRACING",
    "TracingMiddleware",
    "create_tracing",
]
