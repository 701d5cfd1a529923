"""
TracingMiddleware — 可选的 OpenTelemetry 集成。

把一次引擎运行记录为一个 Span，每次 Provider 尝试记录为子 Span，
便于和外部 LLM 服务的调用链串联起来。

这个模块是完全可选的：
- 如果用户没有安装 OpenTelemetry，会自动降级为无操作模式
- 如果用户安装了但未传入 Tracer，同样是无操作模式
"""

from __future__ import annotations

import warnings
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

# [Design Decision] 使用 lazy import，避免强依赖 OpenTelemetry
_OTEL_AVAILABLE = False
try:
    from opentelemetry.trace import SpanKind, Status, StatusCode

    _OTEL_AVAILABLE = True
except ImportError:
    pass


class TracingMiddleware:
    """
    OpenTelemetry 追踪中间件。

    基本用法::

        from opentelemetry import trace
        tracing = TracingMiddleware(tracer=trace.get_tracer("context_compactor"))
        engine = CompressEngine(config, provider, tracing=tracing)

    属性:
        tracer: OpenTelemetry Tracer 实例（可选）
        enabled: 是否启用追踪
    """

    def __init__(self, tracer: Any = None) -> None:
        self.tracer = tracer
        self.enabled = _OTEL_AVAILABLE and tracer is not None

        if not _OTEL_AVAILABLE and tracer is not None:
            warnings.warn(
                "OpenTelemetry 未安装，TracingMiddleware 将以无操作模式运行。"
                "如需启用追踪，请安装: pip install 'context-compactor[tracing]'"
            )

    @asynccontextmanager
    async def trace_run(
        self,
        source_id: str | None,
        turn_count: int,
        band_count: int,
    ) -> AsyncIterator[Any]:
        """
        追踪一次完整的引擎运行。

        Yields:
            Span 实例（未启用时为 None）
        """
        if not self.enabled:
            yield None
            return

        with self.tracer.start_as_current_span(
            "context_compactor.run",
            kind=SpanKind.INTERNAL,
        ) as span:
            span.set_attribute("source_id", source_id or "")
            span.set_attribute("turn_count", turn_count)
            span.set_attribute("band_count", band_count)
            yield span

    @asynccontextmanager
    async def trace_attempt(
        self,
        unit_index: int,
        attempt: int,
        timeout_ms: int,
    ) -> AsyncIterator[Any]:
        """
        追踪单次 Provider 尝试。失败时把 Span 标记为 ERROR 并继续抛出异常。
        """
        if not self.enabled:
            yield None
            return

        with self.tracer.start_as_current_span(
            "context_compactor.attempt",
            kind=SpanKind.CLIENT,
        ) as span:
            span.set_attribute("unit_index", unit_index)
            span.set_attribute("attempt", attempt)
            span.set_attribute("timeout_ms", timeout_ms)
            try:
                yield span
            except BaseException as e:
                span.set_status(Status(StatusCode.ERROR, str(e) or type(e).__name__))
                raise

    def record_stats(self, span: Any, stats: Any) -> None:
        """把统计结果写入 Span 属性。"""
        if not self.enabled or span is None:
            return
        for key, value in stats.to_dict().items():
            if value is not None:
                span.set_attribute(f"stats.{key}", value)


NOOP_TRACING = TracingMiddleware()


def create_tracing(enabled: bool, name: str = "context_compactor") -> TracingMiddleware:
    """
    根据策略开关创建追踪中间件。

    启用但未安装 OpenTelemetry 时给出警告并返回无操作实例。
    """
    if not enabled:
        return NOOP_TRACING
    if not _OTEL_AVAILABLE:
        warnings.warn(
            "策略启用了 tracing，但 OpenTelemetry 未安装，追踪将被跳过。"
            "请安装: pip install 'context-compactor[tracing]'"
        )
        return NOOP_TRACING

    from opentelemetry import trace

    return TracingMiddleware(tracer=trace.get_tracer(name))
