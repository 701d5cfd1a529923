"""
压缩引擎 — 串联映射、任务工厂、批量执行、对账与统计。

控制流::

    conversation + bands + config
        → map_turns_to_bands()      区间映射（纯函数）
        → create_tasks()            按 unit 决定 skip / compress
        → BatchExecutor.execute()   有界并发执行，等待全部任务进入终态
        → apply_results()           生成新的对话
        → summarize()               生成统计
        → EngineResult

# [Design Decision] 引擎不直接实现压缩，也不读取任何环境变量。
# Provider 和配置都由调用方显式传入，引擎本身不持有跨调用的状态。
"""

from __future__ import annotations

import asyncio
import logging
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from context_compactor.compress.base import SummarizationProvider
from context_compactor.compress.executor import BatchExecutor, validate_engine_config
from context_compactor.compress.mapper import find_overlaps, map_turns_to_bands
from context_compactor.compress.reconciler import apply_results
from context_compactor.compress.stats import EMPTY_STATS, CompressionStats, summarize
from context_compactor.compress.tasks import CompressionTask, TaskStatus, create_tasks
from context_compactor.config.schema import EngineConfig
from context_compactor.errors import ConfigValidationError
from context_compactor.models.band import CompressionBand
from context_compactor.models.conversation import Conversation, Turn
from context_compactor.observability.tracing import NOOP_TRACING, TracingMiddleware
from context_compactor.tokenizer import CharBasedCounter, TokenCounter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    """
    一次引擎调用的结果。

    属性:
        conversation: 压缩后的新对话
        stats: 统计摘要
        tasks: 全部任务（含 skipped），按 unit_index 排序，可用于审计日志
    """

    conversation: Conversation
    stats: CompressionStats
    tasks: list[CompressionTask] = field(default_factory=list)


def validate_bands(bands: Sequence[CompressionBand | Mapping[str, Any]]) -> list[CompressionBand]:
    """
    校验并规范化区间列表。

    参数:
        bands: CompressionBand 或等价字典组成的列表

    返回:
        CompressionBand 列表（保持原顺序）

    抛出:
        ConfigValidationError: 列表类型错误或任一区间非法
    """
    if isinstance(bands, (str, bytes, Mapping)) or not isinstance(bands, Sequence):
        raise ConfigValidationError(
            what="区间列表格式无效。",
            why=f"期望一个区间列表，实际类型为 {type(bands).__name__}。",
            how="传入 [{'start': 0, 'end': 50, 'level': 'heavy'}, ...] 形式的列表。",
            field_path="bands",
        )

    normalized: list[CompressionBand] = []
    for i, band in enumerate(bands):
        try:
            normalized.append(CompressionBand.model_validate(band))
        except ValidationError as e:
            raise ConfigValidationError(
                what=f"压缩区间 #{i} 校验失败。",
                why="; ".join(err["msg"] for err in e.errors()),
                how="区间为左闭右开 [start, end)，要求 0 <= start < end <= 100，"
                    "level 取 regular 或 heavy。",
                field_path=f"bands.{i}",
            ) from e

    for i, j in find_overlaps(normalized):
        logger.warning(
            f"压缩区间 #{i} {normalized[i]} 与 #{j} {normalized[j]} 重叠，"
            f"重叠部分按列表顺序使用 #{i}。"
        )
    return normalized


class CompressEngine:
    """
    上下文压缩引擎。

    基本用法::

        engine = CompressEngine(EngineConfig(concurrency=8), provider)
        result = await engine.run(conversation, bands)
        result.conversation   # 新对话
        result.stats          # 统计

    同步用法::

        result = engine.run_sync(conversation, bands)

    属性:
        config: 引擎配置
        provider: 摘要 Provider
    """

    def __init__(
        self,
        config: EngineConfig,
        provider: SummarizationProvider,
        counter: TokenCounter | None = None,
        tracing: TracingMiddleware | None = None,
    ) -> None:
        """
        初始化压缩引擎。

        参数:
            config: 引擎配置
            provider: 摘要 Provider
            counter: Token 计数器（默认 4 字符 / Token）
            tracing: 可选的追踪中间件

        抛出:
            ConfigValidationError: 配置非法（同步抛出，不会调用 Provider）
        """
        validate_engine_config(config)
        self.config = config
        self.provider = provider
        self._counter = counter or CharBasedCounter()
        self._tracing = tracing or NOOP_TRACING

    async def run(
        self,
        conversation: Conversation | Sequence[Turn],
        bands: Sequence[CompressionBand | Mapping[str, Any]],
        cancel_event: asyncio.Event | None = None,
    ) -> EngineResult:
        """
        执行一次压缩。

        区间列表为空时直接返回输入对话和全零统计，不会调用 Provider。

        参数:
            conversation: 对话（或 Turn 序列）
            bands: 区间列表
            cancel_event: 可选的协作式取消信号

        返回:
            EngineResult

        抛出:
            ConfigValidationError: 区间列表非法（在任何 Provider 调用之前抛出）
            ReconciliationError: 对账缺陷
        """
        if not isinstance(conversation, Conversation):
            conversation = Conversation.from_turns(list(conversation))

        normalized = validate_bands(bands)
        if not normalized:
            logger.debug("区间列表为空，跳过压缩。")
            return EngineResult(conversation=conversation, stats=EMPTY_STATS, tasks=[])

        async with self._tracing.trace_run(
            conversation.source_id, len(conversation.turns), len(normalized)
        ) as span:
            mapping = map_turns_to_bands(conversation.turns, normalized)
            tasks = create_tasks(
                conversation.turns,
                mapping,
                self.config.min_tokens,
                counter=self._counter,
                initial_timeout_ms=self.config.timeout_for_attempt(0),
                include_initiator=self.config.include_initiator,
            )

            pending = sum(1 for task in tasks if task.status is TaskStatus.PENDING)
            logger.info(
                f"对话共 {len(conversation.turns)} 个 Turn，"
                f"{sum(1 for m in mapping if m.band is not None)} 个落在压缩区间内，"
                f"生成 {len(tasks)} 个任务（{pending} 个待压缩）。"
            )

            if pending:
                executor = BatchExecutor(self.config, tracing=self._tracing)
                await executor.execute(tasks, self.provider, cancel_event=cancel_event)

            compressed = apply_results(conversation, tasks) if pending else conversation
            stats = summarize(tasks, counter=self._counter)
            self._tracing.record_stats(span, stats)

        logger.info(
            f"压缩完成：{stats.messages_compressed} 个成功，{stats.messages_skipped} 个跳过，"
            f"{stats.messages_failed} 个失败，Token {stats.original_tokens} → "
            f"{stats.compressed_tokens}（削减 {stats.reduction_percent}%）。"
        )
        return EngineResult(conversation=compressed, stats=stats, tasks=tasks)

    def run_sync(
        self,
        conversation: Conversation | Sequence[Turn],
        bands: Sequence[CompressionBand | Mapping[str, Any]],
    ) -> EngineResult:
        """
        执行一次压缩 — 同步便捷方法。

        # [DX Decision] 为不使用 async 的脚本提供同步包装。
        # 内部使用 asyncio.run()，如果已在 event loop 中运行会给出友好提示。
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            warnings.warn(
                "检测到已有运行中的 event loop（可能在 Jupyter 环境中）。"
                "run_sync() 无法在已有 event loop 中使用。"
                "请使用 'await engine.run(...)' 代替，"
                "或安装 nest_asyncio：pip install nest_asyncio",
                RuntimeWarning,
                stacklevel=2,
            )
            try:
                import nest_asyncio
                nest_asyncio.apply()
            except ImportError:
                raise RuntimeError(
                    "在已有 event loop 中调用 run_sync() 需要 nest_asyncio。\n"
                    "→ 修复方案 1：使用 'await engine.run(...)' 代替\n"
                    "→ 修复方案 2：pip install nest_asyncio"
                ) from None

        return asyncio.run(self.run(conversation, bands))


async def run_engine(
    conversation: Conversation | Sequence[Turn],
    bands: Sequence[CompressionBand | Mapping[str, Any]],
    config: EngineConfig,
    provider: SummarizationProvider,
    cancel_event: asyncio.Event | None = None,
) -> EngineResult:
    """CompressEngine 的函数式入口。"""
    engine = CompressEngine(config, provider)
    return await engine.run(conversation, bands, cancel_event=cancel_event)


def run_engine_sync(
    conversation: Conversation | Sequence[Turn],
    bands: Sequence[CompressionBand | Mapping[str, Any]],
    config: EngineConfig,
    provider: SummarizationProvider,
) -> EngineResult:
    """run_engine() 的同步版本。"""
    return CompressEngine(config, provider).run_sync(conversation, bands)
