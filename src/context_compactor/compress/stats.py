"""
统计聚合器 — 把任务结果归约为一份只读摘要。

Token 口径：
- original_tokens：success + failed 任务的原始估算之和。
  skipped 任务被判定为不值得压缩，不进入削减率计算。
- compressed_tokens：success 任务按压缩结果重新估算；failed 任务保留了原文，
  按原始估算计入（即"没有变化"）。

# [Design Decision] failed 任务在 original / compressed 两侧都按原始估算计入，
# 全部失败时 reduction_percent 为 0。
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import asdict, dataclass

from context_compactor.compress.tasks import CompressionTask, TaskStatus
from context_compactor.tokenizer import CharBasedCounter, TokenCounter


@dataclass(frozen=True)
class CompressionStats:
    """
    压缩统计（创建后不可变）。

    属性:
        messages_compressed: success 任务数
        messages_skipped: skipped 任务数
        messages_failed: failed 任务数
        original_tokens: 参与压缩的原始 Token 估算
        compressed_tokens: 压缩后的 Token 估算
        tokens_removed: original_tokens - compressed_tokens（Provider 变长时为负）
        reduction_percent: 削减百分比（四舍五入取整）
        total_duration_ms: 所有任务的累计耗时
        avg_duration_ms: 每个任务的平均耗时
    """

    messages_compressed: int = 0
    messages_skipped: int = 0
    messages_failed: int = 0
    original_tokens: int = 0
    compressed_tokens: int = 0
    tokens_removed: int = 0
    reduction_percent: int = 0
    total_duration_ms: int | None = None
    avg_duration_ms: int | None = None

    @property
    def total_tasks(self) -> int:
        return self.messages_compressed + self.messages_skipped + self.messages_failed

    def to_dict(self) -> dict[str, int | None]:
        return asdict(self)


EMPTY_STATS = CompressionStats()


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def summarize(
    tasks: Sequence[CompressionTask],
    counter: TokenCounter | None = None,
) -> CompressionStats:
    """
    汇总任务结果。

    参数:
        tasks: 已进入终态的任务列表
        counter: 估算压缩结果所用的 Token 计数器（需与任务工厂一致）

    返回:
        CompressionStats
    """
    counter = counter or CharBasedCounter()

    succeeded = [t for t in tasks if t.status is TaskStatus.SUCCESS]
    skipped = [t for t in tasks if t.status is TaskStatus.SKIPPED]
    failed = [t for t in tasks if t.status is TaskStatus.FAILED]

    original_tokens = sum(t.estimated_tokens for t in succeeded) + sum(
        t.estimated_tokens for t in failed
    )
    compressed_tokens = sum(counter.count(t.result or "") for t in succeeded) + sum(
        t.estimated_tokens for t in failed
    )
    tokens_removed = original_tokens - compressed_tokens
    reduction_percent = (
        _round_half_up(tokens_removed / original_tokens * 100) if original_tokens > 0 else 0
    )

    timed = [t.duration_ms for t in tasks if t.duration_ms is not None]
    total_duration_ms = sum(timed) if timed else None
    avg_duration_ms = _round_half_up(total_duration_ms / len(timed)) if timed else None

    return CompressionStats(
        messages_compressed=len(succeeded),
        messages_skipped=len(skipped),
        messages_failed=len(failed),
        original_tokens=original_tokens,
        compressed_tokens=compressed_tokens,
        tokens_removed=tokens_removed,
        reduction_percent=reduction_percent,
        total_duration_ms=total_duration_ms,
        avg_duration_ms=avg_duration_ms,
    )
