"""
统计聚合器单元测试。
"""

from __future__ import annotations

import pytest

from context_compactor.compress.stats import EMPTY_STATS, CompressionStats, summarize
from context_compactor.compress.tasks import CompressionTask, TaskRole, TaskStatus
from context_compactor.models.band import CompressionLevel


def task(status: TaskStatus, tokens: int, result: str | None = None, duration: int | None = None) -> CompressionTask:
    return CompressionTask(
        unit_index=0,
        turn_index=0,
        role=TaskRole.RESPONDER,
        original_text="x" * (tokens * 4),
        level=CompressionLevel.REGULAR,
        estimated_tokens=tokens,
        status=status,
        result=result,
        duration_ms=duration,
    )


class TestSummarize:
    """summarize() 测试。"""

    def test_empty(self) -> None:
        """没有任务时全部为 0，削减比例为 0 而不是除零错误。"""
        stats = summarize([])
        assert stats == EMPTY_STATS
        assert stats.reduction_percent == 0
        assert stats.total_duration_ms is None

    def test_counts(self) -> None:
        tasks = [
            task(TaskStatus.SUCCESS, 100, result="y" * 40),
            task(TaskStatus.SKIPPED, 5),
            task(TaskStatus.FAILED, 50),
        ]
        stats = summarize(tasks)
        assert (stats.messages_compressed, stats.messages_skipped, stats.messages_failed) == (1, 1, 1)
        assert stats.total_tasks == 3

    def test_token_totals(self) -> None:
        """success 按结果重新估算；skipped 不计入。"""
        tasks = [
            task(TaskStatus.SUCCESS, 100, result="y" * 40),  # 10 tokens
            task(TaskStatus.SUCCESS, 100, result="y" * 80),  # 20 tokens
            task(TaskStatus.SKIPPED, 5),
        ]
        stats = summarize(tasks)
        assert stats.original_tokens == 200
        assert stats.compressed_tokens == 30
        assert stats.tokens_removed == 170
        assert stats.reduction_percent == 85

    def test_failed_counts_as_unchanged(self) -> None:
        """failed 任务在两侧都按原始估算计入。"""
        tasks = [
            task(TaskStatus.SUCCESS, 100, result="y" * 40),  # 100 → 10
            task(TaskStatus.FAILED, 100),  # 100 → 100
        ]
        stats = summarize(tasks)
        assert stats.original_tokens == 200
        assert stats.compressed_tokens == 110
        assert stats.reduction_percent == 45

    def test_all_failed_reports_zero_reduction(self) -> None:
        stats = summarize([task(TaskStatus.FAILED, 80), task(TaskStatus.FAILED, 20)])
        assert stats.messages_failed == 2
        assert stats.tokens_removed == 0
        assert stats.reduction_percent == 0

    def test_provider_output_longer_than_input(self) -> None:
        """Provider 变长时削减为负数，不做截断。"""
        stats = summarize([task(TaskStatus.SUCCESS, 10, result="y" * 80)])
        assert stats.tokens_removed == -10
        assert stats.reduction_percent == -100

    @pytest.mark.parametrize(
        "compressed_chars, expected",
        [
            (4 * 1, 67),   # 3 → 1：66.67% → 67
            (4 * 2, 33),   # 3 → 2：33.33% → 33
        ],
    )
    def test_rounding(self, compressed_chars: int, expected: int) -> None:
        stats = summarize([task(TaskStatus.SUCCESS, 3, result="y" * compressed_chars)])
        assert stats.reduction_percent == expected

    def test_half_rounds_up(self) -> None:
        """x.5% 向上取整。"""
        # 200 → 199：0.5%
        stats = summarize([task(TaskStatus.SUCCESS, 200, result="y" * (199 * 4))])
        assert stats.reduction_percent == 1

    def test_durations(self) -> None:
        tasks = [
            task(TaskStatus.SUCCESS, 10, result="y", duration=100),
            task(TaskStatus.FAILED, 10, duration=301),
            task(TaskStatus.SKIPPED, 1),
        ]
        stats = summarize(tasks)
        assert stats.total_duration_ms == 401
        assert stats.avg_duration_ms == 201

    def test_stats_are_immutable(self) -> None:
        stats = summarize([])
        with pytest.raises(AttributeError):
            stats.messages_compressed = 5  # type: ignore[misc]

    def test_to_dict(self) -> None:
        payload = CompressionStats(messages_compressed=2).to_dict()
        assert payload["messages_compressed"] == 2
        assert set(payload) >= {"original_tokens", "compressed_tokens", "reduction_percent"}
