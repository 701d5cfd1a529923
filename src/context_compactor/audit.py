"""
审计日志 — 以 Markdown 记录一次压缩中每个 unit 的前后对比。

报告结构::

    # 压缩审计日志
    ## Unit 0 · Turn 0 · initiator     （每个任务一节）
    ## 未落入任何区间的 Turn
    ## 汇总
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from context_compactor.compress.executor import CANCELLED_ERROR
from context_compactor.compress.stats import CompressionStats, summarize
from context_compactor.compress.tasks import CompressionTask, TaskStatus
from context_compactor.models.conversation import Conversation
from context_compactor.tokenizer import estimate_tokens

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    TaskStatus.SUCCESS: "已压缩",
    TaskStatus.SKIPPED: "未压缩：低于阈值",
    TaskStatus.FAILED: "未压缩：重试耗尽",
}
_CANCELLED_LABEL = "未压缩：运行被取消"


def _status_label(task: CompressionTask) -> str:
    if task.status is TaskStatus.FAILED and task.error == CANCELLED_ERROR:
        return _CANCELLED_LABEL
    return _STATUS_LABELS.get(task.status, task.status.value)


def _fenced(text: str) -> str:
    # 内容里可能自带代码块，用更长的围栏包起来
    fence = "````" if "```" in text else "```"
    return f"{fence}\n{text}\n{fence}\n"


def _task_section(task: CompressionTask, reconciled: Conversation) -> list[str]:
    lines = [
        f"## Unit {task.unit_index} · Turn {task.turn_index} · {task.role.value}",
        "",
        f"- 状态：{_status_label(task)}",
        f"- 压缩强度：{task.level.value}（目标 {task.level.target_percent}%）",
        f"- 原始估算：{task.estimated_tokens} tokens",
    ]

    if task.status is TaskStatus.SUCCESS:
        after = reconciled.turns[task.turn_index].text_of(task.role.segment_kind)
        lines.append(f"- 压缩后估算：{estimate_tokens(after)} tokens")
    if task.attempts:
        lines.append(f"- 尝试次数：{len(task.attempts)}")
    if task.duration_ms is not None:
        lines.append(f"- 耗时：{task.duration_ms}ms")
    if task.error:
        lines.append(f"- 错误：`{task.error}`")

    if task.attempts:
        lines += ["", "| # | 超时 (ms) | 结果 | 耗时 (ms) | 错误 |", "|---|---|---|---|---|"]
        for record in task.attempts:
            lines.append(
                f"| {record.attempt + 1} | {record.timeout_ms} | {record.outcome} | "
                f"{record.duration_ms} | {record.error or ''} |"
            )

    lines += ["", "### 压缩前", "", _fenced(task.original_text)]
    if task.status is TaskStatus.SUCCESS:
        lines += ["### 压缩后", "", _fenced(task.result or "")]
    lines += ["---", ""]
    return lines


def build_audit_report(
    original: Conversation,
    reconciled: Conversation,
    tasks: Sequence[CompressionTask],
    stats: CompressionStats | None = None,
) -> str:
    """
    生成 Markdown 审计报告。

    参数:
        original: 压缩前的对话
        reconciled: apply_results() 的输出
        tasks: 引擎返回的全部任务
        stats: 统计摘要（缺省时由 tasks 重新计算）

    返回:
        Markdown 文本
    """
    stats = stats or summarize(tasks)
    lines = ["# 压缩审计日志", ""]
    if original.source_id:
        lines += [f"**会话：** `{original.source_id}`", ""]
    lines += [f"**Turn 数：** {len(original.turns)}", "", "---", ""]

    for task in sorted(tasks, key=lambda t: t.unit_index):
        lines += _task_section(task, reconciled)

    # 落在区间内的 Turn 至少有一个任务（含 skipped）
    banded = {task.turn_index for task in tasks}
    outside = [i for i in range(len(original.turns)) if i not in banded]
    if outside:
        lines += ["## 未落入任何区间的 Turn", ""]
        for n, i in enumerate(outside, start=1):
            turn = original.turns[i]
            tokens = estimate_tokens(turn.initiator_text) + estimate_tokens(turn.responder_text)
            lines.append(f"{n}. Turn {i}（{tokens} tokens）")
        lines += ["", "---", ""]

    lines += [
        "## 汇总",
        "",
        f"- 区间内任务数：{stats.total_tasks}",
        f"- 压缩成功：{stats.messages_compressed}",
        f"- 跳过（低于阈值）：{stats.messages_skipped}",
        f"- 失败：{stats.messages_failed}",
        f"- Token：{stats.original_tokens} → {stats.compressed_tokens}"
        f"（削减 {stats.tokens_removed}，{stats.reduction_percent}%）",
    ]
    if outside:
        lines.append(f"- 未落入任何区间的 Turn：{len(outside)}")
    if stats.total_duration_ms is not None:
        lines.append(f"- 总耗时：{stats.total_duration_ms / 1000:.2f}s")
        lines.append(f"- 平均每个任务：{stats.avg_duration_ms}ms")
    lines.append("")
    return "\n".join(lines)


def write_audit_log(
    path: str | Path,
    original: Conversation,
    reconciled: Conversation,
    tasks: Sequence[CompressionTask],
    stats: CompressionStats | None = None,
) -> Path:
    """生成审计报告并写入文件（自动创建父目录），返回写入路径。"""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(build_audit_report(original, reconciled, tasks, stats), encoding="utf-8")
    logger.info(f"审计日志已写入：{target}")
    return target
