"""
压缩任务与任务工厂。

每个带区间的 Turn 产生两个 unit：发起方文本和应答方文本。
每个 unit 独立估算 Token：低于阈值的直接标记为 skipped，
其余标记为 pending 交给执行器。

unit_index 由 ``(turn_index, role)`` 唯一确定::

    unit_index = turn_index * 2 + (0 if role is INITIATOR else 1)

对账时只按 unit_index 定位，与任务完成顺序无关。
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from context_compactor.models.band import CompressionLevel, TurnBandMapping
from context_compactor.models.conversation import SegmentKind, Turn
from context_compactor.tokenizer import CharBasedCounter, TokenCounter

DEFAULT_TIMEOUT_MS = 30_000


class TaskRole(str, Enum):
    """unit 的角色。"""

    INITIATOR = "initiator"
    RESPONDER = "responder"

    @property
    def offset(self) -> int:
        return 0 if self is TaskRole.INITIATOR else 1

    @property
    def segment_kind(self) -> SegmentKind:
        return SegmentKind.INITIATOR if self is TaskRole.INITIATOR else SegmentKind.RESPONDER


class TaskStatus(str, Enum):
    """
    任务状态机::

        pending → running → success
                          → retrying → running → ...
                          → failed
        skipped（创建即终态）
    """

    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCESS, TaskStatus.SKIPPED, TaskStatus.FAILED)


def unit_index(turn_index: int, role: TaskRole) -> int:
    """计算 unit 的稳定编号。"""
    return turn_index * 2 + role.offset


def split_unit_index(index: int) -> tuple[int, TaskRole]:
    """unit_index 的逆运算：返回 (turn_index, role)。"""
    turn_index, offset = divmod(index, 2)
    return turn_index, TaskRole.INITIATOR if offset == 0 else TaskRole.RESPONDER


@dataclass(frozen=True)
class AttemptRecord:
    """单次尝试的记录，用于审计超时递增过程。"""

    attempt: int
    timeout_ms: int
    outcome: str
    error: str | None = None
    duration_ms: int = 0


@dataclass
class CompressionTask:
    """
    一个 unit 的压缩任务。

    创建后只由执行器修改，进入终态后交给对账器和统计聚合器只读使用。

    属性:
        unit_index: 稳定编号（见模块文档）
        turn_index: 所属 Turn 下标
        role: 发起方 / 应答方
        original_text: 原始文本（任何情况下都不会被丢弃）
        level: 压缩强度
        estimated_tokens: 原始文本的 Token 估算
        attempt: 已完成的尝试次数
        timeout_ms: 当前（或最后一次）尝试的超时
        status: 当前状态
        result: 压缩结果（仅 success）
        error: 最后一次失败的错误信息
        duration_ms: 所有尝试累计耗时
        attempts: 每次尝试的记录
    """

    unit_index: int
    turn_index: int
    role: TaskRole
    original_text: str
    level: CompressionLevel
    estimated_tokens: int
    attempt: int = 0
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    status: TaskStatus = TaskStatus.PENDING
    result: str | None = None
    error: str | None = None
    duration_ms: int | None = None
    attempts: list[AttemptRecord] = field(default_factory=list)


def create_tasks(
    turns: Sequence[Turn],
    mapping: Sequence[TurnBandMapping],
    min_tokens: int,
    counter: TokenCounter | None = None,
    initial_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    include_initiator: bool = True,
) -> list[CompressionTask]:
    """
    为带区间的 Turn 创建压缩任务。

    辅助 Segment（工具调用 / 结果 / 推理）不参与文本提取，
    它们只会被原样携带。

    参数:
        turns: Turn 序列
        mapping: map_turns_to_bands() 的输出
        min_tokens: 跳过阈值，估算值低于它的 unit 标记为 skipped
        counter: Token 计数器（默认 4 字符 / Token）
        initial_timeout_ms: 首次尝试的超时
        include_initiator: 是否为发起方文本创建任务

    返回:
        任务列表，按 unit_index 升序
    """
    counter = counter or CharBasedCounter()
    roles = [TaskRole.INITIATOR, TaskRole.RESPONDER] if include_initiator else [TaskRole.RESPONDER]
    tasks: list[CompressionTask] = []

    for turn_mapping in mapping:
        if turn_mapping.band is None:
            continue

        turn = turns[turn_mapping.turn_index]
        for role in roles:
            text = turn.text_of(role.segment_kind)
            tokens = counter.count(text)
            # 空文本永远不发送给 Provider
            skipped = not text or tokens < min_tokens
            tasks.append(
                CompressionTask(
                    unit_index=unit_index(turn_mapping.turn_index, role),
                    turn_index=turn_mapping.turn_index,
                    role=role,
                    original_text=text,
                    level=turn_mapping.band.level,
                    estimated_tokens=tokens,
                    timeout_ms=initial_timeout_ms,
                    status=TaskStatus.SKIPPED if skipped else TaskStatus.PENDING,
                )
            )

    return tasks
