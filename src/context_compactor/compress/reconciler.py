"""
结果对账器 — 把成功的压缩结果写回对话副本。

规则：
- success：用压缩结果替换对应 unit 的文本；由多个片段组成的 unit
  收缩为一个片段（保留第一个片段的位置，其余片段删除）
- skipped / failed：原样复制
- 辅助 Segment（工具调用 / 结果 / 推理）永远原样复制，且不改变相对顺序

对账只按 unit_index 定位任务。找不到对应 Turn 或 Segment 说明
unit_index 方案被破坏，这是程序缺陷，必须抛出 ReconciliationError。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from context_compactor.compress.tasks import CompressionTask, TaskStatus, split_unit_index
from context_compactor.errors import ReconciliationError
from context_compactor.models.conversation import Conversation, Segment, SegmentKind, Turn

logger = logging.getLogger(__name__)


def apply_results(conversation: Conversation, tasks: Sequence[CompressionTask]) -> Conversation:
    """
    根据任务结果生成新的对话，不修改输入。

    参数:
        conversation: 原始对话
        tasks: 已进入终态的任务列表

    返回:
        新的 Conversation；没有任何成功任务时 Turn 对象原样复用

    抛出:
        ReconciliationError: 任务无法定位、编号重复或仍处于非终态
    """
    replacements: dict[int, dict[SegmentKind, str]] = {}
    seen: set[int] = set()

    for task in tasks:
        _locate(conversation, task, seen)
        if task.status is TaskStatus.SUCCESS:
            replacements.setdefault(task.turn_index, {})[task.role.segment_kind] = task.result or ""

    new_turns: list[Turn] = []
    for turn_index, turn in enumerate(conversation.turns):
        turn_replacements = replacements.get(turn_index)
        if not turn_replacements:
            new_turns.append(turn)
            continue
        new_turns.append(_rewrite_turn(turn, turn_replacements))

    logger.debug(f"对账完成：{len(replacements)} 个 Turn 写入了压缩结果。")
    return Conversation(turns=tuple(new_turns), source_id=conversation.source_id)


def _locate(conversation: Conversation, task: CompressionTask, seen: set[int]) -> None:
    """校验任务能在对话中唯一定位。"""
    if task.unit_index in seen:
        raise ReconciliationError(
            what=f"压缩任务 #{task.unit_index} 重复出现。",
            why="同一个 unit_index 对应了多个任务，无法确定应写回哪个结果。",
            how="确认任务列表来自同一次 create_tasks() 调用，且没有被重复拼接。",
            unit_index=task.unit_index,
        )
    seen.add(task.unit_index)

    if not task.status.is_terminal:
        raise ReconciliationError(
            what=f"压缩任务 #{task.unit_index} 尚未完成。",
            why=f"任务状态为 {task.status.value}，对账只能在所有任务进入终态后进行。",
            how="等待 BatchExecutor.execute() 返回后再调用 apply_results()。",
            unit_index=task.unit_index,
        )

    turn_index, role = split_unit_index(task.unit_index)
    if turn_index != task.turn_index or role is not task.role:
        raise ReconciliationError(
            what=f"压缩任务 #{task.unit_index} 的编号与其 Turn / 角色不一致。",
            why=f"unit_index 解码为 Turn #{turn_index} / {role.value}，"
                f"但任务记录的是 Turn #{task.turn_index} / {task.role.value}。",
            how="不要手动修改任务的 unit_index、turn_index 或 role。",
            unit_index=task.unit_index,
        )

    if turn_index >= len(conversation.turns):
        raise ReconciliationError(
            what=f"无法定位压缩任务 #{task.unit_index} 对应的 Turn。",
            why=f"unit_index 指向 Turn #{turn_index}，但对话只有 {len(conversation.turns)} 个 Turn。",
            how="确认任务列表与对话来自同一次引擎调用。",
            unit_index=task.unit_index,
        )

    if task.status is TaskStatus.SUCCESS:
        turn = conversation.turns[turn_index]
        if not turn.fragments(role.segment_kind):
            raise ReconciliationError(
                what=f"压缩任务 #{task.unit_index} 在 Turn #{turn_index} 中找不到 {role.value} 文本。",
                why="任务成功返回了压缩结果，但该 Turn 没有可写回的文本片段。",
                how="确认对话在任务创建之后没有被修改。",
                unit_index=task.unit_index,
            )


def _rewrite_turn(turn: Turn, replacements: dict[SegmentKind, str]) -> Turn:
    """把压缩结果写入 Turn，收缩多片段 unit，辅助 Segment 保持原位。"""
    written: set[SegmentKind] = set()
    segments: list[Segment] = []

    for segment in turn.segments:
        if segment.kind not in replacements:
            segments.append(segment)
            continue
        if segment.kind in written:
            continue
        segments.append(segment.with_text(replacements[segment.kind]))
        written.add(segment.kind)

    return Turn(segments=tuple(segments), fragment_separator=turn.fragment_separator)
