"""
工具调用 / thinking 块移除 — 压缩前对 Claude 会话的预处理。

移除区按 Turn 位置划定：最早的 ``floor(turn_count * pct / 100)`` 个 Turn。
pct 为 0 时不移除，pct >= 100 时覆盖全部 Turn。

- tool_mode="remove"：删除移除区内 assistant entry 的 tool_use 块，
  以及回应这些 tool_use 的 tool_result 块（不论它落在哪个 Turn）
- tool_mode="truncate"：移除区内 tool_use 的 input 与 tool_result 的字符串内容
  截断为前 3 行 / 250 字符，以 "..." 结尾
- thinking 移除区内 assistant entry 的 thinking 块被删除

内容被清空的 entry 整个删除，parentUuid 链条随之修复。

# [Design Decision] 这是引擎之外的独立步骤，在 extract_turns() 之前改写文档。
# 引擎只会看到预处理之后的文档，其中的辅助 Segment 仍然原样透传。
"""

from __future__ import annotations

import copy
import json
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any

from context_compactor.adapters.claude import drop_entries, is_new_turn
from context_compactor.config.schema import RemovalConfig
from context_compactor.errors import DocumentFormatError

logger = logging.getLogger(__name__)

TRUNCATE_MAX_LINES = 3
TRUNCATE_MAX_CHARS = 250


@dataclass(frozen=True)
class RemovalStats:
    """一次移除预处理的统计。"""

    tool_calls_removed: int = 0
    tool_calls_truncated: int = 0
    thinking_blocks_removed: int = 0
    entries_removed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def removal_boundary(turn_count: int, percent: float) -> int:
    """
    计算移除区覆盖的 Turn 数。

    示例::

        >>> removal_boundary(10, 25)
        2
        >>> removal_boundary(3, 100)
        3
    """
    if percent <= 0:
        return 0
    if percent >= 100:
        return turn_count
    return math.floor(turn_count * percent / 100)


def truncate_tool_content(content: str) -> str:
    """截断为前 3 行、至多 250 个字符；发生截断时去掉尾部空白并追加 "..."。"""
    if not content:
        return content

    lines = content.split("\n")
    truncated = "\n".join(lines[:TRUNCATE_MAX_LINES])
    was_truncated = len(lines) > TRUNCATE_MAX_LINES

    if len(truncated) > TRUNCATE_MAX_CHARS:
        truncated = truncated[:TRUNCATE_MAX_CHARS]
        was_truncated = True

    if was_truncated:
        truncated = truncated.rstrip() + "..."
    return truncated


def turn_ranges(entries: list[dict[str, Any]]) -> list[range]:
    """返回每个 Turn 覆盖的 entry 下标区间。第一个 Turn 之前的 entry 不属于任何 Turn。"""
    starts = [i for i, entry in enumerate(entries) if is_new_turn(entry)]
    ends = starts[1:] + [len(entries)]
    return [range(start, end) for start, end in zip(starts, ends)]


def apply_removals(
    entries: list[dict[str, Any]],
    config: RemovalConfig,
) -> tuple[list[dict[str, Any]], RemovalStats]:
    """
    按配置移除 / 截断工具调用并移除 thinking 块。

    参数:
        entries: Claude 会话的 entry 列表（不会被修改）
        config: 移除配置

    返回:
        (新的 entry 列表, 统计)

    抛出:
        DocumentFormatError: entries 不是字典列表
    """
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise DocumentFormatError(
            what="工具调用移除只支持 Claude 会话文档。",
            why=f"期望 entry 字典组成的列表，实际类型为 {type(entries).__name__}。",
            how="使用 load_jsonl() 读取 .jsonl 会话文件后再传入。",
            adapter="claude",
        )

    result = copy.deepcopy(entries)
    turns = turn_ranges(result)
    tool_boundary = removal_boundary(len(turns), config.tool_removal)
    thinking_boundary = removal_boundary(len(turns), config.thinking_removal)
    if tool_boundary == 0 and thinking_boundary == 0:
        return result, RemovalStats()

    tool_zone = {i for turn in turns[:tool_boundary] for i in turn}
    thinking_zone = {i for turn in turns[:thinking_boundary] for i in turn}
    removing = config.tool_mode == "remove"

    removed_ids: set[Any] = set()
    if removing:
        for i in tool_zone:
            if result[i].get("type") == "assistant":
                removed_ids.update(
                    block.get("id") for block in _blocks(result[i]) if block.get("type") == "tool_use"
                )

    tool_calls_removed = 0
    tool_calls_truncated = 0
    thinking_removed = 0
    emptied: set[int] = set()

    for i, entry in enumerate(result):
        entry_type = entry.get("type")
        content = (entry.get("message") or {}).get("content")
        if entry_type not in ("user", "assistant") or not isinstance(content, list):
            continue

        kept: list[Any] = []
        changed = False
        for block in content:
            block_type = block.get("type") if isinstance(block, dict) else None

            if entry_type == "assistant" and block_type == "tool_use" and i in tool_zone:
                if removing:
                    tool_calls_removed += 1
                    changed = True
                    continue
                shortened = _truncate_input(block)
                if shortened is not block:
                    tool_calls_truncated += 1
                    changed = True
                    block = shortened

            elif entry_type == "user" and block_type == "tool_result":
                if removing and block.get("tool_use_id") in removed_ids:
                    changed = True
                    continue
                if not removing and i in tool_zone and isinstance(block.get("content"), str):
                    short = truncate_tool_content(block["content"])
                    if short != block["content"]:
                        tool_calls_truncated += 1
                        changed = True
                        block = {**block, "content": short}

            elif entry_type == "assistant" and block_type == "thinking" and i in thinking_zone:
                thinking_removed += 1
                changed = True
                continue

            kept.append(block)

        if not kept:
            emptied.add(i)
        elif changed:
            entry["message"]["content"] = kept

    if emptied:
        result = drop_entries(result, emptied)

    stats = RemovalStats(
        tool_calls_removed=tool_calls_removed,
        tool_calls_truncated=tool_calls_truncated,
        thinking_blocks_removed=thinking_removed,
        entries_removed=len(emptied),
    )
    logger.info(
        f"移除预处理：{len(turns)} 个 Turn，工具移除区 {tool_boundary} 个，thinking 移除区 {thinking_boundary} 个；"
        f"删除工具调用 {stats.tool_calls_removed} 个，截断 {stats.tool_calls_truncated} 个，"
        f"删除 thinking 块 {stats.thinking_blocks_removed} 个，删除空 entry {stats.entries_removed} 个。"
    )
    return result, stats


def _blocks(entry: dict[str, Any]) -> list[dict[str, Any]]:
    content = (entry.get("message") or {}).get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def _truncate_input(block: dict[str, Any]) -> dict[str, Any]:
    """截断 tool_use 的 input；未发生截断时返回原对象。"""
    raw = block.get("input")
    if not raw:
        return block
    text = raw if isinstance(raw, str) else json.dumps(raw, indent=2, ensure_ascii=False)
    short = truncate_tool_content(text)
    if short == text:
        return block
    return {**block, "input": short}
