"""
Claude Code 会话适配器（JSONL，每行一个 entry）。

Turn 边界：一个非 meta 的 user entry，内容为字符串，
或者内容数组中含 text 块且不含 tool_result 块
（只有 tool_result 的 user entry 是工具回传，属于当前 Turn）。
第一个 Turn 之前的 entry 不属于任何 Turn，原样保留。

收缩多片段 unit 后，如果某个 entry 的内容被清空，
该 entry 会被删除，指向它的 parentUuid 改接到它自己的父节点，保证链条不断。
"""

from __future__ import annotations

import copy
import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any

from context_compactor.adapters.base import diff_text_segments
from context_compactor.errors import DocumentFormatError
from context_compactor.models.conversation import Conversation, Segment, SegmentKind, Turn

logger = logging.getLogger(__name__)

_BLOCK_KINDS: dict[str, SegmentKind] = {
    "tool_use": SegmentKind.TOOL_INVOCATION,
    "server_tool_use": SegmentKind.TOOL_INVOCATION,
    "tool_result": SegmentKind.TOOL_RESULT,
    "thinking": SegmentKind.REASONING,
    "redacted_thinking": SegmentKind.REASONING,
}


def is_new_turn(entry: dict[str, Any]) -> bool:
    """判断 entry 是否开启一个新 Turn。"""
    if entry.get("type") != "user" or entry.get("isMeta") is True:
        return False

    content = (entry.get("message") or {}).get("content")
    if isinstance(content, str):
        return True
    if isinstance(content, list):
        types = {block.get("type") for block in content if isinstance(block, dict)}
        return "text" in types and "tool_result" not in types
    return False


class ClaudeSessionAdapter:
    """
    Claude Code 会话适配器。

    用法::

        adapter = ClaudeSessionAdapter()
        entries = load_jsonl("session.jsonl")
        conversation = adapter.extract_turns(entries)
        ...
        new_entries = adapter.reconstruct(entries, result.conversation)
    """

    @property
    def name(self) -> str:
        return "claude"

    def extract_turns(self, document: Any) -> Conversation:
        entries = self._check_document(document)
        starts = [i for i, entry in enumerate(entries) if is_new_turn(entry)]

        turns: list[Turn] = []
        for k, start in enumerate(starts):
            end = starts[k + 1] if k + 1 < len(starts) else len(entries)
            segments: list[Segment] = []
            for i in range(start, end):
                segments.extend(self._entry_segments(entries[i], i, is_turn_start=i == start))
            turns.append(Turn(segments=tuple(segments), fragment_separator="\n"))

        session_id = next((e.get("sessionId") for e in entries if e.get("sessionId")), None)
        return Conversation(turns=tuple(turns), source_id=session_id)

    def reconstruct(self, document: Any, conversation: Conversation) -> list[dict[str, Any]]:
        entries = self._check_document(document)
        changes = diff_text_segments(self.extract_turns(entries), conversation, self.name)
        result = copy.deepcopy(entries)

        for (i, j), text in changes.writes.items():
            message = result[i]["message"]
            if j is None:
                message["content"] = text
            else:
                message["content"][j]["text"] = text

        removals: dict[int, list[int | None]] = defaultdict(list)
        for i, j in changes.removals:
            removals[i].append(j)

        emptied: set[int] = set()
        for i, block_indexes in removals.items():
            message = result[i]["message"]
            if None in block_indexes:
                emptied.add(i)
                continue
            for j in sorted(block_indexes, reverse=True):
                del message["content"][j]
            if not message["content"]:
                emptied.add(i)

        if emptied:
            logger.debug(f"收缩文本片段后删除了 {len(emptied)} 个空 entry。")
            result = drop_entries(result, emptied)
        return result

    def _check_document(self, document: Any) -> list[dict[str, Any]]:
        if not isinstance(document, list) or not all(isinstance(e, dict) for e in document):
            raise DocumentFormatError(
                what="Claude 会话文档格式无效。",
                why=f"期望 entry 字典组成的列表，实际类型为 {type(document).__name__}。",
                how="使用 load_jsonl() 读取 .jsonl 会话文件后再传入。",
                adapter=self.name,
            )
        return document

    def _entry_segments(self, entry: dict[str, Any], i: int, is_turn_start: bool) -> list[Segment]:
        entry_type = entry.get("type")
        content = (entry.get("message") or {}).get("content")

        if entry_type == "user" and is_turn_start:
            text_kind = SegmentKind.INITIATOR
        elif entry_type == "assistant":
            text_kind = SegmentKind.RESPONDER
        elif entry_type == "user":
            # meta 消息、工具回传等：原样携带
            text_kind = SegmentKind.OTHER
        else:
            return [Segment(kind=SegmentKind.OTHER, payload=entry, locator=(i, None))]

        if isinstance(content, str):
            if text_kind is SegmentKind.OTHER:
                return [Segment(kind=SegmentKind.OTHER, payload=content, locator=(i, None))]
            return [Segment(kind=text_kind, text=content, locator=(i, None))]

        if not isinstance(content, list):
            return [Segment(kind=SegmentKind.OTHER, payload=entry, locator=(i, None))]

        segments: list[Segment] = []
        for j, block in enumerate(content):
            block_type = block.get("type") if isinstance(block, dict) else None
            if block_type == "text" and text_kind.is_text and isinstance(block.get("text"), str):
                segments.append(Segment(kind=text_kind, text=block["text"], locator=(i, j)))
            else:
                kind = _BLOCK_KINDS.get(block_type, SegmentKind.OTHER)
                segments.append(Segment(kind=kind, payload=block, locator=(i, j)))
        return segments


def drop_entries(entries: list[dict[str, Any]], indexes: set[int]) -> list[dict[str, Any]]:
    """删除 entry，并把指向被删 entry 的 parentUuid 改接到其父节点。"""
    relink: dict[str, Any] = {}
    for i in indexes:
        uuid = entries[i].get("uuid")
        if uuid:
            relink[uuid] = entries[i].get("parentUuid")

    kept: list[dict[str, Any]] = []
    for i, entry in enumerate(entries):
        if i in indexes:
            continue
        parent = entry.get("parentUuid")
        while parent in relink:
            parent = relink[parent]
        if "parentUuid" in entry and parent != entry["parentUuid"]:
            entry["parentUuid"] = parent
        kept.append(entry)
    return kept


def load_jsonl(path: str | Path) -> list[dict[str, Any]]:
    """
    读取 JSONL 会话文件。空行会被忽略。

    抛出:
        DocumentFormatError: 某一行不是合法的 JSON 对象
    """
    entries: list[dict[str, Any]] = []
    with Path(path).open(encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as e:
                raise DocumentFormatError(
                    what=f"会话文件 '{path}' 第 {line_no} 行不是合法的 JSON。",
                    why=str(e),
                    how="检查文件是否被截断或混入了非 JSONL 内容。",
                    adapter="claude",
                    line=line_no,
                ) from e
            if not isinstance(entry, dict):
                raise DocumentFormatError(
                    what=f"会话文件 '{path}' 第 {line_no} 行不是 JSON 对象。",
                    why=f"实际类型为 {type(entry).__name__}。",
                    how="JSONL 会话文件的每一行都应是一个 entry 对象。",
                    adapter="claude",
                    line=line_no,
                )
            entries.append(entry)
    return entries


def dump_jsonl(entries: list[dict[str, Any]], path: str | Path) -> None:
    """把 entry 列表写为 JSONL 文件。"""
    with Path(path).open("w", encoding="utf-8") as f:
        for entry in entries:
            f.write(json.dumps(entry, ensure_ascii=False))
            f.write("\n")
