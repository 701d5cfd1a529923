"""
与具体文件格式无关的对话模型：Conversation → Turn → Segment。

一个 Turn 由三类 Segment 组成：
- 发起方文本（initiator，用户输入）
- 应答方文本（responder，助手回复，可能由多个文本片段组成，逻辑上是一个 unit）
- 辅助 Segment（工具调用、工具结果、内部推理等），对引擎完全不透明

# [Design Decision] Segment 按原始顺序平铺在 Turn 里，而不是按类型分组。
# 这样对账时收缩应答文本也不会改变辅助 Segment 与文本之间的相对位置。
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class SegmentKind(str, Enum):
    """Segment 类型。"""

    INITIATOR = "initiator"
    RESPONDER = "responder"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_RESULT = "tool_result"
    REASONING = "reasoning"
    OTHER = "other"

    @property
    def is_text(self) -> bool:
        """是否为可压缩的文本 Segment。"""
        return self in (SegmentKind.INITIATOR, SegmentKind.RESPONDER)


@dataclass(frozen=True)
class Segment:
    """
    Turn 内的一段类型化内容。

    属性:
        kind: Segment 类型
        text: 文本内容（仅文本 Segment 有意义）
        payload: 原始内容（辅助 Segment 原样携带，引擎从不读取）
        locator: 适配器私有的定位信息，用于把结果写回原始文档
    """

    kind: SegmentKind
    text: str = ""
    payload: Any = None
    locator: tuple[Any, ...] = ()

    @property
    def is_auxiliary(self) -> bool:
        return not self.kind.is_text

    def with_text(self, text: str) -> Segment:
        """返回替换了文本的新 Segment。"""
        return replace(self, text=text)


@dataclass(frozen=True)
class Turn:
    """
    一次完整的"用户 → 助手"交互。

    属性:
        segments: 按原始顺序排列的 Segment
        fragment_separator: 同一 unit 的多个文本片段拼接时使用的分隔符
    """

    segments: tuple[Segment, ...] = ()
    fragment_separator: str = "\n"

    def fragments(self, kind: SegmentKind) -> list[Segment]:
        """返回指定类型的全部文本片段（按顺序）。"""
        return [seg for seg in self.segments if seg.kind == kind]

    def text_of(self, kind: SegmentKind) -> str:
        """拼接指定类型的文本片段。"""
        return self.fragment_separator.join(seg.text for seg in self.fragments(kind))

    @property
    def initiator_text(self) -> str:
        return self.text_of(SegmentKind.INITIATOR)

    @property
    def responder_text(self) -> str:
        return self.text_of(SegmentKind.RESPONDER)

    @property
    def auxiliary_segments(self) -> list[Segment]:
        return [seg for seg in self.segments if seg.is_auxiliary]


@dataclass(frozen=True)
class Conversation:
    """
    有序的 Turn 序列。Turn 顺序是计算位置百分比的唯一依据。

    属性:
        turns: Turn 列表
        source_id: 来源标识（会话 ID 等，仅用于日志和审计）
    """

    turns: tuple[Turn, ...] = field(default_factory=tuple)
    source_id: str | None = None

    def __len__(self) -> int:
        return len(self.turns)

    @classmethod
    def from_turns(cls, turns: list[Turn] | tuple[Turn, ...], source_id: str | None = None) -> Conversation:
        return cls(turns=tuple(turns), source_id=source_id)
