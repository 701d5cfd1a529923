"""
文档适配器协议。

每种会话文件格式对应一个适配器，负责在具体 Schema 与引擎的
Conversation / Turn / Segment 模型之间转换。引擎本身与格式无关。

约定：
- extract_turns() 只读，不修改文档
- reconstruct() 返回新文档，除压缩写回的文本外，其余字段逐一保留
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from context_compactor.errors import DocumentFormatError
from context_compactor.models.conversation import Conversation


@runtime_checkable
class DocumentAdapter(Protocol):
    """文档适配器协议。"""

    @property
    def name(self) -> str:
        """适配器名称（用于注册表和 CLI 的 --format 参数）。"""
        ...

    def extract_turns(self, document: Any) -> Conversation:
        """把文档解析为 Conversation。"""
        ...

    def reconstruct(self, document: Any, conversation: Conversation) -> Any:
        """把压缩后的 Conversation 写回文档副本。"""
        ...


@dataclass
class TextChanges:
    """
    原始对话与压缩后对话之间的文本差异，按 Segment.locator 索引。

    属性:
        writes: 需要改写文本的位置 → 新文本
        removals: 因多片段收缩而需要删除的位置
    """

    writes: dict[tuple[Any, ...], str] = field(default_factory=dict)
    removals: set[tuple[Any, ...]] = field(default_factory=set)


def diff_text_segments(original: Conversation, updated: Conversation, adapter: str) -> TextChanges:
    """
    比较两份对话的文本 Segment，得出写回文档所需的改动。

    辅助 Segment 不参与比较，引擎从不修改它们。

    抛出:
        DocumentFormatError: 两份对话的 Turn 数量不一致
    """
    if len(original.turns) != len(updated.turns):
        raise DocumentFormatError(
            what="压缩后的对话与原始文档的 Turn 数量不一致。",
            why=f"原始文档解析出 {len(original.turns)} 个 Turn，"
                f"压缩结果有 {len(updated.turns)} 个 Turn。",
            how="reconstruct() 必须使用与 extract_turns() 相同的原始文档。",
            adapter=adapter,
        )

    changes = TextChanges()
    for before, after in zip(original.turns, updated.turns):
        kept = {seg.locator: seg for seg in after.segments if seg.kind.is_text}
        for segment in before.segments:
            if not segment.kind.is_text:
                continue
            new_segment = kept.get(segment.locator)
            if new_segment is None:
                changes.removals.add(segment.locator)
            elif new_segment.text != segment.text:
                changes.writes[segment.locator] = new_segment.text
    return changes
