"""
文档适配器 — 会话文件格式与 Conversation 模型之间的转换。

内置适配器：
- claude：Claude Code 的 JSONL 会话
- copilot：VS Code Copilot Chat 的 JSON 会话

另有 Claude 会话的工具调用 / thinking 块移除预处理（removal.py）。
"""

from __future__ import annotations

from typing import Any

from context_compactor.adapters.base import DocumentAdapter, TextChanges, diff_text_segments
from context_compactor.adapters.claude import ClaudeSessionAdapter, dump_jsonl, load_jsonl
from context_compactor.adapters.copilot import CopilotSessionAdapter
from context_compactor.adapters.removal import (
    RemovalStats,
    apply_removals,
    removal_boundary,
    truncate_tool_content,
)
from context_compactor.errors import AdapterNotFoundError, DocumentFormatError

_REGISTRY: dict[str, DocumentAdapter] = {}


def register_adapter(adapter: DocumentAdapter) -> None:
    """注册适配器（同名会覆盖）。"""
    _REGISTRY[adapter.name] = adapter


def list_adapters() -> list[str]:
    return sorted(_REGISTRY)


def get_adapter(name: str) -> DocumentAdapter:
    """
    按名称获取适配器。

    抛出:
        AdapterNotFoundError: 未注册该名称
    """
    try:
        return _REGISTRY[name]
    except KeyError:
        raise AdapterNotFoundError(
            what=f"未找到名为 '{name}' 的文档适配器。",
            why="该格式没有注册适配器。",
            how=f"可用的适配器：{', '.join(list_adapters())}。",
            adapter=name,
            available_adapters=list_adapters(),
        ) from None


def detect_adapter(document: Any) -> DocumentAdapter:
    """
    根据文档结构猜测适配器。

    抛出:
        DocumentFormatError: 无法识别的文档结构
    """
    if isinstance(document, list):
        return get_adapter("claude")
    if isinstance(document, dict) and "requests" in document:
        return get_adapter("copilot")
    raise DocumentFormatError(
        what="无法识别会话文档格式。",
        why="文档既不是 JSONL entry 列表，也不包含 requests 数组。",
        how="使用 --format 显式指定格式。",
        adapter="auto",
    )


register_adapter(ClaudeSessionAdapter())
register_adapter(CopilotSessionAdapter())

__all__ = [
    "DocumentAdapter",
    "TextChanges",
    "diff_text_segments",
    "ClaudeSessionAdapter",
    "CopilotSessionAdapter",
    "load_jsonl",
    "dump_jsonl",
    "RemovalStats",
    "apply_removals",
    "removal_boundary",
    "truncate_tool_content",
    "register_adapter",
    "list_adapters",
    "get_adapter",
    "detect_adapter",
]
