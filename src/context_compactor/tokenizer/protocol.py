"""
TokenCounter 协议定义。

引擎只需要一个"便宜"的 Token 估算：判断一段文本值不值得压缩、
统计压缩前后的 Token 变化。它不是精确的 Tokenizer 调用。

# [Design Decision] 使用 Protocol（结构化子类型）而非 ABC（名义子类型），
# 让任何实现了 count() 方法的对象都可以作为 TokenCounter 使用，
# 无需显式继承。
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenCounter(Protocol):
    """
    Token 计数器协议。

    最小实现示例::

        class WordCounter:
            def count(self, text: str) -> int:
                return len(text.split())

            @property
            def name(self) -> str:
                return "words"
    """

    def count(self, text: str) -> int:
        """
        估算文本的 Token 数量。

        参数:
            text: 待计数的文本

        返回:
            Token 数量（空文本为 0）
        """
        ...

    @property
    def name(self) -> str:
        """计数器名称标识。"""
        ...
