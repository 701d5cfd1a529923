"""
摘要 Provider 协议。

引擎对 Provider 的唯一要求是一个 ``compress(text, level)`` 调用。
它可能很慢、可能抛异常、也可能返回比输入更长的文本，
引擎的统计逻辑对这些情况都不做任何"必然变短"的假设。

# [Design Decision] 使用 Protocol 而非抽象基类，
# 用户可以直接传入任何带 compress() 方法的对象（同步或异步均可）。
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Protocol, runtime_checkable

from context_compactor.models.band import CompressionLevel


@runtime_checkable
class SummarizationProvider(Protocol):
    """
    摘要 Provider 协议。

    异步实现::

        class MyProvider:
            async def compress(self, text: str, level: CompressionLevel) -> str:
                return await my_llm.rewrite(text, keep=level.target_percent)

    同步实现（会在工作线程中执行）::

        class MySyncProvider:
            def compress(self, text: str, level: CompressionLevel) -> str:
                return requests.post(...).json()["text"]
    """

    def compress(self, text: str, level: CompressionLevel) -> str | Awaitable[str]:
        """
        压缩一段文本。

        参数:
            text: 待压缩的文本
            level: 压缩强度

        返回:
            压缩后的文本

        抛出:
            任意异常：执行器会将其视为一次失败的尝试并按策略重试
        """
        ...
