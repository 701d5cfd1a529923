"""
离线截断 Provider。

按压缩强度保留开头约 target_percent% 的单词，不调用任何模型。
用于本地试跑、演示以及没有 API Key 的环境。
"""

from __future__ import annotations

import math

from context_compactor.models.band import CompressionLevel

ELLIPSIS = " …"


class TruncationProvider:
    """
    截断 Provider（同步实现，执行器会放到工作线程中执行）。

    示例::

        >>> TruncationProvider().compress("one two three four five six seven eight nine ten",
        ...                               CompressionLevel.HEAVY)
        'one …'
    """

    def __init__(self, ellipsis: str = ELLIPSIS) -> None:
        self.ellipsis = ellipsis

    def compress(self, text: str, level: CompressionLevel) -> str:
        words = text.split()
        keep = max(1, math.ceil(len(words) * level.target_percent / 100))
        if keep >= len(words):
            return text
        return " ".join(words[:keep]) + self.ellipsis
