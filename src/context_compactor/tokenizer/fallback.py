"""
基于字符数的 Token 粗估计数器。

采用 `ceil(字符数 / 4)` 的粗估公式，这是英文文本的经验值。
任务工厂用它判断 unit 是否低于 min_tokens，统计聚合器用它估算压缩结果。

# [Design Decision] 估算必须是纯函数且足够便宜：任务工厂会对每个 unit
# 调用一次，统计聚合器还会对每个压缩结果再调用一次。
"""

from __future__ import annotations

import math

DEFAULT_CHARS_PER_TOKEN = 4.0


class CharBasedCounter:
    """
    基于字符数的 Token 粗估计数器，零外部依赖。

    用法::

        counter = CharBasedCounter()
        counter.count("Hello, world!")  # 4

        # 中文文本可以调低比率
        counter = CharBasedCounter(chars_per_token=2.0)
    """

    def __init__(self, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN) -> None:
        """
        初始化字符计数器。

        参数:
            chars_per_token: 每个 Token 对应的字符数（必须为正数）
        """
        if chars_per_token <= 0:
            raise ValueError(f"chars_per_token 必须为正数，实际为 {chars_per_token}")
        self._chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        """
        估算文本的 Token 数量。

        参数:
            text: 待计数的文本

        返回:
            向上取整的 Token 估算值，空文本返回 0
        """
        if not text:
            return 0
        return math.ceil(len(text) / self._chars_per_token)

    @property
    def name(self) -> str:
        """计数器名称标识。"""
        return f"char_based:{self._chars_per_token:g}"


_default_counter = CharBasedCounter()


def estimate_tokens(text: str) -> int:
    """使用默认计数器（4 字符 / Token）估算 Token 数。"""
    return _default_counter.count(text)
