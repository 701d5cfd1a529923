"""
压缩区间（Band）与 Turn → Band 映射。

区间按 Turn 在对话中的相对位置（0-100%）划分压缩强度：
越早的 Turn 离当前上下文越远，通常可以压得更狠。

YAML 示例::

    bands:
      - {start: 0, end: 50, level: heavy}
      - {start: 50, end: 80, level: regular}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CompressionLevel(str, Enum):
    """压缩强度。"""

    REGULAR = "regular"
    HEAVY = "heavy"

    @property
    def target_percent(self) -> int:
        """压缩后期望保留的长度百分比。"""
        return 10 if self is CompressionLevel.HEAVY else 35


# 兼容旧版克隆请求里的强度命名（compress / heavy-compress）
_LEVEL_ALIASES: dict[str, str] = {
    "compress": CompressionLevel.REGULAR.value,
    "heavy-compress": CompressionLevel.HEAVY.value,
}


class CompressionBand(BaseModel):
    """
    压缩区间 — 左闭右开区间 [start, end) 与压缩强度。

    属性:
        start: 起始位置百分比，范围 [0, 100]
        end: 结束位置百分比，范围 [0, 100]，必须大于 start
        level: 压缩强度
    """

    model_config = ConfigDict(frozen=True)

    start: float = Field(ge=0.0, le=100.0, description="起始位置百分比（包含）")
    end: float = Field(ge=0.0, le=100.0, description="结束位置百分比（不包含）")
    level: CompressionLevel = Field(description="压缩强度：regular / heavy")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _LEVEL_ALIASES.get(value.strip().lower(), value.strip().lower())
        return value

    @model_validator(mode="after")
    def _validate_range(self) -> CompressionBand:
        if self.start >= self.end:
            raise ValueError(
                f"区间 start={self.start:g} 必须小于 end={self.end:g}（区间为左闭右开 [start, end)）。"
            )
        return self

    def contains(self, position: float) -> bool:
        """判断位置是否落在区间内。"""
        return self.start <= position < self.end

    def __str__(self) -> str:
        return f"[{self.start:g}, {self.end:g}) {self.level.value}"


def parse_band(raw: str) -> CompressionBand:
    """
    从 CLI 字符串构造区间，格式为 ``START:END:LEVEL``。

    示例::

        >>> parse_band("0:50:heavy")
        CompressionBand(start=0.0, end=50.0, level=<CompressionLevel.HEAVY: 'heavy'>)

    抛出:
        ValueError: 格式不正确或数值非法
    """
    parts = raw.split(":")
    if len(parts) != 3:
        raise ValueError(f"区间 '{raw}' 格式无效，应为 START:END:LEVEL，例如 0:50:heavy")
    start, end, level = parts
    try:
        return CompressionBand(start=float(start), end=float(end), level=level)
    except ValueError as e:
        raise ValueError(f"区间 '{raw}' 无效：{e}") from e


@dataclass(frozen=True)
class TurnBandMapping:
    """
    单个 Turn 的区间归属，一次运行中计算一次，之后不可变。

    属性:
        turn_index: Turn 在对话中的下标
        band: 命中的第一个区间，未命中为 None
    """

    turn_index: int
    band: CompressionBand | None = None
