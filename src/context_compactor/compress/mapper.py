"""
Turn → 压缩区间映射。

位置公式：``position = turn_index / total_turns * 100``，
Turn 命中列表中第一个满足 ``start <= position < end`` 的区间。
"""

from __future__ import annotations

from collections.abc import Sequence

from context_compactor.models.band import CompressionBand, TurnBandMapping
from context_compactor.models.conversation import Turn


def turn_position(turn_index: int, total_turns: int) -> float:
    """计算 Turn 的相对位置百分比。"""
    return turn_index / total_turns * 100


def map_turns_to_bands(
    turns: Sequence[Turn],
    bands: Sequence[CompressionBand],
) -> list[TurnBandMapping]:
    """
    为每个 Turn 计算区间归属。

    纯函数，输入相同则输出相同。

    # [Design Decision] 区间重叠时列表中靠前者优先。

    参数:
        turns: Turn 序列（只使用长度与顺序）
        bands: 区间列表，不要求连续或覆盖全部范围

    返回:
        与 turns 一一对应的 TurnBandMapping 列表；turns 为空时返回空列表
    """
    total_turns = len(turns)
    if total_turns == 0:
        return []

    mapping: list[TurnBandMapping] = []
    for turn_index in range(total_turns):
        position = turn_position(turn_index, total_turns)
        band = next((b for b in bands if b.contains(position)), None)
        mapping.append(TurnBandMapping(turn_index=turn_index, band=band))
    return mapping


def find_overlaps(bands: Sequence[CompressionBand]) -> list[tuple[int, int]]:
    """
    找出所有相互重叠的区间对（按列表下标）。

    返回:
        (i, j) 列表，i < j，表示 bands[i] 与 bands[j] 重叠，命中时 bands[i] 优先
    """
    overlaps: list[tuple[int, int]] = []
    for i, first in enumerate(bands):
        for j in range(i + 1, len(bands)):
            second = bands[j]
            if first.start < second.end and second.start < first.end:
                overlaps.append((i, j))
    return overlaps
