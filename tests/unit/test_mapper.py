"""
区间映射单元测试。

覆盖范围:
- compress/mapper.py: turn_position(), map_turns_to_bands(), find_overlaps()
- models/band.py: CompressionBand 校验、parse_band()
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from context_compactor.compress.mapper import find_overlaps, map_turns_to_bands, turn_position
from context_compactor.models.band import CompressionBand, CompressionLevel, parse_band

from conftest import make_conversation

HEAVY = CompressionLevel.HEAVY
REGULAR = CompressionLevel.REGULAR


def _levels(n: int, bands: list[CompressionBand]) -> list[CompressionLevel | None]:
    mapping = map_turns_to_bands(make_conversation(n).turns, bands)
    return [m.band.level if m.band else None for m in mapping]


# === 位置映射 ===


class TestMapTurnsToBands:
    """Turn → 区间映射测试。"""

    def test_four_turn_example(self) -> None:
        """4 个 Turn，位置 0/25/50/75，对应 heavy/heavy/regular/无。"""
        bands = [
            CompressionBand(start=0, end=50, level=HEAVY),
            CompressionBand(start=50, end=75, level=REGULAR),
        ]
        assert _levels(4, bands) == [HEAVY, HEAVY, REGULAR, None]

    def test_empty_conversation(self) -> None:
        """空对话返回空列表。"""
        assert map_turns_to_bands([], [CompressionBand(start=0, end=100, level=HEAVY)]) == []

    def test_no_bands(self) -> None:
        """没有区间时所有 Turn 都不命中。"""
        assert _levels(3, []) == [None, None, None]

    def test_mapping_preserves_turn_index(self) -> None:
        """每条映射的 turn_index 与 Turn 下标一致。"""
        mapping = map_turns_to_bands(make_conversation(5).turns, [])
        assert [m.turn_index for m in mapping] == [0, 1, 2, 3, 4]

    def test_end_is_exclusive(self) -> None:
        """区间右端不包含：位置恰好等于 end 时不命中。"""
        bands = [CompressionBand(start=0, end=50, level=HEAVY)]
        # 2 个 Turn：位置 0、50
        assert _levels(2, bands) == [HEAVY, None]

    def test_last_turn_never_reaches_100(self) -> None:
        """最后一个 Turn 的位置总是小于 100。"""
        bands = [CompressionBand(start=90, end=100, level=HEAVY)]
        assert _levels(10, bands)[-1] is HEAVY
        assert turn_position(9, 10) == 90.0

    @pytest.mark.parametrize("n", [1, 2, 3, 7, 10, 33, 100])
    def test_adjacent_bands_no_gaps_no_double_assignment(self, n: int) -> None:
        """相邻区间覆盖 [0, 100) 时，每个 Turn 恰好命中一个区间。"""
        bands = [
            CompressionBand(start=0, end=30, level=HEAVY),
            CompressionBand(start=30, end=70, level=REGULAR),
            CompressionBand(start=70, end=100, level=HEAVY),
        ]
        mapping = map_turns_to_bands(make_conversation(n).turns, bands)
        for m in mapping:
            position = turn_position(m.turn_index, n)
            matching = [b for b in bands if b.contains(position)]
            assert len(matching) == 1
            assert m.band == matching[0]

    def test_overlap_first_band_wins(self) -> None:
        """区间重叠时，列表中靠前的区间优先。"""
        wide = CompressionBand(start=0, end=100, level=REGULAR)
        narrow = CompressionBand(start=0, end=50, level=HEAVY)

        assert _levels(4, [narrow, wide]) == [HEAVY, HEAVY, REGULAR, REGULAR]
        assert _levels(4, [wide, narrow]) == [REGULAR, REGULAR, REGULAR, REGULAR]

    def test_mapping_is_deterministic(self) -> None:
        """相同输入产生相同输出。"""
        turns = make_conversation(6).turns
        bands = [CompressionBand(start=10, end=60, level=HEAVY)]
        assert map_turns_to_bands(turns, bands) == map_turns_to_bands(turns, bands)


# === 重叠检测 ===


class TestFindOverlaps:
    """区间重叠检测测试。"""

    def test_adjacent_bands_do_not_overlap(self) -> None:
        bands = [
            CompressionBand(start=0, end=50, level=HEAVY),
            CompressionBand(start=50, end=80, level=REGULAR),
        ]
        assert find_overlaps(bands) == []

    def test_overlapping_pairs(self) -> None:
        bands = [
            CompressionBand(start=0, end=60, level=HEAVY),
            CompressionBand(start=50, end=80, level=REGULAR),
            CompressionBand(start=70, end=90, level=HEAVY),
        ]
        assert find_overlaps(bands) == [(0, 1), (1, 2)]


# === 区间模型 ===


class TestCompressionBand:
    """CompressionBand 校验测试。"""

    def test_start_must_be_less_than_end(self) -> None:
        """start >= end 是配置错误。"""
        with pytest.raises(ValidationError):
            CompressionBand(start=50, end=50, level=HEAVY)
        with pytest.raises(ValidationError):
            CompressionBand(start=60, end=40, level=HEAVY)

    def test_range_limits(self) -> None:
        with pytest.raises(ValidationError):
            CompressionBand(start=-1, end=50, level=HEAVY)
        with pytest.raises(ValidationError):
            CompressionBand(start=0, end=101, level=HEAVY)

    def test_level_aliases(self) -> None:
        """旧版强度命名会被规范化。"""
        assert CompressionBand(start=0, end=10, level="compress").level is REGULAR
        assert CompressionBand(start=0, end=10, level="heavy-compress").level is HEAVY
        assert CompressionBand(start=0, end=10, level="HEAVY").level is HEAVY

    def test_unknown_level(self) -> None:
        with pytest.raises(ValidationError):
            CompressionBand(start=0, end=10, level="extreme")

    def test_target_percent(self) -> None:
        assert HEAVY.target_percent == 10
        assert REGULAR.target_percent == 35

    def test_parse_band(self) -> None:
        band = parse_band("0:50:heavy")
        assert band == CompressionBand(start=0, end=50, level=HEAVY)
        assert str(band) == "[0, 50) heavy"

    @pytest.mark.parametrize("raw", ["0:50", "a:50:heavy", "50:10:heavy", "0:50:extreme"])
    def test_parse_band_invalid(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_band(raw)
