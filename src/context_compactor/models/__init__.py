"""
数据模型 — 对话结构与压缩区间。
"""

from context_compactor.models.band import (
    CompressionBand,
    CompressionLevel,
    TurnBandMapping,
    parse_band,
)
from context_compactor.models.conversation import Conversation, Segment, SegmentKind, Turn

__all__ = [
    "CompressionBand",
    "CompressionLevel",
    "Conversation",
    "Segment",
    "SegmentKind",
    "Turn",
    "TurnBandMapping",
    "parse_band",
]
