"""
测试套件共享 Fixtures 和配置。

本文件定义了所有测试中可复用的 fixtures、假 Provider 和对话构造工具。
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from context_compactor.config.schema import EngineConfig
from context_compactor.models.band import CompressionBand, CompressionLevel
from context_compactor.models.conversation import Conversation, Segment, SegmentKind, Turn

# 140 个字符，估算 35 个 Token，高于默认阈值 30
LONG_TEXT = (
    "The deployment pipeline failed because the staging database migration "
    "timed out while holding a table lock on the orders table for too long."
)
SHORT_TEXT = "ok thanks"


# === 假 Provider ===


class RecordingProvider:
    """异步 Provider：记录每次调用，返回 "summary:<原文前 8 个字符>"。"""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[tuple[str, CompressionLevel]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def compress(self, text: str, level: CompressionLevel) -> str:
        self.calls.append((text, level))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return f"summary:{text[:8]}"
        finally:
            self.in_flight -= 1


class FlakyProvider:
    """前 fail_times 次调用抛异常，之后成功。"""

    def __init__(self, fail_times: int, error: Exception | None = None) -> None:
        self.fail_times = fail_times
        self.error = error or RuntimeError("provider unavailable")
        self.calls = 0

    async def compress(self, text: str, level: CompressionLevel) -> str:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error
        return "short"


class FailingProvider:
    """永远失败。"""

    def __init__(self) -> None:
        self.calls = 0

    async def compress(self, text: str, level: CompressionLevel) -> str:
        self.calls += 1
        raise RuntimeError("boom")


class SyncProvider:
    """同步实现的 Provider。"""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def compress(self, text: str, level: CompressionLevel) -> str:
        self.calls.append(text)
        return text.upper()[:10]


# === 对话构造 ===


def make_turn(
    initiator: str | list[str] | None = LONG_TEXT,
    responder: str | list[str] | None = LONG_TEXT,
    auxiliary: list[Segment] | None = None,
    separator: str = "\n",
) -> Turn:
    """构造一个 Turn：发起方片段 → 辅助 Segment → 应答方片段。"""
    segments: list[Segment] = []
    for text in _as_list(initiator):
        segments.append(Segment(kind=SegmentKind.INITIATOR, text=text))
    segments.extend(auxiliary or [])
    for text in _as_list(responder):
        segments.append(Segment(kind=SegmentKind.RESPONDER, text=text))
    return Turn(segments=tuple(segments), fragment_separator=separator)


def _as_list(value: str | list[str] | None) -> list[str]:
    if value is None:
        return []
    return [value] if isinstance(value, str) else list(value)


def make_conversation(n: int, **turn_kwargs: Any) -> Conversation:
    return Conversation(turns=tuple(make_turn(**turn_kwargs) for _ in range(n)), source_id="test-session")


def tool_segment(name: str = "read_file") -> Segment:
    return Segment(
        kind=SegmentKind.TOOL_INVOCATION,
        payload={"type": "tool_use", "name": name, "input": {"path": "/tmp/a.txt"}},
    )


# === Fixtures ===


@pytest.fixture
def fast_config() -> EngineConfig:
    """小超时、少重试的引擎配置。"""
    return EngineConfig(
        concurrency=4,
        timeout_initial_ms=1000,
        timeout_increment=2.0,
        max_attempts=3,
        min_tokens=30,
    )


@pytest.fixture
def heavy_all() -> list[CompressionBand]:
    """覆盖全部 Turn 的重度压缩区间。"""
    return [CompressionBand(start=0, end=100, level=CompressionLevel.HEAVY)]


@pytest.fixture
def recording_provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def conversation_factory() -> Callable[..., Conversation]:
    return make_conversation


@pytest.fixture
def claude_entries() -> list[dict[str, Any]]:
    """
    两个 Turn 的 Claude 会话：

    Turn 0：user 文本 → assistant（text + tool_use）→ user(tool_result) → assistant 文本
    Turn 1：user 文本 → assistant 文本
    """
    return [
        {"type": "summary", "summary": "earlier work", "leafUuid": "x"},
        {
            "type": "user", "uuid": "u1", "parentUuid": None, "sessionId": "sess-1",
            "message": {"role": "user", "content": LONG_TEXT},
        },
        {
            "type": "assistant", "uuid": "a1", "parentUuid": "u1", "sessionId": "sess-1",
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Let me look at the migration logs first."},
                    {"type": "tool_use", "id": "t1", "name": "read_file", "input": {"path": "m.log"}},
                ],
            },
        },
        {
            "type": "user", "uuid": "u2", "parentUuid": "a1", "sessionId": "sess-1",
            "message": {
                "role": "user",
                "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "lock wait timeout"}],
            },
        },
        {
            "type": "assistant", "uuid": "a2", "parentUuid": "u2", "sessionId": "sess-1",
            "message": {"role": "assistant", "content": [{"type": "text", "text": LONG_TEXT}]},
        },
        {
            "type": "user", "uuid": "u3", "parentUuid": "a2", "sessionId": "sess-1",
            "message": {"role": "user", "content": [{"type": "text", "text": "And now?"}]},
        },
        {
            "type": "assistant", "uuid": "a3", "parentUuid": "u3", "sessionId": "sess-1",
            "message": {"role": "assistant", "content": [{"type": "text", "text": LONG_TEXT}]},
        },
    ]


@pytest.fixture
def copilot_session() -> dict[str, Any]:
    """两个 request 的 Copilot 会话。"""
    return {
        "version": 3,
        "sessionId": "copilot-1",
        "requests": [
            {
                "requestId": "r1",
                "message": {"text": LONG_TEXT, "parts": []},
                "response": [
                    {"kind": "markdownContent", "value": "First part of the answer."},
                    {"kind": "toolInvocationSerialized", "toolId": "search", "isComplete": True},
                    {"value": "Second part of the answer."},
                ],
            },
            {
                "requestId": "r2",
                "message": {"text": "thanks", "parts": []},
                "response": [{"kind": "markdownContent", "value": LONG_TEXT}],
            },
        ],
    }
