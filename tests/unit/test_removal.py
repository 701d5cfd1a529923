"""
工具调用 / thinking 块移除预处理单元测试。

覆盖范围:
- adapters/removal.py: removal_boundary(), truncate_tool_content(), turn_ranges(), apply_removals()
"""

from __future__ import annotations

import copy
from typing import Any

import pytest

from context_compactor.adapters import ClaudeSessionAdapter
from context_compactor.adapters.removal import (
    RemovalStats,
    apply_removals,
    removal_boundary,
    truncate_tool_content,
    turn_ranges,
)
from context_compactor.config import RemovalConfig
from context_compactor.errors import DocumentFormatError

LONG_OUTPUT = "\n".join(f"line {i}: {'x' * 20}" for i in range(10))


def build_session(turns: int) -> list[dict[str, Any]]:
    """
    每个 Turn 六个 entry：

    u 文本 → a（thinking + text + tool_use）→ r(tool_result)
    → b（只有 tool_use）→ s(tool_result) → c 文本
    """
    entries: list[dict[str, Any]] = []
    parent = None
    for t in range(turns):
        u, a, r, b, s, c = (f"{p}{t}" for p in "uarbsc")
        entries += [
            {"type": "user", "uuid": u, "parentUuid": parent,
             "message": {"role": "user", "content": f"question {t}"}},
            {"type": "assistant", "uuid": a, "parentUuid": u,
             "message": {"role": "assistant", "content": [
                 {"type": "thinking", "thinking": f"plan {t}", "signature": "sig"},
                 {"type": "text", "text": f"looking {t}"},
                 {"type": "tool_use", "id": f"t{t}a", "name": "read_file", "input": {"path": f"/src/{t}.py"}},
             ]}},
            {"type": "user", "uuid": r, "parentUuid": a,
             "message": {"role": "user", "content": [
                 {"type": "tool_result", "tool_use_id": f"t{t}a", "content": LONG_OUTPUT},
             ]}},
            {"type": "assistant", "uuid": b, "parentUuid": r,
             "message": {"role": "assistant", "content": [
                 {"type": "tool_use", "id": f"t{t}b", "name": "grep", "input": {"pattern": "lock"}},
             ]}},
            {"type": "user", "uuid": s, "parentUuid": b,
             "message": {"role": "user", "content": [
                 {"type": "tool_result", "tool_use_id": f"t{t}b", "content": "no match"},
             ]}},
            {"type": "assistant", "uuid": c, "parentUuid": s,
             "message": {"role": "assistant", "content": [{"type": "text", "text": f"answer {t}"}]}},
        ]
        parent = c
    return entries


def by_uuid(entries: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {e["uuid"]: e for e in entries}


def block_types(entry: dict[str, Any]) -> list[str]:
    return [block["type"] for block in entry["message"]["content"]]


def assert_chain_valid(entries: list[dict[str, Any]]) -> None:
    uuids = {e["uuid"] for e in entries}
    assert entries[0]["parentUuid"] is None
    assert all(e["parentUuid"] is None or e["parentUuid"] in uuids for e in entries)


# === 边界计算 ===


class TestRemovalBoundary:
    """removal_boundary() 测试。"""

    @pytest.mark.parametrize(
        "turn_count,percent,expected",
        [
            (10, 0, 0),
            (10, 25, 2),
            (10, 33, 3),
            (3, 50, 1),
            (3, 99, 2),
            (3, 100, 3),
            (7, 150, 7),
            (1, 50, 0),
            (0, 50, 0),
        ],
    )
    def test_boundary(self, turn_count: int, percent: float, expected: int) -> None:
        assert removal_boundary(turn_count, percent) == expected


# === 截断 ===


class TestTruncateToolContent:
    """truncate_tool_content() 测试。"""

    def test_empty(self) -> None:
        assert truncate_tool_content("") == ""

    def test_short_unchanged(self) -> None:
        assert truncate_tool_content("one\ntwo\nthree") == "one\ntwo\nthree"

    def test_keeps_three_lines(self) -> None:
        assert truncate_tool_content("a\nb\nc\nd\ne") == "a\nb\nc..."

    def test_max_chars(self) -> None:
        result = truncate_tool_content("y" * 300)
        assert result == "y" * 250 + "..."

    def test_trailing_whitespace_trimmed(self) -> None:
        assert truncate_tool_content("x\ny\nz   \nw") == "x\ny\nz..."


# === Turn 划分 ===


def test_turn_ranges_skip_leading_entries() -> None:
    entries = [{"type": "summary", "summary": "s"}] + build_session(2)
    assert turn_ranges(entries) == [range(1, 7), range(7, 13)]


# === apply_removals ===


class TestApplyRemovals:
    """apply_removals() 测试。"""

    def test_zero_percent_is_noop(self) -> None:
        entries = build_session(3)

        result, stats = apply_removals(entries, RemovalConfig())

        assert result == entries
        assert result is not entries
        assert stats == RemovalStats()

    def test_input_not_mutated(self) -> None:
        entries = build_session(2)
        snapshot = copy.deepcopy(entries)

        apply_removals(entries, RemovalConfig(tool_removal=100, thinking_removal=100))

        assert entries == snapshot

    def test_remove_tools_in_early_turns(self) -> None:
        """4 个 Turn 移除 50%：前 2 个 Turn 的工具调用连同结果一起删除。"""
        entries = build_session(4)

        result, stats = apply_removals(entries, RemovalConfig(tool_removal=50))
        index = by_uuid(result)

        assert stats.tool_calls_removed == 4
        assert stats.entries_removed == 6
        for t in (0, 1):
            assert block_types(index[f"a{t}"]) == ["thinking", "text"]
            assert not {f"r{t}", f"b{t}", f"s{t}"} & index.keys()
        for t in (2, 3):
            assert block_types(index[f"a{t}"]) == ["thinking", "text", "tool_use"]
            assert {f"r{t}", f"b{t}", f"s{t}"} <= index.keys()

    def test_parent_uuid_repaired(self) -> None:
        """被删除 entry 的子节点改接到最近的保留祖先。"""
        result, _ = apply_removals(build_session(2), RemovalConfig(tool_removal=100))
        index = by_uuid(result)

        assert index["c0"]["parentUuid"] == "a0"
        assert index["u1"]["parentUuid"] == "c0"
        assert_chain_valid(result)

    def test_results_in_later_turn_removed(self) -> None:
        """tool_result 落在移除区之外的 Turn 时，也随它的 tool_use 一起删除。"""
        entries = [
            {"type": "user", "uuid": "u0", "parentUuid": None,
             "message": {"role": "user", "content": "start"}},
            {"type": "assistant", "uuid": "a0", "parentUuid": "u0",
             "message": {"role": "assistant", "content": [
                 {"type": "text", "text": "running"},
                 {"type": "tool_use", "id": "slow", "name": "bash", "input": {"cmd": "make"}},
             ]}},
            {"type": "user", "uuid": "u1", "parentUuid": "a0",
             "message": {"role": "user", "content": "still there?"}},
            {"type": "user", "uuid": "r1", "parentUuid": "u1",
             "message": {"role": "user", "content": [
                 {"type": "tool_result", "tool_use_id": "slow", "content": "done"},
                 {"type": "tool_result", "tool_use_id": "other", "content": "kept"},
             ]}},
        ]

        result, stats = apply_removals(entries, RemovalConfig(tool_removal=50))
        index = by_uuid(result)

        assert stats.tool_calls_removed == 1
        assert block_types(index["a0"]) == ["text"]
        assert index["r1"]["message"]["content"] == [
            {"type": "tool_result", "tool_use_id": "other", "content": "kept"},
        ]

    def test_truncate_mode(self) -> None:
        """truncate 模式保留 entry，只截断 input 与结果内容。"""
        entries = build_session(2)
        entries[1]["message"]["content"][2]["input"] = {
            "path": "/src/app.py", "old": "a", "new": "b", "replace_all": True,
        }

        result, stats = apply_removals(entries, RemovalConfig(tool_removal=50, tool_mode="truncate"))
        index = by_uuid(result)

        assert stats.tool_calls_removed == 0
        assert stats.entries_removed == 0
        assert len(result) == len(entries)

        tool_use = index["a0"]["message"]["content"][2]
        assert isinstance(tool_use["input"], str)
        assert tool_use["input"].endswith("...")
        assert tool_use["input"].count("\n") == 2

        result_block = index["r0"]["message"]["content"][0]
        assert result_block["content"] == truncate_tool_content(LONG_OUTPUT)
        # 短内容不计数，也不改变
        assert index["b0"]["message"]["content"][0]["input"] == {"pattern": "lock"}
        assert index["s0"]["message"]["content"][0]["content"] == "no match"
        assert stats.tool_calls_truncated == 2
        # 移除区之外不截断
        assert index["r1"]["message"]["content"][0]["content"] == LONG_OUTPUT

    def test_thinking_removal(self) -> None:
        entries = build_session(3)

        result, stats = apply_removals(entries, RemovalConfig(thinking_removal=100))
        index = by_uuid(result)

        assert stats.thinking_blocks_removed == 3
        assert stats.tool_calls_removed == 0
        assert all(block_types(index[f"a{t}"]) == ["text", "tool_use"] for t in range(3))
        assert len(result) == len(entries)

    def test_thinking_only_entry_dropped(self) -> None:
        entries = [
            {"type": "user", "uuid": "u0", "parentUuid": None,
             "message": {"role": "user", "content": "hi"}},
            {"type": "assistant", "uuid": "t0", "parentUuid": "u0",
             "message": {"role": "assistant", "content": [{"type": "thinking", "thinking": "..."}]}},
            {"type": "assistant", "uuid": "a0", "parentUuid": "t0",
             "message": {"role": "assistant", "content": [{"type": "text", "text": "hello"}]}},
        ]

        result, stats = apply_removals(entries, RemovalConfig(thinking_removal=100))

        assert [e["uuid"] for e in result] == ["u0", "a0"]
        assert result[1]["parentUuid"] == "u0"
        assert stats.entries_removed == 1

    def test_turn_count_preserved(self) -> None:
        """预处理不会删除 Turn 起点，提取到的 Turn 数不变。"""
        entries = build_session(5)
        adapter = ClaudeSessionAdapter()

        result, _ = apply_removals(entries, RemovalConfig(tool_removal=100, thinking_removal=100))

        assert len(adapter.extract_turns(result)) == len(adapter.extract_turns(entries)) == 5
        assert adapter.reconstruct(result, adapter.extract_turns(result)) == result

    @pytest.mark.parametrize("document", [{"requests": []}, ["not a dict"], None])
    def test_invalid_document(self, document: Any) -> None:
        with pytest.raises(DocumentFormatError):
            apply_removals(document, RemovalConfig(tool_removal=50))

    def test_stats_to_dict(self) -> None:
        stats = RemovalStats(tool_calls_removed=2, entries_removed=1)
        assert stats.to_dict() == {
            "tool_calls_removed": 2,
            "tool_calls_truncated": 0,
            "thinking_blocks_removed": 0,
            "entries_removed": 1,
        }
