"""
Tokenizer 模块单元测试 — 测试 Token 估算。

覆盖范围:
- tokenizer/protocol.py: TokenCounter Protocol
- tokenizer/fallback.py: CharBasedCounter, estimate_tokens()
"""

from __future__ import annotations

import pytest

from context_compactor.tokenizer import CharBasedCounter, TokenCounter, estimate_tokens


# === CharBasedCounter 测试 ===


class TestCharBasedCounter:
    """CharBasedCounter 测试（字符数粗估）。"""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(CharBasedCounter(), TokenCounter)

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", 0),
            ("a", 1),
            ("abcd", 1),
            ("abcde", 2),
            ("Hello, world!", 4),
            ("x" * 400, 100),
        ],
    )
    def test_default_ratio(self, text: str, expected: int) -> None:
        assert CharBasedCounter().count(text) == expected

    def test_counts_characters_not_bytes(self) -> None:
        """中文按字符计数，而不是 UTF-8 字节数。"""
        assert CharBasedCounter().count("你好世界") == 1

    def test_custom_ratio(self) -> None:
        counter = CharBasedCounter(chars_per_token=2.0)
        assert counter.count("abcde") == 3
        assert counter.name == "char_based:2"

    def test_default_name(self) -> None:
        assert CharBasedCounter().name == "char_based:4"

    @pytest.mark.parametrize("ratio", [0, -1.5])
    def test_invalid_ratio(self, ratio: float) -> None:
        with pytest.raises(ValueError, match="chars_per_token"):
            CharBasedCounter(chars_per_token=ratio)


# === estimate_tokens 测试 ===


class TestEstimateTokens:
    """estimate_tokens() 测试。"""

    def test_matches_default_counter(self) -> None:
        text = "The quick brown fox jumps over the lazy dog."
        assert estimate_tokens(text) == CharBasedCounter().count(text) == 11

    def test_empty(self) -> None:
        assert estimate_tokens("") == 0


# === Protocol 测试 ===


class TestTokenCounterProtocol:
    """TokenCounter 结构化子类型测试。"""

    def test_custom_counter(self) -> None:
        class WordCounter:
            def count(self, text: str) -> int:
                return len(text.split())

            @property
            def name(self) -> str:
                return "words"

        assert isinstance(WordCounter(), TokenCounter)

    def test_missing_method(self) -> None:
        class NotACounter:
            def tokens(self, text: str) -> int:
                return 0

        assert not isinstance(NotACounter(), TokenCounter)
