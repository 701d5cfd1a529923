"""
Token 估算模块。

提供 TokenCounter 协议与零依赖的字符计数器。
"""

from context_compactor.tokenizer.fallback import CharBasedCounter, estimate_tokens
from context_compactor.tokenizer.protocol import TokenCounter

__all__ = [
    "CharBasedCounter",
    "TokenCounter",
    "estimate_tokens",
]
