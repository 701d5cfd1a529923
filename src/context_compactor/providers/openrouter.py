"""
OpenRouter 摘要 Provider（OpenAI 兼容的 chat completions 接口）。

模型被要求只返回 ``{"text": "..."}``。实际响应常被包在 Markdown 代码块里，
或者带一句前言，解析时依次尝试：代码块 → 含 "text" 键的 JSON 对象 → 原文。

Provider 自身不重试，失败直接抛出 ProviderError，由执行器按策略重试。
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from context_compactor.errors import ProviderError
from context_compactor.models.band import CompressionLevel
from context_compactor.tokenizer import estimate_tokens

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\"text\"[\s\S]*\}")

PROMPT_TEMPLATE = """You are TextCompressor. Rewrite the text below to approximately {target_percent}% of its original length while preserving intent and factual meaning.

Token estimation: tokens ≈ ceil(characters / 4)

Rules:
- Preserve key entities, claims, and relationships
- Remove redundancy, filler, and hedging
- Keep fluent English
- If unsure about length, err shorter
- Do not include explanations or commentary outside the JSON
- Do not reference "I", "we", "user", "assistant", or conversation roles

Return exactly one JSON object: {{"text": "your compressed text"}}

Input text:
<<<CONTENT
{text}
CONTENT"""


class CompressionResponse(BaseModel):
    """模型返回的 JSON 结构。"""

    text: str


def build_prompt(text: str, level: CompressionLevel) -> str:
    return PROMPT_TEMPLATE.format(target_percent=level.target_percent, text=text)


def extract_json(raw: str) -> str:
    """从模型输出中截取 JSON 字符串。"""
    match = _CODE_BLOCK_RE.search(raw)
    if match:
        return match.group(1).strip()
    match = _JSON_OBJECT_RE.search(raw)
    if match:
        return match.group(0)
    return raw


def parse_response(raw: str) -> str:
    """
    解析模型输出，返回压缩后的文本。

    抛出:
        ProviderError: 输出不是合法 JSON，或缺少字符串类型的 text 字段
    """
    payload = extract_json(raw)
    try:
        return CompressionResponse.model_validate_json(payload).text
    except ValidationError as e:
        raise ProviderError(
            what="无法解析压缩结果。",
            why=f"模型输出不是 {{\"text\": ...}} 形式的 JSON：{payload[:100]!r}",
            how="这通常是模型偶发地没有遵循输出格式，执行器会自动重试。",
            provider="openrouter",
        ) from e


class OpenRouterProvider:
    """
    基于 httpx.AsyncClient 的 OpenRouter Provider。

    用法::

        async with OpenRouterProvider(api_key="sk-or-...") as provider:
            text = await provider.compress(long_text, CompressionLevel.HEAVY)

    估算 Token 超过 large_model_threshold 的文本改用 model_large。
    """

    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-3-flash-preview",
        model_large: str = "anthropic/claude-opus-4.5",
        base_url: str = "https://openrouter.ai/api/v1",
        large_model_threshold: int = 1000,
        timeout: float = 120.0,
        site_url: str = "",
        site_name: str = "context-compactor",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ProviderError(
                what="OpenRouter API Key 为空。",
                how="设置 OPENROUTER_API_KEY 环境变量，或在构造时传入 api_key。",
                provider="openrouter",
            )
        self.model = model
        self.model_large = model_large
        self.large_model_threshold = large_model_threshold
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": site_url,
            "X-Title": site_name,
        }

    def select_model(self, text: str) -> str:
        if estimate_tokens(text) > self.large_model_threshold:
            return self.model_large
        return self.model

    async def compress(self, text: str, level: CompressionLevel) -> str:
        model = self.select_model(text)
        payload: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": build_prompt(text, level)}],
        }
        logger.debug(f"调用 OpenRouter：model={model}, level={level.value}, chars={len(text)}")

        response = await self._client.post(
            f"{self._base_url}/chat/completions",
            json=payload,
            headers=self._headers,
        )
        if response.status_code >= 400:
            raise ProviderError(
                what=f"OpenRouter API 返回错误 {response.status_code}。",
                why=response.text[:500],
                how="检查 API Key、模型名称和账户额度。",
                provider="openrouter",
                status_code=response.status_code,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                what="OpenRouter 响应格式无效。",
                why=f"响应中缺少 choices[0].message.content：{e}",
                provider="openrouter",
                status_code=response.status_code,
            ) from e
        if not isinstance(content, str):
            raise ProviderError(
                what="OpenRouter 响应格式无效。",
                why=f"message.content 类型为 {type(content).__name__}，期望字符串。",
                provider="openrouter",
                status_code=response.status_code,
            )

        return parse_response(content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> OpenRouterProvider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
