"""
摘要 Provider 实现与工厂。

- openrouter：调用 OpenRouter chat completions 接口
- truncation：离线截断，无需 API Key
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from context_compactor.compress.base import SummarizationProvider
from context_compactor.config.schema import ProviderConfig
from context_compactor.errors import ConfigValidationError
from context_compactor.providers.openrouter import (
    CompressionResponse,
    OpenRouterProvider,
    build_prompt,
    extract_json,
    parse_response,
)
from context_compactor.providers.truncation import TruncationProvider

PROVIDER_TYPES = ("openrouter", "truncation")


def create_provider(
    config: ProviderConfig,
    environ: Mapping[str, str] | None = None,
) -> SummarizationProvider:
    """
    根据配置创建 Provider。

    参数:
        config: Provider 配置
        environ: 读取 API Key 的环境变量映射，默认 ``os.environ``

    抛出:
        ConfigValidationError: 类型未知，或缺少 API Key
    """
    env = os.environ if environ is None else environ

    if config.type == "truncation":
        return TruncationProvider()

    if config.type == "openrouter":
        api_key = env.get(config.api_key_env, "")
        if not api_key:
            raise ConfigValidationError(
                what="缺少 OpenRouter API Key。",
                why=f"环境变量 {config.api_key_env} 未设置。",
                how=f"export {config.api_key_env}=sk-or-...，"
                    "或使用 --provider truncation 在本地试跑。",
                field_path="provider.api_key_env",
            )
        return OpenRouterProvider(
            api_key=api_key,
            model=config.model,
            model_large=config.model_large,
            base_url=config.base_url,
            large_model_threshold=config.large_model_threshold,
            timeout=config.request_timeout_s,
            site_url=env.get("OPENROUTER_SITE_URL", ""),
            site_name=env.get("OPENROUTER_SITE_NAME", "context-compactor"),
        )

    raise ConfigValidationError(
        what=f"未知的 Provider 类型：'{config.type}'。",
        how=f"可用的类型：{', '.join(PROVIDER_TYPES)}。",
        field_path="provider.type",
    )


__all__ = [
    "PROVIDER_TYPES",
    "CompressionResponse",
    "OpenRouterProvider",
    "TruncationProvider",
    "build_prompt",
    "create_provider",
    "extract_json",
    "parse_response",
]
