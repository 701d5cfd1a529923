"""
策略配置的 Schema 定义与校验。

压缩策略（区间列表、引擎参数、Provider、审计日志）通过 YAML 文件定义，
本模块定义了 YAML 文件的 Schema 并负责校验。

# [Design Decision] 使用 Pydantic 模型作为 Schema 定义，
# 既能做校验，又能自动生成 JSON Schema 用于编辑器提示。
# 引擎核心只接收已经校验过的 EngineConfig 对象，从不自己读取环境变量。
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from context_compactor.models.band import CompressionBand


class EngineConfig(BaseModel):
    """
    压缩引擎配置。

    超时按乘法递增：第 n 次尝试（从 0 开始）的超时为
    ``timeout_initial_ms * timeout_increment ** n``。
    """

    concurrency: int = Field(default=10, description="同时在途的 Provider 调用上限", gt=0)
    timeout_initial_ms: int = Field(default=30_000, description="首次尝试的超时（毫秒）", gt=0)
    timeout_increment: float = Field(
        default=1.5,
        description="每次重试时超时的放大倍数",
        ge=1.0,
    )
    max_attempts: int = Field(default=4, description="每个任务的最大尝试次数", ge=1)
    min_tokens: int = Field(default=30, description="低于此估算值的 unit 直接跳过", ge=0)
    include_initiator: bool = Field(
        default=True,
        description="是否压缩发起方（用户）文本",
    )

    def timeout_for_attempt(self, attempt: int) -> int:
        """计算第 attempt 次尝试（从 0 开始）的超时毫秒数。"""
        return int(round(self.timeout_initial_ms * self.timeout_increment ** attempt))


class ProviderConfig(BaseModel):
    """摘要 Provider 配置。"""

    type: str = Field(default="openrouter", description="Provider 类型：openrouter / truncation")
    model: str = Field(default="google/gemini-3-flash-preview", description="默认模型")
    model_large: str = Field(
        default="anthropic/claude-opus-4.5",
        description="长文本使用的大模型",
    )
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="API 基础地址")
    api_key_env: str = Field(default="OPENROUTER_API_KEY", description="API Key 所在环境变量")
    large_model_threshold: int = Field(
        default=1000,
        description="文本估算 Token 超过此值时改用大模型",
        ge=0,
    )
    request_timeout_s: float = Field(default=120.0, description="单次 HTTP 请求超时（秒）", gt=0)


class RemovalConfig(BaseModel):
    """
    工具调用 / 推理块移除配置。

    在压缩之前对 Claude 会话做的预处理：按 Turn 位置，
    把前 tool_removal% 的 Turn 中的工具调用删除或截断，
    把前 thinking_removal% 的 Turn 中的 thinking 块删除。
    """

    tool_removal: float = Field(
        default=0,
        description="移除工具调用的 Turn 百分比（从最早的 Turn 算起）",
        ge=0,
        le=100,
    )
    tool_mode: Literal["remove", "truncate"] = Field(
        default="remove",
        description="remove：删除工具调用及其结果；truncate：截断为前 3 行 / 250 字符",
    )
    thinking_removal: float = Field(default=0, description="移除 thinking 块的 Turn 百分比", ge=0, le=100)

    @property
    def enabled(self) -> bool:
        return self.tool_removal > 0 or self.thinking_removal > 0


class AuditConfig(BaseModel):
    """审计日志配置。"""

    enabled: bool = Field(default=False, description="是否写出审计日志")
    directory: str = Field(default=".context_compactor/audit", description="审计日志目录")


class PolicyConfig(BaseModel):
    """
    完整的策略配置 — 对应 YAML 策略文件的根结构。

    YAML 文件示例::

        version: "1.0"
        bands:
          - {start: 0, end: 50, level: heavy}
          - {start: 50, end: 80, level: regular}
        engine:
          concurrency: 8
          max_attempts: 3
        provider:
          type: openrouter
    """

    version: str = Field(default="1.0", description="策略版本")
    name: str = Field(default="default", description="策略名称")
    description: str = Field(default="", description="策略描述")

    bands: list[CompressionBand] = Field(default_factory=list, description="压缩区间列表")
    engine: EngineConfig = Field(default_factory=EngineConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    removal: RemovalConfig = Field(default_factory=RemovalConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    tracing_enabled: bool = Field(default=False, description="是否启用 OpenTelemetry Tracing")
