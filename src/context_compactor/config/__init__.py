"""
Context Compactor 配置模块。

提供 YAML 策略加载、环境变量覆盖和默认策略模板。
"""

from context_compactor.config.defaults import DEFAULT_POLICY_FILENAME, DEFAULT_POLICY_YAML
from context_compactor.config.loader import env_overrides, load_policy, validate_policy_file
from context_compactor.config.schema import (
    AuditConfig,
    EngineConfig,
    PolicyConfig,
    ProviderConfig,
    RemovalConfig,
)

__all__ = [
    "DEFAULT_POLICY_FILENAME",
    "DEFAULT_POLICY_YAML",
    "AuditConfig",
    "EngineConfig",
    "PolicyConfig",
    "ProviderConfig",
    "RemovalConfig",
    "env_overrides",
    "load_policy",
    "validate_policy_file",
]
