"""
YAML 策略文件加载与校验。

本模块负责：
1. 从文件路径或默认搜索路径加载 YAML 策略
2. 合并多层配置（默认 → 策略文件 → 环境变量 → 运行时覆盖）
3. 使用 Pydantic Schema 校验策略内容
4. 提供人类可读的校验错误信息

# [DX Decision] 策略加载失败时的错误信息必须精确到字段级别，
# 告诉用户哪个文件、哪个字段、什么值有问题、应该改成什么。
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from context_compactor.config.schema import PolicyConfig
from context_compactor.errors import ConfigValidationError, PolicyLoadError

logger = logging.getLogger(__name__)

# 默认策略文件搜索路径
_SEARCH_PATHS = [
    Path("context_compactor.yaml"),
    Path("context_compactor.yml"),
    Path(".context_compactor/policy.yaml"),
]

# 环境变量 → (配置段, 字段, 类型)
_ENV_FIELDS: dict[str, tuple[str, str, type]] = {
    "COMPRESSION_CONCURRENCY": ("engine", "concurrency", int),
    "COMPRESSION_TIMEOUT_INITIAL": ("engine", "timeout_initial_ms", int),
    "COMPRESSION_TIMEOUT_INCREMENT": ("engine", "timeout_increment", float),
    "COMPRESSION_MAX_ATTEMPTS": ("engine", "max_attempts", int),
    "COMPRESSION_MIN_TOKENS": ("engine", "min_tokens", int),
    "LLM_PROVIDER": ("provider", "type", str),
}


def load_policy(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PolicyConfig:
    """
    加载并校验策略配置。

    加载优先级（后者覆盖前者）：
    1. Schema 默认值
    2. 显式指定的路径，或默认搜索路径下找到的第一个文件
    3. 环境变量（仅当传入 environ 时读取）
    4. 运行时覆盖

    参数:
        path: YAML 文件路径。None 时自动搜索默认路径。
        overrides: 运行时覆盖的配置项（深度合并到 YAML 配置之上）
        environ: 环境变量映射，通常传入 ``os.environ``；None 表示不读取环境

    返回:
        PolicyConfig 实例

    异常:
        PolicyLoadError: 文件不存在或格式错误
        ConfigValidationError: 配置校验失败
    """
    raw_config: dict[str, Any] = {}
    source = str(path) if path is not None else "<default>"

    if path is not None:
        raw_config = _load_yaml_file(Path(path))
    else:
        for search_path in _SEARCH_PATHS:
            if search_path.exists():
                logger.info("自动发现策略文件：%s", search_path)
                raw_config = _load_yaml_file(search_path)
                source = str(search_path)
                break
        else:
            logger.info("未找到策略文件，使用默认配置。")

    if environ is not None:
        raw_config = _deep_merge(raw_config, env_overrides(environ))

    if overrides:
        raw_config = _deep_merge(raw_config, overrides)

    return _validate_config(raw_config, source)


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    把 ``COMPRESSION_*`` / ``LLM_PROVIDER`` 环境变量转换为覆盖字典。

    参数:
        environ: 环境变量映射，默认 ``os.environ``

    返回:
        可以直接传给 load_policy(overrides=...) 的嵌套字典

    异常:
        ConfigValidationError: 环境变量值无法转换为目标类型
    """
    env = os.environ if environ is None else environ
    result: dict[str, Any] = {}

    for var, (section, field_name, caster) in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = caster(raw)
        except ValueError as e:
            raise ConfigValidationError(
                what=f"环境变量 {var} 的值无效。",
                why=f"'{raw}' 无法转换为 {caster.__name__}：{e}",
                how=f"请将 {var} 设置为合法的 {caster.__name__} 值，或删除该变量使用默认值。",
                config_path="<environment>",
                field_path=f"{section}.{field_name}",
            ) from e
        result.setdefault(section, {})[field_name] = value

    return result


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """加载并解析 YAML 文件。"""
    if not path.exists():
        raise PolicyLoadError(
            what=f"策略文件 '{path}' 不存在。",
            why=f"在路径 '{path.absolute()}' 下未找到该文件。",
            how="请检查文件路径是否正确。"
                "可以使用 'context-compactor init' 在当前目录生成默认策略文件。",
            file_path=str(path),
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyLoadError(
            what=f"无法读取策略文件 '{path}'。",
            why=str(e),
            how="请检查文件权限和编码（需要 UTF-8）。",
            file_path=str(path),
        ) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise PolicyLoadError(
            what=f"策略文件 '{path}' 的 YAML 格式无效。",
            why=str(e),
            how="请使用 YAML 格式校验工具检查文件语法。",
            file_path=str(path),
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PolicyLoadError(
            what=f"策略文件 '{path}' 的根元素必须是字典（mapping）。",
            why=f"实际类型为 {type(data).__name__}。",
            how="请确保 YAML 文件的根元素是键值对形式，例如：\n"
                "  version: '1.0'\n"
                "  bands:\n"
                "    - {start: 0, end: 50, level: heavy}",
            file_path=str(path),
        )

    return data


def _validate_config(raw: dict[str, Any], source: str) -> PolicyConfig:
    """使用 Pydantic 校验配置字典。"""
    try:
        return PolicyConfig(**raw)
    except ValidationError as e:
        error_details = []
        for err in e.errors():
            field_path = " → ".join(str(loc) for loc in err["loc"])
            error_details.append(f"  字段 '{field_path}': {err['msg']}")

        raise ConfigValidationError(
            what=f"策略配置 '{source}' 校验失败（{len(e.errors())} 个错误）。",
            why="\n".join(error_details),
            how="请对照默认策略文件修正配置项。"
                "可以使用 'context-compactor validate <path>' 命令进行预校验。",
            config_path=source,
        ) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    深度合并两个字典。override 中的值优先。

    # [Design Decision] 深度合并而非浅覆盖，
    # 让用户可以只覆盖需要修改的字段，而非重写整个配置段。
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def validate_policy_file(path: str | Path) -> list[str]:
    """
    校验策略文件，返回错误列表。

    这个方法不会抛出异常，而是收集所有错误并返回。
    用于 CLI 的 validate 命令和 CI 流程。

    参数:
        path: YAML 文件路径

    返回:
        错误信息列表（空列表表示校验通过）
    """
    errors: list[str] = []

    try:
        load_policy(path=path)
    except (PolicyLoadError, ConfigValidationError) as e:
        errors.append(e.full_message)

    return errors
