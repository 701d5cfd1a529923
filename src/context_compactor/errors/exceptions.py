"""
结构化异常体系 — 错误信息即文档。

每条异常遵循"三段式"规范：
1. What went wrong（发生了什么）
2. Why it happened（为什么发生）
3. How to fix it（怎么修）

# [DX Decision] 只有"配置错误"和"对账缺陷"会以异常形式抛给调用方。
# 单个压缩任务的失败（超时 / Provider 报错）在执行器内部就地恢复，
# 只体现在任务状态和统计里，永远不会冒泡成异常。

示例::

    ConfigValidationError(
        what="压缩区间 #2 校验失败。",
        why="start=60 大于等于 end=40，区间为空。",
        how="区间是左闭右开的 [start, end)，请保证 start < end。",
    )
"""

from __future__ import annotations

from typing import Any


class ContextCompactorError(Exception):
    """
    Context Compactor 异常基类。

    所有 Context Compactor 异常都继承自此类，支持三段式错误消息。

    属性:
        what: 发生了什么
        why: 为什么发生
        how: 怎么修复
        details: 额外的上下文信息（用于调试）
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.what = what
        self.why = why
        self.how = how
        self.details = details or {}

        parts = [what]
        if why:
            parts.append(f"→ 原因：{why}")
        if how:
            parts.append(f"→ 修复建议：{how}")

        self.full_message = "\n".join(parts)
        super().__init__(self.full_message)

    def __str__(self) -> str:
        return self.full_message

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式，用于 JSON 输出。"""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "what": self.what,
        }
        if self.why:
            result["why"] = self.why
        if self.how:
            result["how"] = self.how
        if self.details:
            result["details"] = self.details
        return result


# === 配置相关异常 ===


class ConfigValidationError(ContextCompactorError):
    """
    配置校验异常。

    区间列表格式错误、并发数非正、重试次数非法等情况都会抛出此异常。
    它总是在调用任何 Provider 之前同步抛出，不可恢复。

    示例::

        raise ConfigValidationError(
            what="引擎配置校验失败。",
            why="concurrency=0，并发数必须为正整数。",
            how="将 engine.concurrency 设置为 >= 1 的值。",
            field_path="engine.concurrency",
        )
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        config_path: str = "",
        field_path: str = "",
        **kwargs: Any,
    ) -> None:
        details = {
            "config_path": config_path,
            "field_path": field_path,
        }
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.config_path = config_path
        self.field_path = field_path


class PolicyLoadError(ContextCompactorError):
    """
    策略加载异常。

    当策略文件不存在、格式错误或无法解析时抛出。
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        file_path: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"file_path": file_path}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.file_path = file_path


# === 压缩相关异常 ===


class CompressionError(ContextCompactorError):
    """压缩流程异常基类。"""

    pass


class ReconciliationError(CompressionError):
    """
    对账异常。

    当某个任务无法在对话中定位到对应的 Turn / Segment 时抛出。
    这意味着 unit_index 方案被破坏，是程序缺陷而不是运行时状况，
    因此必须大声失败，绝不能静默丢弃内容。

    示例::

        raise ReconciliationError(
            what="无法定位压缩任务 #41 对应的 Turn。",
            why="unit_index=41 指向 Turn #20，但对话只有 12 个 Turn。",
            how="确认任务列表与对话来自同一次引擎调用。",
            unit_index=41,
        )
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        unit_index: int | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = {"unit_index": unit_index}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.unit_index = unit_index


class ProviderError(CompressionError):
    """
    摘要 Provider 调用异常。

    由 Provider 实现抛出（HTTP 错误、响应格式无效等）。
    执行器会把它当作一次失败的尝试处理，与超时等价。
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        provider: str = "",
        status_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = {"provider": provider}
        if status_code is not None:
            details["status_code"] = status_code
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.provider = provider
        self.status_code = status_code


# === 文档适配相关异常 ===


class DocumentFormatError(ContextCompactorError):
    """
    会话文档格式异常。

    当适配器无法从文档中解析出 Turn 结构时抛出。
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        adapter: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"adapter": adapter}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.adapter = adapter


class AdapterNotFoundError(ContextCompactorError):
    """请求的文档适配器未注册。"""

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        adapter: str = "",
        available_adapters: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = {"adapter": adapter}
        if available_adapters:
            details["available_adapters"] = available_adapters
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.adapter = adapter
