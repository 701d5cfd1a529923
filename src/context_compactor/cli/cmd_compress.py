"""
compress 命令 — 压缩一个会话文件。

读取会话 → （可选）移除工具调用 / thinking 块 → 按策略区间压缩
→ 写出新的会话文件（原文件不变），可选写出 Markdown 审计日志。
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

from context_compactor.adapters import DocumentAdapter, apply_removals
from context_compactor.audit import write_audit_log
from context_compactor.cli.utils import (
    create_console,
    create_stats_table,
    default_output_path,
    handle_compactor_error,
    load_document,
    print_error,
    print_success,
    print_warning,
    save_document,
    setup_logging,
)
from context_compactor.compress.engine import CompressEngine, EngineResult
from context_compactor.config import PolicyConfig, load_policy
from context_compactor.errors import ContextCompactorError
from context_compactor.models.band import parse_band
from context_compactor.models.conversation import Conversation
from context_compactor.observability import create_tracing
from context_compactor.providers import create_provider

console = create_console()


def compress_command(
    input_file: str,
    format: str = "auto",
    bands: list[str] | None = None,
    policy: str | None = None,
    output: str | None = None,
    audit_log: str | None = None,
    provider: str | None = None,
    concurrency: int | None = None,
    min_tokens: int | None = None,
    tool_removal: float | None = None,
    tool_mode: str | None = None,
    thinking_removal: float | None = None,
    verbose: bool = False,
) -> None:
    """压缩会话文件。"""
    setup_logging(verbose)

    try:
        overrides = _build_overrides(
            bands, provider, concurrency, min_tokens,
            tool_removal=tool_removal, tool_mode=tool_mode, thinking_removal=thinking_removal,
        )
    except ValueError as e:
        print_error(str(e))

    try:
        policy_config = load_policy(policy, overrides=overrides, environ=os.environ)
        adapter, document = load_document(input_file, format)
        document = _apply_removals(policy_config, adapter, document)
        conversation = adapter.extract_turns(document)
    except ContextCompactorError as e:
        handle_compactor_error(e)
    except (FileNotFoundError, ValueError) as e:
        print_error(f"加载会话文件失败：{e}")

    if not policy_config.bands:
        print_warning("策略中没有任何压缩区间，不会压缩任何文本。")

    if verbose:
        console.print(
            f"[dim]{adapter.name} 会话，{len(conversation.turns)} 个 Turn，"
            f"{len(policy_config.bands)} 个区间，Provider：{policy_config.provider.type}[/dim]"
        )

    try:
        result = asyncio.run(_run(policy_config, conversation))
        compressed_document = adapter.reconstruct(document, result.conversation)
    except ContextCompactorError as e:
        handle_compactor_error(e)

    output_path = save_document(output or default_output_path(input_file), adapter, compressed_document)

    console.print(create_stats_table(result.stats))
    print_success(f"已保存到 {output_path}")

    audit_path = _audit_path(policy_config, audit_log, adapter, input_file)
    if audit_path is not None:
        written = write_audit_log(audit_path, conversation, result.conversation, result.tasks, result.stats)
        print_success(f"审计日志已保存到 {written}")


async def _run(policy_config: PolicyConfig, conversation: Conversation) -> EngineResult:
    summarizer = create_provider(policy_config.provider)
    engine = CompressEngine(
        policy_config.engine,
        summarizer,
        tracing=create_tracing(policy_config.tracing_enabled),
    )
    try:
        return await engine.run(conversation, policy_config.bands)
    finally:
        # httpx 客户端必须在同一个 event loop 内关闭
        aclose = getattr(summarizer, "aclose", None)
        if aclose is not None:
            await aclose()


def _build_overrides(
    bands: list[str] | None,
    provider: str | None,
    concurrency: int | None,
    min_tokens: int | None,
    tool_removal: float | None = None,
    tool_mode: str | None = None,
    thinking_removal: float | None = None,
) -> dict[str, Any]:
    """把命令行参数转换为策略覆盖字典（--band 会整体替换策略中的区间）。"""
    overrides: dict[str, Any] = {}
    if bands:
        overrides["bands"] = [parse_band(raw).model_dump(mode="json") for raw in bands]

    engine: dict[str, Any] = {}
    if concurrency is not None:
        engine["concurrency"] = concurrency
    if min_tokens is not None:
        engine["min_tokens"] = min_tokens
    if engine:
        overrides["engine"] = engine

    if provider is not None:
        overrides["provider"] = {"type": provider}

    removal: dict[str, Any] = {}
    if tool_removal is not None:
        removal["tool_removal"] = tool_removal
    if tool_mode is not None:
        removal["tool_mode"] = tool_mode
    if thinking_removal is not None:
        removal["thinking_removal"] = thinking_removal
    if removal:
        overrides["removal"] = removal
    return overrides


def _apply_removals(policy_config: PolicyConfig, adapter: DocumentAdapter, document: Any) -> Any:
    """按策略移除工具调用 / thinking 块；只对 Claude 会话生效。"""
    if not policy_config.removal.enabled:
        return document
    if adapter.name != "claude":
        print_warning(f"工具调用 / thinking 块移除只支持 Claude 会话，{adapter.name} 会话将跳过这一步。")
        return document

    pruned, stats = apply_removals(document, policy_config.removal)
    console.print(
        f"[dim]移除工具调用 {stats.tool_calls_removed} 个，截断 {stats.tool_calls_truncated} 个，"
        f"移除 thinking 块 {stats.thinking_blocks_removed} 个。[/dim]"
    )
    return pruned


def _audit_path(
    policy_config: PolicyConfig,
    audit_log: str | None,
    adapter: DocumentAdapter,
    input_file: str,
) -> Path | None:
    if audit_log:
        return Path(audit_log)
    if policy_config.audit.enabled:
        stem = Path(input_file).stem
        return Path(policy_config.audit.directory) / f"{stem}-{adapter.name}-compression-audit.md"
    return None
