"""
Context Compactor CLI — 命令行工具入口。

提供 compress / validate / init / version 子命令。

用法::

    context-compactor --help
    context-compactor init
    context-compactor compress session.jsonl --band 0:50:heavy --band 50:80:regular
    context-compactor validate context_compactor.yaml
"""

from __future__ import annotations

import typer

from context_compactor.cli.utils import create_console

# 创建主应用
app = typer.Typer(
    name="context-compactor",
    help="Context Compactor — 按对话位置分段压缩会话上下文",
    add_completion=False,
    no_args_is_help=True,
)

console = create_console()


# ============================================================
# 子命令注册
# ============================================================

@app.command(name="compress")
def compress(
    input_file: str = typer.Argument(
        ...,
        help="会话文件路径（Claude .jsonl 或 Copilot .json）",
    ),
    format: str = typer.Option(
        "auto",
        "--format",
        "-f",
        help="会话格式：auto / claude / copilot",
    ),
    bands: list[str] | None = typer.Option(
        None,
        "--band",
        "-b",
        help="压缩区间 START:END:LEVEL，可重复（会替换策略文件中的区间）",
    ),
    policy: str | None = typer.Option(
        None,
        "--policy",
        "-p",
        help="策略文件路径（默认自动搜索）",
    ),
    output: str | None = typer.Option(
        None,
        "--output",
        "-o",
        help="输出文件路径（默认 <输入>.compressed.<后缀>）",
    ),
    audit_log: str | None = typer.Option(
        None,
        "--audit-log",
        help="审计日志（Markdown）输出路径",
    ),
    provider: str | None = typer.Option(
        None,
        "--provider",
        help="Provider 类型：openrouter / truncation（覆盖策略配置）",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="并发上限（覆盖策略配置）",
    ),
    min_tokens: int | None = typer.Option(
        None,
        "--min-tokens",
        help="跳过阈值（覆盖策略配置）",
    ),
    tool_removal: float | None = typer.Option(
        None,
        "--tool-removal",
        help="移除最早 N% 的 Turn 中的工具调用（0-100，仅 Claude 会话）",
    ),
    tool_mode: str | None = typer.Option(
        None,
        "--tool-mode",
        help="工具调用处理方式：remove / truncate",
    ),
    thinking_removal: float | None = typer.Option(
        None,
        "--thinking-removal",
        help="移除最早 N% 的 Turn 中的 thinking 块（0-100，仅 Claude 会话）",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="详细输出（显示调试日志）",
    ),
) -> None:
    """压缩会话文件，写出新的会话文件（原文件不变）。"""
    from context_compactor.cli.cmd_compress import compress_command
    compress_command(
        input_file=input_file,
        format=format,
        bands=bands,
        policy=policy,
        output=output,
        audit_log=audit_log,
        provider=provider,
        concurrency=concurrency,
        min_tokens=min_tokens,
        tool_removal=tool_removal,
        tool_mode=tool_mode,
        thinking_removal=thinking_removal,
        verbose=verbose,
    )


@app.command(name="validate")
def validate(
    path: str = typer.Argument(
        "context_compactor.yaml",
        help="YAML 策略文件路径",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="严格模式：将警告视为错误",
    ),
) -> None:
    """校验 YAML 策略文件。"""
    from context_compactor.cli.cmd_validate import validate_command
    validate_command(path=path, strict=strict)


@app.command(name="init")
def init(
    force: bool = typer.Option(
        False,
        "--force",
        help="强制覆盖已存在的文件",
    ),
) -> None:
    """在当前目录生成默认策略文件。"""
    from context_compactor.cli.cmd_init import init_command
    init_command(force=force)


@app.command(name="version")
def version() -> None:
    """显示版本信息。"""
    from context_compactor import __version__
    console.print(f"Context Compactor v{__version__}")


# ============================================================
# CLI 入口点
# ============================================================

def main() -> None:
    """CLI 入口点。"""
    app()


if __name__ == "__main__":
    main()
