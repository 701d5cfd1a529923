"""
validate 命令 — 校验策略文件。

除 Schema 校验外，还会把区间重叠作为警告列出（--strict 时视为错误）。
"""

from __future__ import annotations

import sys
from pathlib import Path

from rich.panel import Panel

from context_compactor.cli.utils import create_console, print_error, print_success
from context_compactor.compress.mapper import find_overlaps
from context_compactor.config import load_policy, validate_policy_file

console = create_console()


def validate_command(path: str, strict: bool = False) -> None:
    """校验 YAML 策略文件的语法和语义正确性。"""
    if not Path(path).exists():
        print_error(f"文件不存在：{path}")

    console.print(f"[bold]校验策略文件：[/bold] {path}\n")

    errors = validate_policy_file(path)
    if errors:
        console.print(Panel(
            "\n\n".join(errors),
            title=f"[bold red]校验失败（{len(errors)} 个错误）[/bold red]",
            border_style="red",
        ))
        sys.exit(1)

    policy = load_policy(path)
    warnings = [
        f"区间 #{i} {policy.bands[i]} 与 #{j} {policy.bands[j]} 重叠，重叠部分使用 #{i}"
        for i, j in find_overlaps(policy.bands)
    ]
    if not policy.bands:
        warnings.append("策略中没有任何压缩区间，compress 将原样输出")

    if warnings:
        console.print(Panel(
            "\n".join(f"[yellow]![/yellow] {w}" for w in warnings),
            title=f"[bold yellow]警告（{len(warnings)} 条）[/bold yellow]",
            border_style="yellow",
        ))
        if strict:
            console.print("\n[bold red]严格模式下警告视为错误。[/bold red]")
            sys.exit(1)

    print_success(f"{path} 校验通过")
    if warnings:
        console.print(f"[dim]（有 {len(warnings)} 条警告，但不影响使用）[/dim]")
