"""
CLI 工具函数 — Rich 美化、会话文件读写、通用辅助。

提供 CLI 各子命令共用的实用函数，包括：
- Rich Console 美化输出与日志
- 会话文件的加载与保存
- 错误/成功信息统一格式
- 统计表格
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from context_compactor.adapters import DocumentAdapter, detect_adapter, dump_jsonl, get_adapter, load_jsonl
from context_compactor.compress.stats import CompressionStats
from context_compactor.errors import ContextCompactorError

# 全局 Console 实例
_console: Console | None = None


def create_console() -> Console:
    """
    创建或获取全局 Rich Console 实例。

    # [DX Decision] 全局单例 Console，确保所有 CLI 输出格式一致。
    """
    global _console
    if _console is None:
        _console = Console()
    return _console


def setup_logging(verbose: bool = False) -> None:
    """把根 logger 接到 RichHandler 上（--verbose 时为 DEBUG）。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=create_console(), rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    # httpx 的请求日志在 DEBUG 下过于嘈杂
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def print_error(message: str, exit_code: int = 1) -> NoReturn:
    """打印错误信息并退出程序。"""
    console = create_console()
    # [DX Decision] 使用 X 而非 ✗，避免 Windows 终端编码问题
    console.print(f"[bold red]X 错误：[/bold red]{message}")
    sys.exit(exit_code)


def print_success(message: str) -> None:
    console = create_console()
    console.print(f"[bold green]OK[/bold green] {message}")


def print_warning(message: str) -> None:
    console = create_console()
    console.print(f"[bold yellow]![/bold yellow] {message}")


def format_token_count(count: int) -> str:
    """
    格式化 Token 数字为带千分位分隔符的字符串。

    示例::

        >>> format_token_count(128000)
        '128,000'
    """
    return f"{count:,}"


def handle_compactor_error(error: ContextCompactorError) -> NoReturn:
    """
    统一处理 ContextCompactorError 异常。

    # [DX Decision] 三段式错误信息：What / Why / How
    """
    console = create_console()
    console.print("\n[bold red]X 错误[/bold red]\n")
    console.print(error.full_message, markup=False)
    sys.exit(1)


def load_document(path: str | Path, format: str = "auto") -> tuple[DocumentAdapter, Any]:
    """
    读取会话文件并确定适配器。

    .jsonl 文件按 Claude 会话读取，其余按 JSON 读取；
    format 为 auto 时根据文档结构推断。

    异常:
        FileNotFoundError: 文件不存在
        ValueError: JSON 格式错误
        ContextCompactorError: 适配器不存在或文档结构无法识别
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"文件不存在：{file_path}")

    if format == "claude" or (format == "auto" and file_path.suffix.lower() == ".jsonl"):
        return get_adapter("claude"), load_jsonl(file_path)

    try:
        document = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON 格式错误：{e}") from e

    adapter = detect_adapter(document) if format == "auto" else get_adapter(format)
    return adapter, document


def save_document(path: str | Path, adapter: DocumentAdapter, document: Any) -> Path:
    """按适配器对应的格式写出会话文件（自动创建父目录）。"""
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if adapter.name == "claude":
        dump_jsonl(document, file_path)
    else:
        file_path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
    return file_path


def default_output_path(input_path: str | Path) -> Path:
    """session.jsonl → session.compressed.jsonl"""
    path = Path(input_path)
    return path.with_name(f"{path.stem}.compressed{path.suffix}")


def create_stats_table(stats: CompressionStats) -> Table:
    """创建压缩统计表格。"""
    table = Table(title="压缩统计", show_header=True, header_style="bold cyan")
    table.add_column("项目", style="white")
    table.add_column("数值", justify="right", style="blue")

    rows: list[tuple[str, str]] = [
        ("压缩成功", str(stats.messages_compressed)),
        ("跳过", str(stats.messages_skipped)),
        ("失败", str(stats.messages_failed)),
        ("原始 Token", format_token_count(stats.original_tokens)),
        ("压缩后 Token", format_token_count(stats.compressed_tokens)),
        ("削减 Token", format_token_count(stats.tokens_removed)),
        ("削减比例", f"{stats.reduction_percent}%"),
    ]
    if stats.total_duration_ms is not None:
        rows.append(("总耗时", f"{stats.total_duration_ms / 1000:.2f} s"))
        rows.append(("平均耗时", f"{stats.avg_duration_ms} ms"))

    for name, value in rows:
        table.add_row(name, value)
    return table
