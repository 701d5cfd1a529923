"""
init 命令 — 初始化项目配置。

创建：
- context_compactor.yaml 策略文件
- .context_compactor/ 工作目录（审计日志等）
"""

from __future__ import annotations

from pathlib import Path

from context_compactor.cli.utils import create_console, print_success, print_warning
from context_compactor.config import DEFAULT_POLICY_FILENAME, DEFAULT_POLICY_YAML

console = create_console()


def init_command(force: bool = False) -> None:
    """在当前目录生成默认策略文件。已存在的文件只有在 --force 时才会覆盖。"""
    current_dir = Path.cwd()
    created_files: list[str] = []

    work_dir = current_dir / ".context_compactor"
    if not work_dir.exists():
        work_dir.mkdir(parents=True)
        created_files.append(".context_compactor/")

    gitignore = work_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text("# Context Compactor 运行时文件\naudit/\n", encoding="utf-8")
        created_files.append(".context_compactor/.gitignore")

    policy_path = current_dir / DEFAULT_POLICY_FILENAME
    if policy_path.exists() and not force:
        print_warning(f"{DEFAULT_POLICY_FILENAME} 已存在，跳过（使用 --force 可强制覆盖）")
    else:
        policy_path.write_text(DEFAULT_POLICY_YAML, encoding="utf-8")
        created_files.append(DEFAULT_POLICY_FILENAME)

    if created_files:
        print_success("项目初始化完成！已创建以下文件：")
        for f in created_files:
            console.print(f"  [cyan]+ {f}[/cyan]")
    else:
        console.print("[yellow]所有文件均已存在，无需创建。[/yellow]")

    console.print("\n[bold]下一步：[/bold]")
    console.print(f"  1. 编辑 [cyan]{DEFAULT_POLICY_FILENAME}[/cyan] 调整压缩区间")
    console.print("  2. 设置 [cyan]OPENROUTER_API_KEY[/cyan]，或使用 --provider truncation 离线试跑")
    console.print("  3. [dim]context-compactor compress session.jsonl[/dim]")
