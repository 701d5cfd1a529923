"""
Context Compactor CLI — 命令行工具。

- compress: 压缩会话文件
- validate: 校验策略文件
- init: 初始化项目配置
- version: 显示版本
"""

from context_compactor.cli.app import app, main

__all__ = ["app", "main"]
