"""
默认策略模板。

`context-compactor init` 会把 DEFAULT_POLICY_YAML 写到当前目录，
其中每个字段都与 Schema 默认值保持一致，只额外给出一组常用区间。
"""

from __future__ import annotations

DEFAULT_POLICY_FILENAME = "context_compactor.yaml"

DEFAULT_POLICY_YAML = """\
# Context Compactor 策略文件
version: "1.0"
name: default
description: 早期对话重度压缩，中段常规压缩，最近的对话保持原文

# 区间为左闭右开 [start, end)，按 Turn 的相对位置（0-100%）匹配。
# 多个区间重叠时，列表中靠前的区间优先。
bands:
  - {start: 0, end: 50, level: heavy}
  - {start: 50, end: 80, level: regular}

engine:
  concurrency: 10
  timeout_initial_ms: 30000
  timeout_increment: 1.5
  max_attempts: 4
  min_tokens: 30
  include_initiator: true

provider:
  type: openrouter
  model: google/gemini-3-flash-preview
  model_large: anthropic/claude-opus-4.5
  api_key_env: OPENROUTER_API_KEY
  large_model_threshold: 1000

# 压缩前的预处理（仅 Claude 会话）：按 Turn 位置移除工具调用和 thinking 块
removal:
  tool_removal: 0
  tool_mode: remove
  thinking_removal: 0

audit:
  enabled: false
  directory: .context_compactor/audit

tracing_enabled: false
"""
