"""
压缩模块 — 上下文压缩引擎。

把一段多轮对话按 Turn 的相对位置划分压缩强度，
对值得压缩的文本 unit 并发调用摘要 Provider，
再把结果写回对话副本，工具调用 / 结果等结构化内容原样保留。

# [DX Decision] 暴露三个层次的 API：
# 1. 高级 API：CompressEngine / run_engine（自动编排）
# 2. 中级 API：BatchExecutor、apply_results、summarize（按需组合）
# 3. 低级 API：map_turns_to_bands、create_tasks、CompressionTask
"""

from context_compactor.compress.base import SummarizationProvider
from context_compactor.compress.engine import (
    CompressEngine,
    EngineResult,
    run_engine,
    run_engine_sync,
    validate_bands,
)
from context_compactor.compress.executor import BatchExecutor, execute_tasks
from context_compactor.compress.mapper import find_overlaps, map_turns_to_bands
from context_compactor.compress.reconciler import apply_results
from context_compactor.compress.stats import EMPTY_STATS, CompressionStats, summarize
from context_compactor.compress.tasks import (
    AttemptRecord,
    CompressionTask,
    TaskRole,
    TaskStatus,
    create_tasks,
    split_unit_index,
    unit_index,
)

__all__ = [
    # 协议
    "SummarizationProvider",
    # 引擎
    "CompressEngine",
    "EngineResult",
    "run_engine",
    "run_engine_sync",
    "validate_bands",
    # 组件
    "map_turns_to_bands",
    "find_overlaps",
    "create_tasks",
    "BatchExecutor",
    "execute_tasks",
    "apply_results",
    "summarize",
    # 数据结构
    "AttemptRecord",
    "CompressionTask",
    "CompressionStats",
    "EMPTY_STATS",
    "TaskRole",
    "TaskStatus",
    "unit_index",
    "split_unit_index",
]
