"""
Context Compactor — 按对话位置分段压缩会话上下文。

长会话的早期轮次离当前任务越远，越适合被压缩成摘要。
Context Compactor 按 Turn 在会话中的相对位置（0-100%）划分压缩区间，
并发调用摘要 Provider 改写文本，工具调用与工具结果原样保留，
最后生成一个新的会话文件和一份压缩统计。

快速上手::

    from context_compactor import CompressEngine, EngineConfig, TruncationProvider
    from context_compactor.adapters import ClaudeSessionAdapter, load_jsonl

    adapter = ClaudeSessionAdapter()
    entries = load_jsonl("session.jsonl")
    engine = CompressEngine(EngineConfig(), TruncationProvider())
    result = await engine.run(
        adapter.extract_turns(entries),
        bands=[{"start": 0, "end": 50, "level": "heavy"}],
    )
    new_entries = adapter.reconstruct(entries, result.conversation)

同步用法::

    result = engine.run_sync(conversation, bands)
"""

from context_compactor.adapters import (
    ClaudeSessionAdapter,
    CopilotSessionAdapter,
    DocumentAdapter,
    get_adapter,
)
from context_compactor.audit import build_audit_report, write_audit_log
from context_compactor.compress import (
    BatchExecutor,
    CompressEngine,
    CompressionStats,
    CompressionTask,
    EngineResult,
    SummarizationProvider,
    TaskStatus,
    apply_results,
    create_tasks,
    map_turns_to_bands,
    run_engine,
    run_engine_sync,
    summarize,
)
from context_compactor.config import EngineConfig, PolicyConfig, ProviderConfig, load_policy
from context_compactor.errors import (
    ConfigValidationError,
    ContextCompactorError,
    ReconciliationError,
)
from context_compactor.models import (
    CompressionBand,
    CompressionLevel,
    Conversation,
    Segment,
    SegmentKind,
    Turn,
    TurnBandMapping,
)
from context_compactor.providers import OpenRouterProvider, TruncationProvider, create_provider

__version__ = "0.1.0"

__all__ = [
    # 引擎
    "CompressEngine",
    "EngineResult",
    "run_engine",
    "run_engine_sync",
    # 组件
    "map_turns_to_bands",
    "create_tasks",
    "BatchExecutor",
    "apply_results",
    "summarize",
    # 数据模型
    "CompressionBand",
    "CompressionLevel",
    "CompressionStats",
    "CompressionTask",
    "Conversation",
    "Segment",
    "SegmentKind",
    "TaskStatus",
    "Turn",
    "TurnBandMapping",
    # 配置
    "EngineConfig",
    "PolicyConfig",
    "ProviderConfig",
    "load_policy",
    # 适配器
    "DocumentAdapter",
    "ClaudeSessionAdapter",
    "CopilotSessionAdapter",
    "get_adapter",
    # Provider
    "SummarizationProvider",
    "OpenRouterProvider",
    "TruncationProvider",
    "create_provider",
    # 审计
    "build_audit_report",
    "write_audit_log",
    # 异常
    "ContextCompactorError",
    "ConfigValidationError",
    "ReconciliationError",
]
