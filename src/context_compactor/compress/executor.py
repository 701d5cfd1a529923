"""
批量执行器 — 有界并发 + 超时递增重试。

调度模型是一个大小为 ``concurrency`` 的工作池：
- 所有 pending 任务进入同一个 asyncio.Queue，工作者从中取任务
- 任务独立完成、乱序完成；对账按 unit_index 进行，不依赖完成顺序
- 一次尝试失败（超时或 Provider 抛异常）后，若未达上限，
  任务带着放大后的超时重新入队；达到上限则标记 failed
- 同步 Provider 在本次运行专属的线程池里执行，线程数等于工作者数；
  超时的线程结束前，占用它的工作者不会去取下一个任务

# [Design Decision] 重试是显式的状态机（pending → running → success /
# retrying → running / failed），由工作池驱动，而不是递归回调。
# 每次尝试的超时和结果都记录在 task.attempts 里，方便审计。

⚠️ 单个任务失败永远不会中断其它任务，也不会以异常形式抛给调用方。
只有非法配置（例如 concurrency <= 0）会让 execute() 抛出异常。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from context_compactor.compress.base import SummarizationProvider
from context_compactor.compress.tasks import AttemptRecord, CompressionTask, TaskStatus
from context_compactor.config.schema import EngineConfig
from context_compactor.errors import ConfigValidationError
from context_compactor.observability.tracing import NOOP_TRACING, TracingMiddleware

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "cancelled"


def validate_engine_config(config: EngineConfig) -> None:
    """
    校验执行器依赖的配置项。

    EngineConfig 在构造时已由 Pydantic 校验，这里再检查一次，
    覆盖通过 model_construct() 或事后赋值绕过校验的情况。

    抛出:
        ConfigValidationError: 任一配置项非法
    """
    problems: list[tuple[str, str]] = []
    if not isinstance(config.concurrency, int) or config.concurrency <= 0:
        problems.append(("engine.concurrency", f"concurrency={config.concurrency!r}，必须为正整数"))
    if not isinstance(config.max_attempts, int) or config.max_attempts < 1:
        problems.append(("engine.max_attempts", f"max_attempts={config.max_attempts!r}，必须 >= 1"))
    if config.timeout_initial_ms <= 0:
        problems.append(
            ("engine.timeout_initial_ms", f"timeout_initial_ms={config.timeout_initial_ms!r}，必须为正数")
        )
    if config.timeout_increment < 1.0:
        problems.append(
            ("engine.timeout_increment", f"timeout_increment={config.timeout_increment!r}，必须 >= 1.0")
        )
    if config.min_tokens < 0:
        problems.append(("engine.min_tokens", f"min_tokens={config.min_tokens!r}，不能为负数"))

    if problems:
        raise ConfigValidationError(
            what=f"引擎配置校验失败（{len(problems)} 个错误）。",
            why="；".join(message for _, message in problems),
            how="请修正 engine 配置段后重试。",
            field_path=problems[0][0],
        )


class BatchExecutor:
    """
    有界并发的压缩任务执行器。

    基本用法::

        executor = BatchExecutor(EngineConfig(concurrency=5, max_attempts=3))
        await executor.execute(tasks, provider)
        # tasks 中的每个任务都已进入终态：success / skipped / failed

    属性:
        config: 引擎配置（并发、超时、重试）
    """

    def __init__(
        self,
        config: EngineConfig,
        tracing: TracingMiddleware | None = None,
    ) -> None:
        """
        初始化执行器。

        参数:
            config: 引擎配置
            tracing: 可选的追踪中间件

        抛出:
            ConfigValidationError: 配置非法
        """
        validate_engine_config(config)
        self.config = config
        self._tracing = tracing or NOOP_TRACING

    async def execute(
        self,
        tasks: Sequence[CompressionTask],
        provider: SummarizationProvider,
        cancel_event: asyncio.Event | None = None,
    ) -> list[CompressionTask]:
        """
        执行全部 pending 任务，等待所有任务进入终态后返回。

        skipped 任务原样透传；返回的是同一批任务对象（已被原地修改）。

        参数:
            tasks: 任务列表
            provider: 摘要 Provider
            cancel_event: 可选的协作式取消信号。置位后不再派发新的尝试，
                尚未完成的任务标记为 failed（error="cancelled"）

        返回:
            与输入相同的任务列表
        """
        pending = [task for task in tasks if task.status is TaskStatus.PENDING]
        if not pending:
            return list(tasks)

        queue: asyncio.Queue[CompressionTask] = asyncio.Queue()
        for task in pending:
            task.timeout_ms = self.config.timeout_for_attempt(task.attempt)
            queue.put_nowait(task)

        worker_count = min(self.config.concurrency, len(pending))
        logger.info(
            f"开始执行 {len(pending)} 个压缩任务，并发数 {worker_count}，"
            f"最多尝试 {self.config.max_attempts} 次。"
        )

        pool = None
        if not _is_async_provider(provider):
            pool = ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="compress-provider")

        started = time.perf_counter()
        workers = [
            asyncio.create_task(
                self._worker(queue, provider, cancel_event, pool),
                name=f"compress-worker-{i}",
            )
            for i in range(worker_count)
        ]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            if pool is not None:
                pool.shutdown(wait=False, cancel_futures=True)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        succeeded = sum(1 for task in pending if task.status is TaskStatus.SUCCESS)
        logger.info(
            f"压缩任务完成：{succeeded}/{len(pending)} 成功，"
            f"{len(pending) - succeeded} 失败，耗时 {elapsed_ms}ms。"
        )
        return list(tasks)

    async def _worker(
        self,
        queue: asyncio.Queue[CompressionTask],
        provider: SummarizationProvider,
        cancel_event: asyncio.Event | None,
        pool: ThreadPoolExecutor | None,
    ) -> None:
        """工作者循环：取任务 → 执行一次尝试 → 需要重试则重新入队。"""
        while True:
            task = await queue.get()
            try:
                if cancel_event is not None and cancel_event.is_set():
                    self._mark_cancelled(task)
                    continue

                await self._run_attempt(task, provider, pool)
                if task.status is TaskStatus.RETRYING:
                    # 先入队再 task_done，保证 queue.join() 不会提前返回
                    queue.put_nowait(task)
            finally:
                queue.task_done()

    async def _run_attempt(
        self,
        task: CompressionTask,
        provider: SummarizationProvider,
        pool: ThreadPoolExecutor | None,
    ) -> None:
        """执行一次尝试，并推进任务状态。"""
        timeout_ms = self.config.timeout_for_attempt(task.attempt)
        task.timeout_ms = timeout_ms
        task.status = TaskStatus.RUNNING

        logger.debug(
            f"任务 #{task.unit_index} 第 {task.attempt + 1} 次尝试，超时 {timeout_ms}ms。"
        )

        error: str | None = None
        outcome = "error"
        result: str | None = None
        call: asyncio.Future | None = None
        started = time.perf_counter()
        try:
            async with self._tracing.trace_attempt(task.unit_index, task.attempt, timeout_ms):
                call = _start_call(provider, task, pool)
                done, _ = await asyncio.wait({call}, timeout=timeout_ms / 1000)
                if not done:
                    raise asyncio.TimeoutError()
                result = call.result()
                if inspect.isawaitable(result):
                    result = await result
        except asyncio.TimeoutError:
            error = f"Compression timeout after {timeout_ms}ms"
            outcome = "timeout"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        if error is None and not isinstance(result, str):
            error = f"Provider 返回了非字符串结果（{type(result).__name__}）"

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        task.duration_ms = (task.duration_ms or 0) + elapsed_ms

        if error is None:
            task.attempts.append(AttemptRecord(task.attempt, timeout_ms, "success", None, elapsed_ms))
            task.status = TaskStatus.SUCCESS
            task.result = result
            task.error = None
            return

        task.attempts.append(AttemptRecord(task.attempt, timeout_ms, outcome, error, elapsed_ms))
        task.attempt += 1
        task.error = error

        if task.attempt < self.config.max_attempts:
            task.status = TaskStatus.RETRYING
            logger.debug(
                f"任务 #{task.unit_index} 第 {task.attempt} 次尝试失败：{error}，"
                f"将以 {self.config.timeout_for_attempt(task.attempt)}ms 超时重试。"
            )
        else:
            task.status = TaskStatus.FAILED
            logger.warning(
                f"任务 #{task.unit_index} 在 {task.attempt} 次尝试后仍然失败：{error}。"
                "保留原文。"
            )

        if call is not None and not call.done():
            await _drain_call(call, task)

    def _mark_cancelled(self, task: CompressionTask) -> None:
        task.status = TaskStatus.FAILED
        task.error = CANCELLED_ERROR
        logger.info(f"任务 #{task.unit_index} 因取消信号未执行，保留原文。")


def _is_async_provider(provider: SummarizationProvider) -> bool:
    return inspect.iscoroutinefunction(provider.compress)


def _start_call(
    provider: SummarizationProvider,
    task: CompressionTask,
    pool: ThreadPoolExecutor | None,
) -> asyncio.Future:
    """
    发起一次 Provider 调用。异步实现包装成 asyncio.Task，同步实现提交到本次运行的线程池。

    # [Design Decision] 同步调用超时后线程无法被中断。线程池大小等于工作者数，
    # 并且工作者会等到超时的线程真正结束才去取下一个任务，
    # 所以同时在途的 Provider 调用永远不超过 concurrency。
    """
    compress = provider.compress
    if pool is None:
        return asyncio.ensure_future(compress(task.original_text, task.level))
    loop = asyncio.get_running_loop()
    return loop.run_in_executor(pool, compress, task.original_text, task.level)


async def _drain_call(call: asyncio.Future, task: CompressionTask) -> None:
    """超时后等待被放弃的调用结束，结果丢弃。"""
    if isinstance(call, asyncio.Task):
        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        return
    try:
        await asyncio.shield(call)
    except Exception as e:
        logger.debug(f"任务 #{task.unit_index} 超时后的调用以异常结束：{type(e).__name__}: {e}")
    else:
        logger.debug(f"任务 #{task.unit_index} 超时后的调用已结束，结果丢弃。")


async def execute_tasks(
    tasks: Sequence[CompressionTask],
    provider: SummarizationProvider,
    config: EngineConfig,
    cancel_event: asyncio.Event | None = None,
    tracing: TracingMiddleware | None = None,
) -> list[CompressionTask]:
    """BatchExecutor 的函数式入口。"""
    executor = BatchExecutor(config, tracing=tracing)
    return await executor.execute(tasks, provider, cancel_event=cancel_event)
