"""
DAG Executor - Executes a TaskDAG round by round.
DAG 执行引擎 —— 按轮次执行 TaskDAG。

Each iteration of the main loop is one "round":
  1. Resolve requirements of tasks appended during the previous round
  2. Find every pending task whose requirements all exist (the batch)
  3. Stop if the batch is empty; leftover pending tasks mean deadlock
  4. Run the batch strictly one task at a time, in discovery order
  5. On the first failure, discard the rest of the batch and abort

主循环的每次迭代就是一「轮」：
  1. 解析上一轮中动态追加任务的依赖
  2. 找出所有 Requirement 均已存在的待执行任务（本轮批次）
  3. 批次为空则停止；若仍有待执行任务则判定为死锁
  4. 严格按发现顺序逐个执行批次中的任务（不并行）
  5. 遇到第一个失败即丢弃本批次剩余任务并中止整个 DAG

A task can only depend on products made in a strictly earlier round: readiness
is evaluated once per round, before any task of the batch runs.
任务只能依赖更早轮次产出的 Product：就绪判断在每轮开始、批次中任何任务运行之前完成。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import config
from dag.errors import DeadlockError, TaskExecutionError
from dag.graph import TaskDAG
from dag.resolver import RequirementResolver
from dag.state_machine import TaskStateMachine
from dag.task import Task
from schema import TaskResult, TaskStatus

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """
    Handed to every Task.run(). Tasks report work done via add_flops().
    传给每个 Task.run() 的执行上下文；任务通过 add_flops() 上报计算量，用于吞吐量统计。
    """
    rank: int = 0      # 进程编号（仅作信息用途）
    size: int = 1      # 进程总数（仅作信息用途）
    flops: float = 0.0

    def add_flops(self, n: float) -> None:
        self.flops += n

    def reset_flops(self) -> None:
        self.flops = 0.0


class DAGExecutor:
    """
    Resolves and then executes a TaskDAG.
    解析并执行 TaskDAG。

    Events passed to `on_event(name, data)`:
      resolved, round, task_start, task_completed, task_failed,
      task_discarded, task_transition, tasks_added, deadlock
    """

    def __init__(self, on_event: Callable[[str, Any], None] | None = None):
        self._on_event = on_event
        self._sm = TaskStateMachine(on_transition=self._on_task_transition)

    # ------------------------------------------------------------------
    # Main execution loop
    # 主执行循环
    # ------------------------------------------------------------------

    def execute(self, dag: TaskDAG, context: ExecutionContext | None = None) -> list[TaskResult]:
        """
        Resolve every requirement, then run tasks until none is left.
        先解析所有 Requirement，再循环执行任务直到全部完成。

        Raises:
            ResolutionError:    requirements could not be bound (nothing ran)
            TaskExecutionError: a task's run() raised (earlier tasks stay in dag.completed)
            DeadlockError:      pending tasks remain that can never become ready
        """
        context = context or ExecutionContext()
        resolver = RequirementResolver(dag)
        resolver.resolve_or_raise()
        resolver.check_cycles()
        self._emit("resolved", dag)

        results: list[TaskResult] = []
        round_no = 0
        dag.executing = True
        try:
            while True:
                late = dag.take_late_tasks()
                if late:
                    self._emit("tasks_added", {"tasks": [t.name for t in late]})
                    resolver.resolve_or_raise(late)

                batch = dag.pop_ready_tasks()
                if not batch:
                    break

                round_no += 1
                for task in batch:
                    self._sm.transition(task, TaskStatus.READY)
                self._emit("round", {"round": round_no, "tasks": [t.name for t in batch]})
                logger.debug("[Executor] Round %d: %s", round_no, ", ".join(t.name for t in batch))

                for i, task in enumerate(batch):
                    result, exc = self._run_task(task, dag, context, round_no)
                    results.append(result)
                    dag.mark_completed(task)
                    if exc is not None:
                        self._discard(batch[i + 1:], dag)
                        raise TaskExecutionError(
                            f"Task {task.name} failed: {result.error}", task=task.name,
                        ) from exc

                logger.info("[Executor] Round %d done. %s", round_no, dag.summary())
        finally:
            dag.executing = False

        if len(dag):
            pending = dag.pending_names()
            cycle = dag.find_cycle()
            self._emit("deadlock", {"pending": pending, "cycle": cycle})
            logger.error("[Executor] Some tasks were not executed: %s", ", ".join(pending))
            raise DeadlockError(pending, cycle)

        return results

    # ------------------------------------------------------------------
    # Task execution
    # 单个任务执行
    # ------------------------------------------------------------------

    def _run_task(
        self, task: Task, dag: TaskDAG, context: ExecutionContext, round_no: int,
    ) -> tuple[TaskResult, Exception | None]:
        precision = config.TIMING_PRECISION
        logger.info("Starting task: %s", task.name)
        self._sm.transition(task, TaskStatus.RUNNING)
        self._emit("task_start", {"task": task, "round": round_no})

        context.reset_flops()
        error: Exception | None = None
        start = time.perf_counter()
        try:
            task.run(dag, context)
        except Exception as exc:
            error = exc
        seconds = time.perf_counter() - start
        gflops = context.flops / seconds / 1e9 if seconds > 0 else 0.0

        logger.info("Finished task: %s in %.*f s", task.name, precision, seconds)
        logger.info("Task: %s achieved %.*f Gflops/sec", task.name, precision, gflops)

        result = TaskResult(
            task=task.name, type=task.type, success=error is None, round=round_no,
            seconds=seconds, gflops=gflops,
        )

        if error is not None:
            result.error = str(error) or error.__class__.__name__
            self._sm.transition(task, TaskStatus.FAILED)
            logger.error("[Executor] Task %s failed: %s", task.name, result.error)
            self._emit("task_failed", {"task": task, "result": result})
            return result, error

        # 被下游使用但未产出的 Product：属于任务作者的错误，只报告不终止
        for product in task.products:
            if product.used and not product.exists():
                logger.error(
                    "Product %s of task %s was not successfully produced", product.name, task.name,
                )
                result.missing_products.append(product.name)

        self._sm.transition(task, TaskStatus.SUCCEEDED)
        self._emit("task_completed", {"task": task, "result": result})
        return result, None

    def _discard(self, tasks: list[Task], dag: TaskDAG) -> None:
        # 已从待执行列表取出的任务记入 completed，保证仍可查找
        for task in tasks:
            self._sm.transition(task, TaskStatus.DISCARDED)
            dag.mark_completed(task)
            logger.warning("[Executor] Task %s discarded without running", task.name)
            self._emit("task_discarded", {"task": task})

    # ------------------------------------------------------------------
    # Event helpers
    # 事件辅助方法
    # ------------------------------------------------------------------

    def _emit(self, event: str, data: Any) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, data)
        except Exception:
            # UI 回调异常不能影响调度主流程
            logger.exception("[Executor] Event handler failed for %s", event)

    def _on_task_transition(self, name: str, old: TaskStatus, new: TaskStatus) -> None:
        self._emit("task_transition", {"task": name, "from": old.value, "to": new.value})
