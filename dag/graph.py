"""
TaskDAG - the aggregate of tasks waiting to execute.
TaskDAG —— 等待执行的任务集合。

The TaskDAG holds:
  - tasks: ordered (Task, raw config) pairs not yet executed
  - completed: tasks that already ran, kept for inspection after a run
  - the set of every name ever registered (names are never reused)

TaskDAG 包含：
  - tasks:     尚未执行的 (Task, 原始配置) 有序列表
  - completed: 已执行的任务，运行结束（包括失败）后仍可供调用方查看
  - 所有注册过的任务名集合（任务名永不复用）

Dependencies are not stored as edges: they are implied by which Product each
Requirement is bound to. Key operations:
  - pop_ready_tasks(): remove and return every task whose requirements exist
  - topological_sort(): Kahn's algorithm over the implied edges
  - find_cycle(): tasks that sit on (or between) dependency cycles

依赖关系不以边的形式存储，而是由每个 Requirement 绑定到哪个 Product 隐式决定。
核心操作：
  - pop_ready_tasks():   取出所有 Requirement 均已存在的任务
  - topological_sort():  基于隐式依赖边的 Kahn 算法
  - find_cycle():        位于依赖环上（或夹在环之间）的任务
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterator

from dag.errors import ConfigurationError
from dag.task import Task
from schema import TaskStatus

logger = logging.getLogger(__name__)


class TaskDAG:
    """
    Ordered collection of pending tasks plus the raw config each was built from.
    待执行任务的有序集合，同时保存每个任务的原始配置（供依赖解析使用）。
    """

    def __init__(self) -> None:
        self.tasks: list[tuple[Task, dict[str, Any]]] = []  # 待执行任务及其原始配置（含 using）
        self.completed: list[Task] = []                     # 已执行完成的任务
        self._names: set[str] = set()                       # 所有注册过的任务名
        self._late: list[Task] = []                         # 执行期间动态追加、尚未解析依赖的任务
        self.executing = False

    def __len__(self) -> int:
        return len(self.tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter([task for task, _ in self.tasks])

    # ------------------------------------------------------------------
    # Registration
    # 任务注册
    # ------------------------------------------------------------------

    def add_task(self, task: Task, config: dict[str, Any] | None = None) -> None:
        """
        Append a task to the pending list.
        向待执行列表追加一个任务。

        May be called from inside a running task's run(); such tasks have
        their requirements resolved at the start of the next round.
        可以在任务的 run() 内部调用；这样追加的任务会在下一轮开始时解析依赖。
        """
        if task.name in self._names:
            raise ConfigurationError(f"More than one task with name {task.name}", task=task.name)
        self._names.add(task.name)
        self.tasks.append((task, dict(config or {})))
        if self.executing:
            self._late.append(task)
            logger.info("[DAG] Dynamic task added: %s (%s)", task.name, task.type)

    def has_name(self, name: str) -> bool:
        return name in self._names

    def take_late_tasks(self) -> list[Task]:
        late, self._late = self._late, []
        return late

    # ------------------------------------------------------------------
    # Queries
    # 查询
    # ------------------------------------------------------------------

    @property
    def pending(self) -> list[Task]:
        return [task for task, _ in self.tasks]

    def pending_names(self) -> list[str]:
        return [task.name for task, _ in self.tasks]

    def config_of(self, task: Task) -> dict[str, Any]:
        for t, config in self.tasks:
            if t is task:
                return config
        return {}

    def find_task(self, name: str) -> Task | None:
        """Pending or completed task with exactly this name."""
        for task, _ in self.tasks:
            if task.name == name:
                return task
        for task in self.completed:
            if task.name == name:
                return task
        return None

    def all_tasks(self) -> list[Task]:
        return self.completed + self.pending

    # ------------------------------------------------------------------
    # Execution bookkeeping
    # 执行过程中的簿记
    # ------------------------------------------------------------------

    def pop_ready_tasks(self) -> list[Task]:
        """
        Remove and return every pending task whose requirements all exist,
        preserving discovery order.
        取出所有 Requirement 均已存在的待执行任务（保持发现顺序），并将其移出待执行列表。

        Nothing here looks at a precomputed order: readiness is discovered by
        scanning the current state of every binding.
        这里不查询任何预先计算好的执行顺序，而是在运行时扫描所有绑定的当前状态来发现就绪任务。
        """
        ready: list[Task] = []
        remaining: list[tuple[Task, dict[str, Any]]] = []
        for task, config in self.tasks:
            if task.is_ready():
                ready.append(task)
            else:
                remaining.append((task, config))
        self.tasks = remaining
        return ready

    def mark_completed(self, task: Task) -> None:
        self.completed.append(task)

    def close(self) -> None:
        """
        Tear down: drop every task that never executed.
        销毁 DAG：丢弃所有从未执行的任务。
        """
        for task, _ in self.tasks:
            if task.status in (TaskStatus.PENDING, TaskStatus.READY):
                task.status = TaskStatus.DISCARDED
                logger.debug("[DAG] Task %s discarded at teardown", task.name)
        self.tasks = []
        self._late = []

    # ------------------------------------------------------------------
    # Graph algorithms
    # 图算法
    # ------------------------------------------------------------------

    def dependency_edges(self) -> list[tuple[str, str]]:
        """
        (producer, consumer) task-name pairs implied by requirement bindings.
        由 Requirement 绑定关系推导出的 (生产者, 消费者) 任务名对。
        字面量 Product 没有所属任务，不产生边。
        """
        known = {task.name for task in self.all_tasks()}
        edges: list[tuple[str, str]] = []
        for task in self.all_tasks():
            for req in task.requirements():
                if req.product is None or req.product.task is None:
                    continue
                if req.product.task not in known:
                    continue
                edge = (req.product.task, task.name)
                if edge not in edges:
                    edges.append(edge)
        return edges

    def topological_sort(self) -> list[str]:
        """
        Kahn's algorithm — returns task names in a valid execution order.
        Kahn 算法 —— 返回任务名的合法拓扑执行顺序。
        保证每个任务出现在其所有上游生产者之后；存在环时结果不完整。
        """
        names = [task.name for task in self.all_tasks()]
        edges = self.dependency_edges()

        # 统计每个任务的入度（有多少上游任务为它提供 Product）
        in_degree: dict[str, int] = {name: 0 for name in names}
        for _, consumer in edges:
            in_degree[consumer] += 1

        # 将入度为 0 的任务（无上游依赖）加入队列
        queue = deque(name for name in names if in_degree[name] == 0)
        result: list[str] = []

        while queue:
            name = queue.popleft()
            result.append(name)
            for producer, consumer in edges:
                if producer == name:
                    in_degree[consumer] -= 1
                    if in_degree[consumer] == 0:
                        queue.append(consumer)

        if len(result) != len(names):
            logger.warning("[DAG] Cycle detected! Topological sort incomplete.")
        return result

    def find_cycle(self) -> list[str]:
        """
        Names of tasks on a dependency cycle (empty when acyclic).
        返回位于依赖环上的任务名（无环时为空列表）。

        The tasks left over by Kahn's algorithm are those on a cycle plus
        those downstream of one; the downstream ones are peeled off by
        repeatedly dropping tasks that feed nothing else in the residue.
        Kahn 算法剩下的任务 = 环上的任务 + 环下游的任务；
        再反复剔除「在剩余集合中不再为任何任务提供数据」的任务，即可去掉下游部分。
        """
        ordered = set(self.topological_sort())
        residue = [task.name for task in self.all_tasks() if task.name not in ordered]
        if not residue:
            return []

        edges = [(p, c) for p, c in self.dependency_edges() if p in residue and c in residue]
        alive = set(residue)
        changed = True
        while changed:
            changed = False
            for name in list(alive):
                if not any(p == name and c in alive for p, c in edges):
                    alive.discard(name)
                    changed = True
        return [name for name in residue if name in alive]

    # ------------------------------------------------------------------
    # Display helpers
    # 展示辅助方法
    # ------------------------------------------------------------------

    def summary(self) -> str:
        """
        One-line summary for logging.
        生成单行状态摘要，用于日志输出，如：DAG[5 tasks: 2 succeeded, 3 pending]
        """
        status_counts: dict[str, int] = {}
        for task in self.all_tasks():
            status_counts[task.status.value] = status_counts.get(task.status.value, 0) + 1
        parts = [f"{v} {k}" for k, v in status_counts.items()]
        return f"DAG[{len(self.completed) + len(self.tasks)} tasks: {', '.join(parts)}]"
