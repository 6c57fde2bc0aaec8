"""
Task lifecycle - the legal status changes of a task during one execution.
任务生命周期 —— 一次执行过程中任务状态的合法变化。

    pending ─> ready ─> running ─> succeeded
                                └> failed
    pending / ready ─> discarded

A task becomes ready when its round is formed, runs once, and ends in
exactly one terminal status. Discarded tasks never reach run().
任务在所属轮次组建时变为 ready，只运行一次，最终停在唯一的终态上。
被丢弃（discarded）的任务不会进入 run()。
"""

from __future__ import annotations

import logging
from typing import Callable

from dag.task import Task
from schema import TaskStatus

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[str, TaskStatus, TaskStatus], None]


class InvalidTransitionError(Exception):
    """The executor tried to move a task along an edge not in VALID_TRANSITIONS."""


VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING:   frozenset({TaskStatus.READY, TaskStatus.DISCARDED}),
    TaskStatus.READY:     frozenset({TaskStatus.RUNNING, TaskStatus.DISCARDED}),
    TaskStatus.RUNNING:   frozenset({TaskStatus.SUCCEEDED, TaskStatus.FAILED}),
    TaskStatus.SUCCEEDED: frozenset(),
    TaskStatus.FAILED:    frozenset(),
    TaskStatus.DISCARDED: frozenset(),
}


class TaskStateMachine:
    """
    Moves tasks between statuses and notifies an observer.
    负责任务状态切换，并通知观察者（执行引擎借此转发 task_transition 事件）。
    """

    def __init__(self, on_transition: TransitionCallback | None = None):
        self._on_transition = on_transition

    def can_transition(self, task: Task, new_status: TaskStatus) -> bool:
        return new_status in VALID_TRANSITIONS[task.status]

    def transition(self, task: Task, new_status: TaskStatus) -> None:
        old_status = task.status
        if not self.can_transition(task, new_status):
            allowed = ", ".join(sorted(s.value for s in VALID_TRANSITIONS[old_status])) or "none"
            raise InvalidTransitionError(
                f"Task {task.name} cannot go from {old_status.value} to {new_status.value} "
                f"(allowed: {allowed})"
            )

        task.status = new_status
        logger.debug("[Lifecycle] %s %s -> %s", task.name, old_status.value, new_status.value)

        if self._on_transition is None:
            return
        try:
            self._on_transition(task.name, old_status, new_status)
        except Exception:
            # 观察者出错只记录日志，状态已经切换完成
            logger.exception("[Lifecycle] Observer failed on %s", task.name)
