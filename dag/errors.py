"""
Error taxonomy for the scheduler.
调度器的错误类型体系。

Every fatal condition carries a message plus the offending task and/or
requirement name, so callers can report it without parsing strings.
所有致命错误都携带错误信息以及出错的任务名 / Requirement 名，
调用方无需解析字符串即可定位问题。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from schema import ResolutionIssue


class SchedulerError(Exception):
    """
    Base class for all fatal scheduler errors.
    所有致命调度错误的基类。
    """

    def __init__(self, message: str, task: str | None = None, requirement: str | None = None):
        super().__init__(message)
        self.message = message
        self.task = task
        self.requirement = requirement

    def __str__(self) -> str:
        return self.message


class ConfigurationError(SchedulerError):
    """Invalid input: bad names, unknown types, schema violations."""


class BindingError(ConfigurationError):
    """A requirement was bound twice, or read while unbound."""


class ResolutionError(SchedulerError):
    """
    One or more requirements could not be bound.
    一个或多个 Requirement 无法完成绑定。
    """

    def __init__(self, issues: list[ResolutionIssue]):
        self.issues = list(issues)
        lines = [f"{len(self.issues)} unresolved requirement issue(s):"]
        lines.extend(f"  - {issue.message}" for issue in self.issues)
        first = self.issues[0] if self.issues else None
        super().__init__(
            "\n".join(lines),
            task=first.task if first else None,
            requirement=first.requirement if first else None,
        )


class TaskExecutionError(SchedulerError):
    """A task's run() raised; the rest of the DAG was abandoned."""


class DeadlockError(SchedulerError):
    """
    Pending tasks remain but none of them can become ready.
    仍有待执行任务，但没有任何任务能够就绪（未解析的依赖或真实的依赖环）。
    """

    def __init__(self, pending: list[str], cycle: list[str] | None = None):
        self.pending = list(pending)
        self.cycle = list(cycle or [])
        message = "Some tasks were not executed: " + ", ".join(self.pending)
        if self.cycle:
            message += " (dependency cycle among: " + ", ".join(self.cycle) + ")"
        super().__init__(message, task=self.pending[0] if self.pending else None)
