"""
Requirement Resolver - binds every Requirement of every task to a Product.
依赖解析器 —— 把每个任务的每个 Requirement 绑定到某个 Product。

Two phases, always in this order:
两个阶段，始终按此顺序执行：

  Phase A (explicit): `using` directives from each task's raw config.
      Literal directives synthesise a scalar product; references name a
      product on another task, relative to the referencing task's context.
  阶段 A（显式）：处理每个任务原始配置中的 `using` 指令。
      字面量指令合成一个标量 Product；引用指令指向另一个任务的 Product（相对于当前任务的上下文）。

  Phase B (greedy): every requirement still unbound is matched by type
      against the products of tasks in the same scope or an enclosing one,
      in task order then product order. A requirement may also reuse the
      binding of an already-bound requirement of matching type.
  阶段 B（贪心）：仍未绑定的 Requirement 按类型匹配同级或上层作用域任务的 Product，
      按任务顺序、再按 Product 顺序扫描；也可以复用某个已绑定同类型 Requirement 的绑定（传递绑定）。

Offences are collected as ResolutionIssue records rather than raised one by
one; any issue is fatal for the run.
错误以 ResolutionIssue 记录的形式收集，而不是逐个抛出；任何一条都会阻止执行。
"""

from __future__ import annotations

import logging
from typing import Iterable

import config
from dag.bindings import collect_using, consume_directive, parse_directive, resolve_task_reference
from dag.errors import ConfigurationError, ResolutionError
from dag.graph import TaskDAG
from dag.products import SCALAR_TYPE, Product, Requirement, literal_product
from dag.task import Task
from schema import BindingDirective, LiteralBinding, ResolutionIssue

logger = logging.getLogger(__name__)


class RequirementResolver:
    """
    Resolves requirements of the tasks in a TaskDAG.
    解析 TaskDAG 中各任务的 Requirement。
    """

    def __init__(self, dag: TaskDAG):
        self._dag = dag

    # ------------------------------------------------------------------
    # Entry points
    # 入口
    # ------------------------------------------------------------------

    def resolve(
        self,
        tasks: Iterable[Task] | None = None,
        candidates: Iterable[Task] | None = None,
    ) -> list[ResolutionIssue]:
        """
        Run both phases and return the issues found (empty on success).
        依次执行两个阶段，返回发现的错误列表（成功时为空）。

        Args:
            tasks:      tasks whose requirements should be bound (default: all pending)
            candidates: tasks that may provide products (default: pending + completed)
            tasks:      需要绑定 Requirement 的任务（默认：所有待执行任务）
            candidates: 可以提供 Product 的任务（默认：待执行 + 已完成任务）
        """
        tasks = list(tasks) if tasks is not None else self._dag.pending
        candidates = list(candidates) if candidates is not None else self._dag.all_tasks()

        issues = self._satisfy_explicit(tasks, candidates)
        if not issues:
            issues = self._satisfy_remaining(tasks, candidates)

        for issue in issues:
            logger.error("[Resolver] %s", issue.message)
        if not issues:
            logger.info("[Resolver] All requirements of %d task(s) resolved", len(tasks))
        return issues

    def resolve_or_raise(self, tasks: Iterable[Task] | None = None, candidates: Iterable[Task] | None = None) -> None:
        issues = self.resolve(tasks, candidates)
        if issues:
            raise ResolutionError(issues)

    def check_cycles(self) -> list[str]:
        """
        Optional hardening on top of deadlock detection.
        在死锁检测之外的可选加固检查。
        默认只告警；FAIL_ON_CYCLE 打开时直接报错，不执行任何任务。
        """
        if not config.CHECK_CYCLES:
            return []
        cycle = self._dag.find_cycle()
        if cycle:
            message = "Dependency cycle among tasks: " + ", ".join(cycle)
            if config.FAIL_ON_CYCLE:
                raise ResolutionError([ResolutionIssue(message=message, task=cycle[0])])
            logger.warning("[Resolver] %s", message)
        return cycle

    # ------------------------------------------------------------------
    # Phase A: explicit bindings
    # 阶段 A：显式绑定
    # ------------------------------------------------------------------

    def _satisfy_explicit(self, tasks: list[Task], candidates: list[Task]) -> list[ResolutionIssue]:
        issues: list[ResolutionIssue] = []

        for task in tasks:
            raw = self._dag.config_of(task)
            try:
                usings = collect_using(raw)
            except ConfigurationError as exc:
                issues.append(ResolutionIssue(message=f"{exc.message} (task {task.name})", task=task.name))
                continue

            for req_name, raw_directive in usings.items():
                # 收集该任务所有 Product 上同名且尚未绑定的 Requirement
                reqs = [r for r in task.requirements() if r.name == req_name and not r.is_fulfilled()]
                if not reqs:
                    issues.append(ResolutionIssue(
                        message=f"No requirement {req_name} found on task {task.name}",
                        task=task.name, requirement=req_name,
                    ))
                    continue
                if len({r.type for r in reqs}) > 1:
                    issues.append(ResolutionIssue(
                        message=f"Multiple requirements named {req_name} with different types on task {task.name}",
                        task=task.name, requirement=req_name,
                    ))
                    continue

                try:
                    directive = parse_directive(req_name, raw_directive)
                except ConfigurationError as exc:
                    issues.append(ResolutionIssue(
                        message=f"{exc.message} (task {task.name})", task=task.name, requirement=req_name,
                    ))
                    continue

                fulfiller = self._explicit_fulfiller(task, reqs[0], directive, candidates, issues)
                if fulfiller is None:
                    continue

                for req in reqs:
                    req.fulfil(fulfiller)
                logger.debug("[Resolver] %s.%s <- %s (explicit)", task.name, req_name, fulfiller.qualified_name)
                consume_directive(raw, req_name)

        return issues

    def _explicit_fulfiller(
        self,
        task: Task,
        req: Requirement,
        directive: BindingDirective,
        candidates: list[Task],
        issues: list[ResolutionIssue],
    ) -> Product | None:
        if isinstance(directive, LiteralBinding):
            if req.type != SCALAR_TYPE:
                issues.append(ResolutionIssue(
                    message=(
                        f"Attempting to specify non-scalar requirement {req.name} of task "
                        f"{task.name} by value"
                    ),
                    task=task.name, requirement=req.name,
                ))
                return None
            return literal_product(req.name, directive.value)

        target_name = resolve_task_reference(directive.task, task.context)
        target = next((t for t in candidates if t.name == target_name), None)
        if target is None:
            issues.append(ResolutionIssue(
                message=f"Task {target_name} not found (requirement {req.name} of task {task.name})",
                task=task.name, requirement=req.name,
            ))
            return None

        product = next((p for p in target.products if p.name == directive.product), None)
        if product is None:
            issues.append(ResolutionIssue(
                message=f"Product {directive.product} not found on task {target_name}",
                task=task.name, requirement=req.name,
            ))
            return None
        if product.type != req.type:
            issues.append(ResolutionIssue(
                message=(
                    f"Product {target_name}.{directive.product} is wrong type ({product.type}) "
                    f"for requirement {task.name}.{req.name} ({req.type})"
                ),
                task=task.name, requirement=req.name,
            ))
            return None
        return product

    # ------------------------------------------------------------------
    # Phase B: greedy inference
    # 阶段 B：贪心推断
    # ------------------------------------------------------------------

    def _satisfy_remaining(self, tasks: list[Task], candidates: list[Task]) -> list[ResolutionIssue]:
        issues: list[ResolutionIssue] = []

        for t1 in tasks:
            context1 = t1.context
            for r1 in t1.requirements():
                if r1.is_fulfilled():
                    continue

                if r1.type == SCALAR_TYPE:
                    issues.append(ResolutionIssue(
                        message=(
                            f"Scalar requirements must be explicitly fulfilled "
                            f"(requirement {r1.name} of task {t1.name})"
                        ),
                        task=t1.name, requirement=r1.name,
                    ))
                    continue

                for t2 in candidates:
                    if t2 is t1:
                        continue
                    # 只在同级或上层作用域中查找，绝不绑定到更深层的任务
                    if not context1.startswith(t2.context):
                        continue
                    if self._match_in_task(r1, t2):
                        logger.debug(
                            "[Resolver] %s.%s <- %s (greedy)",
                            t1.name, r1.name, r1.get().qualified_name,
                        )
                        break

                if not r1.is_fulfilled():
                    issues.append(ResolutionIssue(
                        message=f"Could not fulfil requirement {r1.name} of task {t1.name}",
                        task=t1.name, requirement=r1.name,
                    ))

        return issues

    @staticmethod
    def _match_in_task(r1: Requirement, t2: Task) -> bool:
        for p2 in t2.products:
            # 直接匹配：类型相同的 Product
            if r1.type == p2.type:
                r1.fulfil(p2)
                return True
            # 传递绑定：复用 p2 上某个已绑定同类型 Requirement 的 Product
            for r2 in p2.requirements:
                if r2.is_fulfilled() and r2.type == r1.type:
                    r1.fulfil(r2.get())
                    return True
        return False
