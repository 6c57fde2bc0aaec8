"""
Task scheduler - command-line entry point.
任务调度器 —— 命令行入口。

Reads an input file, builds the task DAG, resolves requirements and executes
the tasks, with a rich console UI showing each round of execution.
读取输入文件，构建任务 DAG，解析依赖并执行任务；
通过 Rich 控制台 UI 实时展示每一轮的执行情况。

Usage / 用法:
    python main.py input.yaml            # 解析并执行
    python main.py input.yaml --plan     # 只解析依赖并展示 DAG，不执行
    python main.py input.yaml -v         # 启用调试日志
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

import config
from dag.errors import SchedulerError
from dag.executor import DAGExecutor, ExecutionContext
from dag.graph import TaskDAG
from dag.parser import build_dag, load_input
from dag.resolver import RequirementResolver
from dag.task import Task
from schema import TaskResult
from tasks import default_registry

console = Console()

# Status -> Rich style mapping
# 任务状态 -> Rich 样式映射
_STATUS_STYLES = {
    "pending": "dim",
    "ready": "yellow",
    "running": "bold yellow",
    "succeeded": "green",
    "failed": "red",
    "discarded": "dim strike",
}


# ======================================================================
# DAG Tree Visualization
# DAG 树形可视化
# ======================================================================

def _task_label(task: Task) -> str:
    style = _STATUS_STYLES.get(task.status.value, "white")
    return f"[cyan]{task.name}[/cyan] [dim]{task.type}[/dim] [{style}]({task.status.value})[/{style}]"


def _build_dag_tree(dag: TaskDAG) -> Tree:
    """
    Build a Rich Tree: sections > tasks > products > requirements.
    构建 Rich Tree：section > 任务 > Product > Requirement（附带绑定来源）。
    """
    tree = Tree("[bold]Task DAG[/bold]")
    branches: dict[str, Tree] = {"": tree}

    def branch_for(context: str) -> Tree:
        # 按层级前缀逐级创建 section 分支
        if context not in branches:
            parent_context = context[:-1].rpartition(".")[0]
            parent_context = parent_context + "." if parent_context else ""
            label = context[len(parent_context):-1]
            branches[context] = branch_for(parent_context).add(f"[magenta]section {label}[/magenta]")
        return branches[context]

    for task in dag.all_tasks():
        task_branch = branch_for(task.context).add(_task_label(task))
        for product in task.products:
            used = "" if product.used else " [dim](unused)[/dim]"
            product_branch = task_branch.add(f"[white]{product.name}[/white]: {product.type}{used}")
            for req in product.requirements:
                source = req.product.qualified_name if req.product is not None else "[red]unbound[/red]"
                product_branch.add(f"[dim]needs[/dim] {req.name}: {req.type} [dim]<-[/dim] {source}")

    return tree


# ======================================================================
# UI Event Handler - Pretty-prints executor events
# UI 事件处理器 —— 美化打印执行引擎事件
# ======================================================================

def on_event(event: str, data: Any) -> None:
    """
    Handle events from the DAGExecutor and display them.
    处理来自 DAGExecutor 的事件并在控制台展示。
    """

    if event == "resolved":
        dag: TaskDAG = data
        console.print(Panel(_build_dag_tree(dag), title="[bold magenta]Resolved DAG[/bold magenta]", border_style="magenta"))
        console.print(f"  [dim]{dag.summary()}[/dim]")

    elif event == "round":
        tasks = data["tasks"]
        console.print(
            f"\n  [bold yellow]--- Round {data['round']} ---[/bold yellow] "
            f"{len(tasks)} ready: [cyan]{', '.join(tasks)}[/cyan]"
        )

    elif event == "task_start":
        task: Task = data["task"]
        console.print(f"    [yellow]>> {task.name}[/yellow] [dim]({task.type})[/dim]")

    elif event == "task_completed":
        result: TaskResult = data["result"]
        console.print(f"    [green]<< {result.task} succeeded[/green] [dim]in {result.seconds:.3f} s[/dim]")
        if result.missing_products:
            console.print(f"      [red]missing products: {', '.join(result.missing_products)}[/red]")

    elif event == "task_failed":
        result: TaskResult = data["result"]
        console.print(f"    [red]<< {result.task} FAILED[/red]")
        console.print(Panel(result.error or "", title=f"{result.task} Error", border_style="red"))

    elif event == "task_discarded":
        task: Task = data["task"]
        console.print(f"    [dim strike]{task.name}[/dim strike] [dim]discarded[/dim]")

    elif event == "tasks_added":
        console.print(f"    [magenta]+ tasks added: {', '.join(data['tasks'])}[/magenta]")

    elif event == "deadlock":
        message = "Pending: " + ", ".join(data["pending"])
        if data["cycle"]:
            message += "\nCycle: " + " -> ".join(data["cycle"])
        console.print(Panel(message, title="[bold red]Deadlock[/bold red]", border_style="red"))

    elif event == "task_transition":
        pass  # 状态转移已由 task_start/completed/failed 事件隐式展示


def _results_table(results: list[TaskResult]) -> Table:
    table = Table(title="Task Results", border_style="cyan")
    table.add_column("Round", style="cyan", width=6)
    table.add_column("Task", style="white")
    table.add_column("Type", style="dim")
    table.add_column("Status", width=10)
    table.add_column("Time (s)", justify="right")
    table.add_column("Gflops/s", justify="right")
    for r in results:
        status = "[green]ok[/green]" if r.success else "[red]failed[/red]"
        table.add_row(
            str(r.round), r.task, r.type, status,
            f"{r.seconds:.{config.TIMING_PRECISION}f}", f"{r.gflops:.{config.TIMING_PRECISION}f}",
        )
    return table


# ======================================================================
# Main
# 主函数
# ======================================================================

def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging with rich handler.
    使用 Rich 处理器配置日志系统。verbose=True 时启用 DEBUG 级别。
    """
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def run_file(path: str, plan_only: bool = False) -> int:
    """
    Parse, resolve and (unless plan_only) execute one input file.
    解析、解析依赖并（非 plan_only 时）执行一个输入文件。返回进程退出码。
    """
    try:
        dag = build_dag(load_input(path), default_registry())
        if plan_only:
            resolver = RequirementResolver(dag)
            resolver.resolve_or_raise()
            resolver.check_cycles()
            console.print(Panel(_build_dag_tree(dag), title="[bold magenta]Task DAG[/bold magenta]", border_style="magenta"))
            order = dag.topological_sort()
            console.print(f"  [dim]Execution order: {' -> '.join(order)}[/dim]")
            return 0

        results = DAGExecutor(on_event=on_event).execute(dag, ExecutionContext())
    except SchedulerError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        return 1

    console.print()
    console.print(_results_table(results))
    console.print(f"[bold green]All {len(results)} task(s) executed.[/bold green]")
    return 0


def main() -> None:
    """
    程序入口：解析命令行参数，决定运行模式。
    - 位置参数：输入文件路径（必需）
    - --plan：只展示解析后的 DAG
    - -v / --verbose：启用调试日志
    """
    verbose = "--verbose" in sys.argv or "-v" in sys.argv
    plan_only = "--plan" in sys.argv
    setup_logging(verbose)

    # 过滤掉以 - 开头的选项参数，保留位置参数
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    if len(args) != 1:
        console.print("[bold]Usage:[/bold] python main.py <input.yaml|input.json> [--plan] [-v]")
        sys.exit(2)

    sys.exit(run_file(args[0], plan_only=plan_only))


if __name__ == "__main__":
    main()
