"""
Pydantic data models for the task scheduler.
Defines the records shared by the parser, resolver, executor and CLI.
任务调度器的 Pydantic 数据模型。
定义了贯穿解析器、依赖解析器、执行引擎和命令行的核心数据结构。

Runtime objects that hold references to each other (Task, Product,
Requirement) live in the dag package; this module only holds plain records.
相互引用的运行时对象（Task、Product、Requirement）位于 dag 包中；
本模块只保存纯数据记录。
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


# ======================================================================
# Task lifecycle
# 任务生命周期
# ======================================================================

class TaskStatus(str, Enum):
    """
    Task lifecycle states, managed by TaskStateMachine.
    任务生命周期状态，由 TaskStateMachine 强制管理合法转移。

    Transition graph:
    转移图：
        PENDING -> READY -> RUNNING -> SUCCEEDED
                                    -> FAILED
        PENDING / READY            -> DISCARDED（同批次前序任务失败，或 DAG 被销毁）
    """
    PENDING = "pending"       # 在 DAG 中等待，尚未满足依赖
    READY = "ready"           # 所有 Requirement 均已存在，已进入本轮批次
    RUNNING = "running"       # 正在执行 run()
    SUCCEEDED = "succeeded"   # 成功完成（终态）
    FAILED = "failed"         # run() 抛出异常（终态）
    DISCARDED = "discarded"   # 未执行即被丢弃（终态）


# ======================================================================
# Task configuration schemas
# 任务配置 Schema
# ======================================================================

class TaskConfig(BaseModel):
    """
    Base class for per-type task configuration schemas.
    各任务类型配置 Schema 的基类。

    Unknown keys are rejected so that typos in an input file surface as
    configuration errors instead of being silently ignored.
    未知字段会被拒绝，输入文件中的拼写错误会直接报配置错误，而不是被静默忽略。
    """
    model_config = ConfigDict(extra="forbid")


# ======================================================================
# Binding directives (the `using` block)
# 绑定指令（`using` 配置块）
# ======================================================================

class LiteralBinding(BaseModel):
    """
    `using.<requirement>.= <value>`: bind a scalar requirement to a constant.
    字面量绑定：把标量 Requirement 直接绑定到一个常数。
    """
    requirement: str = Field(description="Requirement name on the consuming task")  # 消费方任务上的 Requirement 名称
    value: float


class ReferenceBinding(BaseModel):
    """
    `using.<requirement>.from = task[:product]`: bind to another task's product.
    引用绑定：把 Requirement 绑定到另一个任务的 Product。
    """
    requirement: str = Field(description="Requirement name on the consuming task")
    task: str = Field(description="Task reference exactly as written (may be relative)")  # 原样保存的任务引用（可能是相对路径）
    product: str = Field(description="Product name on the referenced task")              # 被引用任务上的 Product 名称


BindingDirective = Union[LiteralBinding, ReferenceBinding]


# ======================================================================
# Diagnostics and results
# 诊断与执行结果
# ======================================================================

class ResolutionIssue(BaseModel):
    """
    One offence found while binding requirements to products.
    依赖解析过程中发现的一条错误。
    解析阶段会收集全部错误后统一报告，任何一条都会阻止执行。
    """
    message: str
    task: str | None = None          # 出错的任务名
    requirement: str | None = None   # 出错的 Requirement 名

    def __str__(self) -> str:
        return self.message


class TaskResult(BaseModel):
    """
    Result from executing a single task. Returned by DAGExecutor.execute().
    单个任务执行完毕后的结果记录，由 DAGExecutor.execute() 汇总返回。
    """
    task: str                          # 任务名
    type: str                          # 任务类型
    success: bool                      # 是否执行成功
    round: int = 0                     # 在第几轮（批次）中执行
    error: str | None = None           # 失败时的异常信息
    seconds: float = 0.0               # 执行耗时（秒）
    gflops: float = 0.0                # 任务上报的吞吐量
    missing_products: list[str] = Field(default_factory=list)  # 被使用但未产出的 Product
