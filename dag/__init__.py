"""
DAG module - Core engine for task dependency scheduling.
DAG 模块 —— 任务依赖调度的核心引擎。

Components:
  - products.py:      Product / Requirement data-flow model
  - task.py:          Task base class
  - registry.py:      task-type registration table
  - bindings.py:      `using` directive parser
  - parser.py:        configuration tree -> TaskDAG
  - resolver.py:      two-phase requirement resolution (explicit, then greedy)
  - graph.py:         TaskDAG aggregate and graph algorithms
  - state_machine.py: task lifecycle state machine
  - executor.py:      round-by-round execution engine

模块组成：
  - products.py:      Product / Requirement 数据流模型
  - task.py:          Task 基类
  - registry.py:      任务类型注册表
  - bindings.py:      `using` 绑定指令解析
  - parser.py:        配置树 -> TaskDAG
  - resolver.py:      两阶段依赖解析（先显式、后贪心）
  - graph.py:         TaskDAG 聚合对象与图算法
  - state_machine.py: 任务生命周期状态机
  - executor.py:      按轮次执行的执行引擎
"""

from dag.errors import (  # 错误类型
    BindingError,
    ConfigurationError,
    DeadlockError,
    ResolutionError,
    SchedulerError,
    TaskExecutionError,
)
from dag.products import SCALAR_TYPE, Product, Requirement  # 数据流单元
from dag.task import Task                                    # 任务基类
from dag.registry import TaskRegistry                        # 任务类型注册表
from dag.graph import TaskDAG                                # 待执行任务集合
from dag.parser import TaskParser, build_dag, load_input     # 配置解析
from dag.resolver import RequirementResolver                 # 依赖解析器
from dag.state_machine import TaskStateMachine               # 任务状态机
from dag.executor import DAGExecutor, ExecutionContext       # 执行引擎
