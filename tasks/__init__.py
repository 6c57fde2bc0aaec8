"""
Built-in task types.
内置任务类型。

default_registry() is the registration table used by the CLI; embedding
applications register their own task types on the returned value.
default_registry() 返回命令行使用的注册表；嵌入方可在返回的注册表上继续注册自己的任务类型。
"""

from dag.registry import TaskRegistry

from .array import ArrayConfig, ArrayTask, NormConfig, NormTask
from .scalar import CompareConfig, CompareScalars, ComparisonFailed, ScalarConfig, ScalarTask


def register_builtin_tasks(registry: TaskRegistry) -> TaskRegistry:
    registry.register("scalar", ScalarTask, schema=ScalarConfig)
    registry.register("compare", CompareScalars, schema=CompareConfig)
    registry.register("array", ArrayTask, schema=ArrayConfig)
    registry.register("norm", NormTask, schema=NormConfig)
    return registry


def default_registry() -> TaskRegistry:
    return register_builtin_tasks(TaskRegistry())


__all__ = [
    "ArrayTask", "CompareScalars", "ComparisonFailed", "NormTask", "ScalarTask",
    "default_registry", "register_builtin_tasks",
]
