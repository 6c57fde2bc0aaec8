"""
Task Registry - maps a task-type name to its constructor and config schema.
任务注册表 —— 把任务类型名映射到构造函数和配置 Schema。

The registry is an explicit value built at process start and handed to the
parser, rather than a hidden module-level singleton: tests and embedding
applications can build their own with exactly the task types they need.
注册表是进程启动时显式构建、再传给解析器的普通对象，而不是隐藏的全局单例：
测试和嵌入方可以只注册自己需要的任务类型。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ValidationError

from dag.errors import ConfigurationError
from dag.task import Task

logger = logging.getLogger(__name__)

TaskFactory = Callable[[str, Any], Task]


@dataclass(frozen=True)
class TaskSpec:
    """Everything the parser needs to build one task type."""
    type: str
    factory: TaskFactory
    schema: type[BaseModel] | None = None


class TaskRegistry:
    """
    Registration table of task types.
    任务类型注册表。

    Usage:
      registry = TaskRegistry()
      registry.register("compare", CompareScalars, schema=CompareConfig)
      config = registry.validate("compare", "check", {"tolerance": 1e-8})
      task = registry.create("compare", "check", config)
    """

    def __init__(self) -> None:
        self._specs: dict[str, TaskSpec] = {}

    def register(self, type_name: str, factory: TaskFactory, schema: type[BaseModel] | None = None) -> None:
        if type_name in self._specs:
            logger.debug("[Registry] Task type '%s' re-registered", type_name)
        self._specs[type_name] = TaskSpec(type=type_name, factory=factory, schema=schema)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._specs

    def types(self) -> list[str]:
        return sorted(self._specs)

    def spec(self, type_name: str) -> TaskSpec:
        try:
            return self._specs[type_name]
        except KeyError:
            raise ConfigurationError(f"Task type {type_name} not found") from None

    def validate(self, type_name: str, name: str, config: Mapping[str, Any]) -> BaseModel:
        """
        Apply the type's schema to a raw config, filling in defaults.
        用该类型的 Schema 校验原始配置并补全默认值。
        """
        spec = self.spec(type_name)
        if spec.schema is None:
            raise ConfigurationError(f"Cannot find schema for task {type_name}", task=name)
        try:
            return spec.schema.model_validate(dict(config))
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigurationError(
                f"Invalid configuration for task {name} ({type_name}): {details}",
                task=name,
            ) from exc

    def create(self, type_name: str, name: str, config: Any) -> Task:
        task = self.spec(type_name).factory(name, config)
        logger.debug("[Registry] Created task %s (%s)", name, type_name)
        return task
