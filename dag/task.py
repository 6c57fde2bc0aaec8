"""
Base Task - Abstract interface for every task type in the scheduler.
Task 基类 —— 调度器中所有任务类型的抽象接口。

Each task exposes:
  - type / name: what kind of computation it is and where it sits in the hierarchy
  - products: the outputs it promises, each with its pre-declared requirements
  - run(): read requirement payloads, compute, put product payloads

每个任务暴露：
  - type / name：计算类型，以及在层级命名空间中的位置
  - products：承诺产出的 Product，每个 Product 预先声明了自己的 Requirement
  - run()：读取 Requirement 载荷、计算、写入 Product 载荷
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterator

from dag.errors import BindingError
from dag.products import Product, Requirement
from schema import TaskConfig, TaskStatus

if TYPE_CHECKING:
    from dag.executor import ExecutionContext
    from dag.graph import TaskDAG

logger = logging.getLogger(__name__)


def context_of(name: str) -> str:
    """
    The dotted prefix of a task name, up to and including the last '.'.
    任务名的层级前缀（截至最后一个 '.'，含该点）；顶层任务为空字符串。
    """
    sep = name.rfind(".")
    return name[:sep + 1] if sep >= 0 else ""


class Task(ABC):
    """
    A named unit of work producing Products from Requirements.
    由 Requirement 生产 Product 的具名工作单元。
    所有具体任务（scalar、compare、array、norm 等）都继承自此类。
    """

    def __init__(self, type: str, name: str, config: TaskConfig | None = None):
        self.type = type
        self.name = name
        self.config = config
        self.products: list[Product] = []
        self.status = TaskStatus.PENDING  # 由 TaskStateMachine 管理

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name} ({self.type}, {self.status.value})>"

    @property
    def context(self) -> str:
        return context_of(self.name)

    # ------------------------------------------------------------------
    # Products and requirements
    # Product 与 Requirement
    # ------------------------------------------------------------------

    def add_product(self, product: Product) -> Product:
        product.task = self.name
        self.products.append(product)
        return product

    def get_product(self, name: str) -> Product:
        for product in self.products:
            if product.name == name:
                return product
        raise KeyError(f"Product {name} not found on task {self.name}")

    def requirements(self) -> Iterator[Requirement]:
        for product in self.products:
            yield from product.requirements

    def is_ready(self) -> bool:
        """
        True when every requirement of every product exists.
        当所有 Product 的所有 Requirement 都已存在时返回 True。
        """
        return all(req.exists() for req in self.requirements())

    def get(self, requirement_name: str) -> Any:
        """
        Payload of the product bound to the named requirement.
        读取指定 Requirement 所绑定 Product 的载荷。
        """
        for req in self.requirements():
            if req.name == requirement_name:
                return req.get().get()
        raise BindingError(
            f"Requirement {requirement_name} not found on task {self.name}",
            task=self.name,
            requirement=requirement_name,
        )

    def put(self, product_name: str, payload: Any) -> None:
        self.get_product(product_name).put(payload)

    # ------------------------------------------------------------------
    # Logging helpers
    # 日志辅助方法：统一加上任务名前缀
    # ------------------------------------------------------------------

    def info(self, msg: str, *args: Any) -> None:
        logger.info("[%s] " + msg, self.name, *args)

    def warning(self, msg: str, *args: Any) -> None:
        logger.warning("[%s] " + msg, self.name, *args)

    def error(self, msg: str, *args: Any) -> None:
        logger.error("[%s] " + msg, self.name, *args)

    # ------------------------------------------------------------------
    # Execution
    # 执行
    # ------------------------------------------------------------------

    @abstractmethod
    def run(self, dag: TaskDAG, context: ExecutionContext) -> None:
        """
        Compute this task's products.
        计算本任务的所有 Product。

        Read inputs with get(), store outputs with put(). Raise any exception
        to signal failure; the executor aborts the whole DAG on the first one.
        `dag` may be used to append further tasks via dag.add_task().
        通过 get() 读取输入、put() 写入输出。抛出任意异常即表示失败，
        执行引擎会在第一个失败处中止整个 DAG。可以通过 dag.add_task() 追加新任务。
        """
