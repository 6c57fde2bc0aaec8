"""
Array tasks - a non-scalar product type that greedy resolution can wire up.
数组任务 —— 一种非标量 Product 类型，可由贪心解析自动连线。

An "array" requirement does not need a `using` entry: the resolver binds it
to the first "array" product found in the same section or an enclosing one.
"array" 类型的 Requirement 不需要写 using：解析器会自动绑定到
同一 section 或上层 section 中找到的第一个 "array" Product。
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from pydantic import Field

from dag.products import SCALAR_TYPE, Product, Requirement
from dag.task import Task
from schema import TaskConfig

if TYPE_CHECKING:
    from dag.executor import ExecutionContext
    from dag.graph import TaskDAG

ARRAY_TYPE = "array"


class ArrayConfig(TaskConfig):
    values: list[float] = Field(min_length=1)
    product: str = "array"


class ArrayTask(Task):
    def __init__(self, name: str, config: ArrayConfig):
        super().__init__("array", name, config)
        self.values = tuple(config.values)
        self.add_product(Product(ARRAY_TYPE, config.product))

    def run(self, dag: TaskDAG, context: ExecutionContext) -> None:
        self.put(self.products[0].name, self.values)


class NormConfig(TaskConfig):
    ord: float = Field(default=2.0, gt=0)


class NormTask(Task):
    """
    p-norm of an array: (sum |x_i|^p)^(1/p); ord=inf gives the max norm.
    数组的 p-范数：(sum |x_i|^p)^(1/p)；ord=inf 时为最大范数。
    """

    def __init__(self, name: str, config: NormConfig):
        super().__init__("norm", name, config)
        self.ord = config.ord
        self.add_product(Product(SCALAR_TYPE, "norm", [Requirement(ARRAY_TYPE, "array")]))

    def run(self, dag: TaskDAG, context: ExecutionContext) -> None:
        values = self.get("array")
        if math.isinf(self.ord):
            norm = max(abs(x) for x in values)
        else:
            norm = sum(abs(x) ** self.ord for x in values) ** (1.0 / self.ord)
        context.add_flops(3 * len(values))
        self.put("norm", norm)
