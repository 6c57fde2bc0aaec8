"""
Scalar tasks - produce and compare scalar ("double") values.
标量任务 —— 产出与比较标量（"double"）值。
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from dag.products import SCALAR_TYPE, Product, Requirement
from dag.task import Task
from schema import TaskConfig

if TYPE_CHECKING:
    from dag.executor import ExecutionContext
    from dag.graph import TaskDAG


class ScalarConfig(TaskConfig):
    value: float
    product: str = "value"  # 产出的 Product 名，供 using.<req>.from 引用


class ScalarTask(Task):
    """
    Publish a constant as a scalar product.
    把配置中的常数发布为一个标量 Product。
    """

    def __init__(self, name: str, config: ScalarConfig):
        super().__init__("scalar", name, config)
        self.value = config.value
        self.add_product(Product(SCALAR_TYPE, config.product))

    def run(self, dag: TaskDAG, context: ExecutionContext) -> None:
        self.put(self.products[0].name, self.value)


class ComparisonFailed(RuntimeError):
    """Two scalars differed by more than the tolerance."""


class CompareConfig(TaskConfig):
    tolerance: float
    strict: bool = True  # 不匹配时让任务失败（从而中止整个 DAG）


class CompareScalars(Task):
    """
    Check that two scalars agree: match = |val1 - val2| < tolerance.
    检查两个标量是否一致：match = |val1 - val2| < tolerance。
    """

    def __init__(self, name: str, config: CompareConfig):
        super().__init__("compare", name, config)
        self.tolerance = config.tolerance
        self.strict = config.strict
        self.add_product(Product("bool", "match", [
            Requirement(SCALAR_TYPE, "val1"),
            Requirement(SCALAR_TYPE, "val2"),
        ]))

    def run(self, dag: TaskDAG, context: ExecutionContext) -> None:
        val1 = self.get("val1")
        val2 = self.get("val2")
        context.add_flops(2)

        match = abs(val1 - val2) < self.tolerance
        self.put("match", match)

        if match:
            self.info("passed")
            return

        digits = max(int(0.5 - math.log10(self.tolerance)), 0) if self.tolerance > 0 else 6
        message = f"failed: {val1:.{digits}f} vs {val2:.{digits}f}"
        self.error(message)
        if self.strict:
            raise ComparisonFailed(message)
