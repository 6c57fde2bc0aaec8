"""
Products and Requirements - the data-flow unit of the task DAG.
Product 与 Requirement —— 任务 DAG 中的数据流单元。

A Product is a named, typed output a task promises to compute.
A Requirement is a named, typed input a Product needs before its task can run.
Each Requirement is bound to exactly one Product (by the resolver), and it
"exists" once that Product's payload has been set.

Product 是任务承诺产出的具名、带类型的输出；
Requirement 是 Product 在任务运行前所需的具名、带类型的输入。
每个 Requirement 由依赖解析器绑定到唯一一个 Product，
当该 Product 的载荷被写入后，Requirement 才算「存在」。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from dag.errors import BindingError

# Type tag of scalar values. Scalar requirements can only be bound explicitly.
# 标量类型标签。标量 Requirement 只能通过 using 显式绑定。
SCALAR_TYPE = "double"


@dataclass(eq=False)
class Requirement:
    """
    An unmet input need of a Product.
    Product 尚未满足的输入需求。
    """
    type: str
    name: str
    product: Product | None = field(default=None, repr=False)  # 绑定后指向提供数据的 Product（非拥有引用）

    def fulfil(self, product: Product) -> None:
        """
        Bind this requirement to `product` and mark the product as used.
        The binding is permanent.
        将该 Requirement 绑定到 `product`，并把 product 标记为已使用。绑定一旦建立不可更改。
        """
        if self.product is not None:
            raise BindingError(
                f"Requirement {self.name} is already bound to {self.product.qualified_name}",
                requirement=self.name,
            )
        self.product = product
        product.used = True

    def is_fulfilled(self) -> bool:
        return self.product is not None

    def exists(self) -> bool:
        """Bound, and the bound product has been computed."""
        return self.product is not None and self.product.exists()

    def get(self) -> Product:
        if self.product is None:
            raise BindingError(f"Requirement {self.name} not fulfilled", requirement=self.name)
        return self.product


_UNSET = object()


@dataclass(eq=False)
class Product:
    """
    A named, typed output that some task will compute.
    某个任务将要计算出的具名、带类型输出。

    The payload is opaque to the scheduler and is set exactly once, during the
    owning task's run(). `task` is the owning task's name; literal products
    synthesised by the resolver have no owner.
    载荷对调度器不透明，只在所属任务 run() 期间写入一次。
    `task` 是所属任务名；解析器为字面量合成的 Product 没有所属任务。
    """
    type: str
    name: str
    requirements: list[Requirement] = field(default_factory=list)
    used: bool = False
    task: str | None = None
    _payload: Any = field(default=_UNSET, repr=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.task}:{self.name}" if self.task else self.name

    def add_requirement(self, requirement: Requirement) -> None:
        self.requirements.append(requirement)

    def add_requirements(self, requirements: Iterable[Requirement]) -> None:
        self.requirements.extend(requirements)

    def exists(self) -> bool:
        return self._payload is not _UNSET

    def put(self, payload: Any) -> None:
        if self.exists():
            raise ValueError(f"Product {self.qualified_name} has already been produced")
        self._payload = payload

    def get(self) -> Any:
        if not self.exists():
            raise LookupError(f"Product {self.qualified_name} does not exist yet")
        return self._payload


def literal_product(name: str, value: float) -> Product:
    """
    Synthesise an already-produced scalar product for `using.<name>.=`.
    为 `using.<name>.=` 合成一个已经带有载荷的标量 Product。
    """
    product = Product(SCALAR_TYPE, name)
    product.put(float(value))
    return product
