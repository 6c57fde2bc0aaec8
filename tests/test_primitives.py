"""
基础组件测试 — 分别验证：
  1. Product / Requirement 数据流单元的存在性与绑定语义
  2. `using` 绑定指令解析器
  3. 任务状态机的合法 / 非法转移

运行方式:
    pytest tests/test_primitives.py -v
"""

from __future__ import annotations

import pytest

from dag.bindings import collect_using, parse_directive, parse_using, resolve_task_reference, strip_using
from dag.errors import BindingError, ConfigurationError
from dag.products import SCALAR_TYPE, Product, Requirement, literal_product
from dag.state_machine import InvalidTransitionError, TaskStateMachine
from dag.task import Task, context_of
from schema import LiteralBinding, ReferenceBinding, TaskStatus


class _Dummy(Task):
    def __init__(self, name: str):
        super().__init__("dummy", name)
        self.add_product(Product("array", "out", [Requirement("array", "in")]))

    def run(self, dag, context):
        self.put("out", [1.0])


# ======================================================================
# Test 1: Product / Requirement
# ======================================================================


class TestProductsAndRequirements:

    def test_requirement_exists_only_after_product_is_produced(self):
        product = Product("array", "out")
        req = Requirement("array", "in")

        assert not req.is_fulfilled() and not req.exists(), "未绑定的 Requirement 不应存在"

        req.fulfil(product)
        assert req.is_fulfilled(), "绑定后应为 fulfilled"
        assert not req.exists(), "Product 尚未产出，Requirement 仍不存在"
        assert product.used, "被绑定的 Product 应标记为 used"

        product.put([1.0, 2.0])
        assert req.exists(), "Product 产出后 Requirement 才存在"
        assert req.get() is product

    def test_binding_is_permanent(self):
        req = Requirement("array", "in")
        req.fulfil(Product("array", "a"))
        with pytest.raises(BindingError):
            req.fulfil(Product("array", "b"))

    def test_unbound_requirement_get_raises(self):
        with pytest.raises(BindingError, match="not fulfilled"):
            Requirement("array", "in").get()

    def test_payload_is_set_once(self):
        product = Product("bool", "flag")
        product.put(None)
        assert product.exists(), "None 也是合法载荷"
        assert product.get() is None
        with pytest.raises(ValueError):
            product.put(True)

    def test_get_before_put_raises(self):
        with pytest.raises(LookupError):
            Product("bool", "flag").get()

    def test_literal_product(self):
        product = literal_product("thresh", 3)
        assert product.type == SCALAR_TYPE
        assert product.exists() and product.get() == 3.0
        assert product.task is None, "字面量 Product 没有所属任务"

    def test_task_owns_products(self):
        task = _Dummy("grp.sub.t")
        assert task.context == "grp.sub."
        assert task.products[0].task == "grp.sub.t"
        assert task.products[0].qualified_name == "grp.sub.t:out"
        assert not task.is_ready(), "Requirement 未满足时任务不应就绪"
        with pytest.raises(KeyError):
            task.get_product("missing")
        with pytest.raises(BindingError):
            task.get("missing")

    @pytest.mark.parametrize(
        "name, expected",
        [("t", ""), ("a.t", "a."), ("a.b.t", "a.b.")],
    )
    def test_context_of(self, name, expected):
        assert context_of(name) == expected


# ======================================================================
# Test 2: `using` 绑定指令解析
# ======================================================================


class TestBindingDirectives:

    def test_reference_defaults_product_to_requirement_name(self):
        directive = parse_directive("val1", {"from": "T1"})
        assert directive == ReferenceBinding(requirement="val1", task="T1", product="val1")

    def test_reference_with_explicit_product(self):
        directive = parse_directive("val1", {"from": "grp.T1:value"})
        assert isinstance(directive, ReferenceBinding)
        assert directive.task == "grp.T1"
        assert directive.product == "value"

    def test_literal(self):
        directive = parse_directive("thresh", {"=": "0.25"})
        assert directive == LiteralBinding(requirement="thresh", value=0.25)

    def test_literal_takes_precedence(self):
        directive = parse_directive("x", {"=": 1, "from": "T1"})
        assert isinstance(directive, LiteralBinding), "同时给出 '=' 和 'from' 时以字面量为准"

    @pytest.mark.parametrize(
        "raw",
        [
            "T1",                 # 缺少 from / =
            {},                   # 空指令
            {"=": "abc"},         # 字面量不是数字
            {"=": True},          # 布尔值不是标量
            {"from": ""},         # 空引用
            {"from": "T1:"},      # 缺少 Product 名
            {"from": ":val"},     # 缺少任务名
        ],
    )
    def test_malformed_directives(self, raw):
        with pytest.raises(ConfigurationError):
            parse_directive("val1", raw)

    def test_collect_nested_and_flat_forms(self):
        config = {
            "tolerance": 1e-8,
            "using": {"val1": {"from": "T1"}},
            "using.val2.from": "T2:out",
            "using.thresh.=": 0.5,
        }
        found = collect_using(config)
        assert list(found) == ["val1", "val2", "thresh"]
        assert found["val2"] == {"from": "T2:out"}
        assert found["thresh"] == {"=": 0.5}

        directives = parse_using(config)
        assert [type(d) for d in directives] == [ReferenceBinding, ReferenceBinding, LiteralBinding]

        assert strip_using(config) == {"tolerance": 1e-8}, "using 相关的 key 应全部剥离"

    def test_using_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            collect_using({"using": ["val1"]})

    @pytest.mark.parametrize(
        "ref, context, expected",
        [
            ("T1", "", "T1"),
            ("T1", "a.b.", "a.b.T1"),        # 无 '.'：相对当前任务的上下文
            ("x.T1", "a.", "x.T1"),          # 已带层级：按绝对名处理
            (".T1", "a.b.", "T1"),           # 前导 '.'：顶层任务
        ],
    )
    def test_resolve_task_reference(self, ref, context, expected):
        assert resolve_task_reference(ref, context) == expected


# ======================================================================
# Test 3: 任务状态机
# ======================================================================


class TestTaskStateMachine:

    def test_happy_path_fires_callbacks(self):
        seen: list[tuple[str, str, str]] = []
        sm = TaskStateMachine(on_transition=lambda n, old, new: seen.append((n, old.value, new.value)))
        task = _Dummy("t")

        sm.transition(task, TaskStatus.READY)
        sm.transition(task, TaskStatus.RUNNING)
        sm.transition(task, TaskStatus.SUCCEEDED)

        assert task.status == TaskStatus.SUCCEEDED
        assert seen == [
            ("t", "pending", "ready"),
            ("t", "ready", "running"),
            ("t", "running", "succeeded"),
        ]

    @pytest.mark.parametrize(
        "path",
        [
            [TaskStatus.RUNNING],                                         # 跳过 READY
            [TaskStatus.READY, TaskStatus.SUCCEEDED],                     # 未运行即成功
            [TaskStatus.READY, TaskStatus.RUNNING, TaskStatus.DISCARDED], # 运行中不能丢弃
            [TaskStatus.DISCARDED, TaskStatus.READY],                     # 终态不可再转移
        ],
    )
    def test_invalid_transitions(self, path):
        sm = TaskStateMachine()
        task = _Dummy("t")
        with pytest.raises(InvalidTransitionError):
            for status in path:
                sm.transition(task, status)

    def test_callback_errors_do_not_break_transitions(self):
        def boom(*_):
            raise RuntimeError("ui crashed")

        sm = TaskStateMachine(on_transition=boom)
        task = _Dummy("t")
        sm.transition(task, TaskStatus.READY)
        assert task.status == TaskStatus.READY
