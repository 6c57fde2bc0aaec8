"""
TaskDAG 测试 — 任务注册、就绪发现、拓扑排序、依赖环定位与销毁。
"""

from __future__ import annotations

import pytest

from dag.errors import ConfigurationError
from dag.graph import TaskDAG
from dag.products import Product, Requirement
from dag.resolver import RequirementResolver
from dag.task import Task
from schema import TaskStatus


class Node(Task):
    def __init__(self, name: str, produces=("array", "out"), requires=()):
        super().__init__("node", name)
        ptype, pname = produces
        self.add_product(Product(ptype, pname, [Requirement(t, n) for t, n in requires]))

    def run(self, dag, context):
        self.put(self.products[0].name, self.name)


def _resolved(*tasks: Task) -> TaskDAG:
    dag = TaskDAG()
    for task in tasks:
        dag.add_task(task)
    assert RequirementResolver(dag).resolve() == []
    return dag


class TestTaskDAG:

    def test_duplicate_names_are_rejected(self):
        dag = TaskDAG()
        dag.add_task(Node("a"))
        with pytest.raises(ConfigurationError, match="More than one task with name a"):
            dag.add_task(Node("a"))

    def test_names_are_never_reused(self):
        dag = TaskDAG()
        a = Node("a")
        dag.add_task(a)
        dag.pop_ready_tasks()
        dag.mark_completed(a)

        assert dag.find_task("a") is a, "已完成的任务仍可按名字查找"
        with pytest.raises(ConfigurationError):
            dag.add_task(Node("a"))

    def test_pop_ready_tasks_keeps_discovery_order(self):
        # 消费者排在生产者之前，也只有生产者会就绪
        consumer = Node("consumer", produces=("bool", "done"), requires=[("array", "in")])
        p1, p2 = Node("p1"), Node("p2")
        dag = _resolved(consumer, p1, p2)

        assert dag.pop_ready_tasks() == [p1, p2]
        assert dag.pending == [consumer]

    def test_topological_sort(self):
        c = Node("c", produces=("t3", "c"), requires=[("t2", "y")])
        b = Node("b", produces=("t2", "b"), requires=[("t1", "x")])
        a = Node("a", produces=("t1", "a"))
        dag = _resolved(c, b, a)

        assert dag.dependency_edges() == [("b", "c"), ("a", "b")]
        assert dag.topological_sort() == ["a", "b", "c"], "生产者必须排在消费者之前"
        assert dag.find_cycle() == []

    def test_find_cycle_excludes_downstream_tasks(self):
        a = Node("A", produces=("ta", "a"), requires=[("tb", "b")])
        b = Node("B", produces=("tb", "b"), requires=[("ta", "a")])
        c = Node("C", produces=("bool", "c"), requires=[("tb", "in")])
        dag = _resolved(a, b, c)

        assert dag.topological_sort() == []
        assert dag.find_cycle() == ["A", "B"], "环下游的任务不属于环"

    def test_close_discards_pending_tasks(self):
        a = Node("a")
        dag = TaskDAG()
        dag.add_task(a)
        dag.close()

        assert a.status == TaskStatus.DISCARDED
        assert len(dag) == 0

    def test_summary(self):
        dag = TaskDAG()
        dag.add_task(Node("a"))
        dag.add_task(Node("b"))
        assert dag.summary() == "DAG[2 tasks: 2 pending]"

    def test_late_tasks_only_while_executing(self):
        dag = TaskDAG()
        dag.add_task(Node("a"))
        assert dag.take_late_tasks() == []

        dag.executing = True
        late = Node("late")
        dag.add_task(late)
        assert dag.take_late_tasks() == [late]
        assert dag.take_late_tasks() == [], "取出后应清空"
