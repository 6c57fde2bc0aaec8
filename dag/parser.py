"""
Task Parser - builds a TaskDAG from a nested configuration tree.
任务解析器 —— 从嵌套配置树构建 TaskDAG。

A configuration tree is an ordered list of (key, value) entries. Keys are
either a registered task type, whose value is that task's configuration, or
`section.<name>`, whose value is a nested tree contributing the namespace
prefix `<name>.`:

配置树是有序的 (key, value) 列表。key 要么是已注册的任务类型（value 为该任务的配置），
要么是 `section.<name>`（value 为嵌套子树，为其中所有任务贡献命名空间前缀 `<name>.`）：

    - scalar: {name: T1, value: 1.0, product: val1}
    - section.inner:
        - scalar: {value: 2.0}            # -> inner.scalar
        - scalar: {value: 3.0}            # -> inner.scalar1
    - compare:
        tolerance: 1.0e-8
        using:
          val1: {from: T1}
          val2: {from: inner.scalar:value}

Input files may be YAML or JSON; a top-level mapping is accepted too when no
key needs to repeat.
输入文件可以是 YAML 或 JSON；当 key 不需要重复时，顶层也可以直接写成 mapping。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from dag.bindings import strip_using
from dag.errors import ConfigurationError
from dag.graph import TaskDAG
from dag.registry import TaskRegistry

logger = logging.getLogger(__name__)

SECTION = "section"
NAME_KEY = "name"
ILLEGAL_NAME_CHARS = ".:"

ConfigTree = list[tuple[str, Any]]


# ======================================================================
# Input loading
# 输入加载
# ======================================================================

def load_input(path: str | Path) -> ConfigTree:
    """
    Read a YAML or JSON input file into a configuration tree.
    读取 YAML 或 JSON 输入文件，转换为配置树。
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read input file {path}: {exc}") from exc
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot parse input file {path}: {exc}") from exc

    if data is None:
        raise ConfigurationError(f"Input file {path} is empty")
    return normalize_entries(data)


def normalize_entries(data: Any) -> ConfigTree:
    """
    Accept a mapping or a list of single-key mappings; return ordered entries.
    接受 mapping 或「单 key mapping 的列表」，返回有序的 (key, value) 列表。
    列表形式允许同一任务类型重复出现。
    """
    if isinstance(data, Mapping):
        return [(str(k), v) for k, v in data.items()]
    if isinstance(data, list):
        entries: ConfigTree = []
        for item in data:
            if not isinstance(item, Mapping) or len(item) != 1:
                raise ConfigurationError(
                    f"Each entry of a task list must be a single-key mapping, got {item!r}"
                )
            ((key, value),) = item.items()
            entries.append((str(key), value))
        return entries
    raise ConfigurationError(f"Configuration must be a mapping or a list, got {type(data).__name__}")


def _check_name(name: Any, what: str) -> str:
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{what} names must be non-empty strings ({name!r})")
    if any(c in name for c in ILLEGAL_NAME_CHARS):
        raise ConfigurationError(
            f"{what} names may not contain any of '{ILLEGAL_NAME_CHARS}' ({name})",
            task=name if what == "Task" else None,
        )
    return name


# ======================================================================
# Parser
# 解析器
# ======================================================================

class TaskParser:
    """
    Instantiates one task per leaf entry of a configuration tree.
    为配置树中的每个叶子条目实例化一个任务。
    """

    def __init__(self, registry: TaskRegistry):
        self._registry = registry

    def parse(self, tree: Any, dag: TaskDAG | None = None, prefix: str = "") -> TaskDAG:
        """
        Add the tasks described by `tree` to `dag` (a new one if omitted).
        将 `tree` 描述的任务加入 `dag`（未提供时新建一个）。

        Sections at a level are expanded before the tasks at that level, so
        default ordinals count the section's tasks first.
        同一层级中先展开所有 section，再处理该层的任务，因此默认序号会先计入 section 中的任务。
        """
        dag = dag if dag is not None else TaskDAG()
        entries = tree if self._is_tree(tree) else normalize_entries(tree)

        # --- 1. 递归展开 section，每个 section 贡献自己的前缀段 ---
        for key, value in entries:
            if key.startswith(SECTION + "."):
                section = _check_name(key[len(SECTION) + 1:], "Section")
                logger.debug("[Parser] Entering section %s%s", prefix, section)
                self.parse(normalize_entries(value if value is not None else []), dag, prefix + section + ".")
            elif key == SECTION:
                raise ConfigurationError(f"Section entries must be written as '{SECTION}.<name>'")

        # --- 2. 其余条目逐个实例化为任务 ---
        for key, value in entries:
            if key.startswith(SECTION + "."):
                continue
            self._add_task(dag, prefix, key, value)

        return dag

    @staticmethod
    def _is_tree(tree: Any) -> bool:
        return isinstance(tree, list) and all(isinstance(e, tuple) and len(e) == 2 for e in tree)

    def _add_task(self, dag: TaskDAG, prefix: str, type_name: str, value: Any) -> None:
        if type_name not in self._registry:
            raise ConfigurationError(f"Task type {type_name} not found")
        if value is None:
            value = {}
        if not isinstance(value, Mapping):
            raise ConfigurationError(
                f"Configuration of a {type_name} task must be a mapping, got {value!r}"
            )
        raw = {str(k): v for k, v in value.items()}

        # 默认名：前缀 + 类型 + 序号（同前缀同类型的第一个任务没有序号）
        num = sum(
            1 for task in dag.all_tasks()
            if task.name.startswith(prefix) and task.type == type_name
        )
        name = prefix + type_name + ("" if num == 0 else str(num))

        config = strip_using(raw)
        if NAME_KEY in config:
            name = prefix + _check_name(config.pop(NAME_KEY), "Task")

        if dag.has_name(name):
            raise ConfigurationError(f"More than one task with name {name}", task=name)

        validated = self._registry.validate(type_name, name, config)
        task = self._registry.create(type_name, name, validated)
        dag.add_task(task, raw)
        logger.debug("[Parser] Task %s (%s) with %d product(s)", name, type_name, len(task.products))


def build_dag(tree: Any, registry: TaskRegistry) -> TaskDAG:
    """Parse a whole configuration tree into a fresh TaskDAG."""
    return TaskParser(registry).parse(tree)
