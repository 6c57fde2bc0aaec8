"""
Binding directives - parse the `using` block of a task configuration.
绑定指令 —— 解析任务配置中的 `using` 配置块。

Two forms are recognised for each requirement name:
每个 Requirement 名支持两种形式：

    using:
      val1: {from: "T1"}          # 引用：任务 T1 上同名的 Product
      val2: {from: "grp.T2:out"}  # 引用：任务 grp.T2 上名为 out 的 Product
      thresh: {"=": 0.5}          # 字面量：合成一个标量 Product

The flat dotted spelling (`using.val1.from: T1`, `using.thresh.=: 0.5`) is
accepted as well.
也接受扁平的点分写法（`using.val1.from: T1`、`using.thresh.=: 0.5`）。
"""

from __future__ import annotations

from typing import Any, Mapping

from dag.errors import ConfigurationError
from schema import BindingDirective, LiteralBinding, ReferenceBinding

USING = "using"
LITERAL_KEY = "="
FROM_KEY = "from"


def collect_using(config: Mapping[str, Any]) -> dict[str, Any]:
    """
    Gather raw directives keyed by requirement name, in declaration order.
    按声明顺序收集原始绑定指令，key 为 Requirement 名。
    """
    found: dict[str, Any] = {}
    for key, value in config.items():
        if key == USING:
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"'{USING}' must be a mapping of requirement names, got {value!r}")
            for req, raw in value.items():
                _merge(found, str(req), raw)
        elif key.startswith(USING + "."):
            # using.<req>.<from|=>  或  using.<req>
            rest = key[len(USING) + 1:]
            req, dot, field_name = rest.partition(".")
            _merge(found, req, {field_name: value} if dot else value)
    return found


def _merge(found: dict[str, Any], req: str, raw: Any) -> None:
    if req in found and isinstance(found[req], dict) and isinstance(raw, Mapping):
        found[req] = {**found[req], **raw}
    else:
        found[req] = dict(raw) if isinstance(raw, Mapping) else raw


def strip_using(config: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in config.items() if k != USING and not k.startswith(USING + ".")}


def consume_directive(config: dict[str, Any], requirement: str) -> None:
    """
    Drop the entry for `requirement` from a stored config once it is bound.
    Requirement 绑定成功后，从保存的原始配置中删除对应的 using 条目，
    这样重复解析时不会再次处理同一条指令。
    """
    using = config.get(USING)
    if isinstance(using, Mapping):
        # 重建而不是原地修改：嵌套的 mapping 可能仍被调用方持有
        remaining = {k: v for k, v in using.items() if str(k) != requirement}
        if remaining:
            config[USING] = remaining
        else:
            del config[USING]
    flat = f"{USING}.{requirement}"
    for key in [k for k in config if k == flat or k.startswith(flat + ".")]:
        del config[key]


def parse_directive(requirement: str, raw: Any) -> BindingDirective:
    """
    Turn one raw `using` entry into a typed directive.
    把一条原始 `using` 配置转换为带类型的绑定指令。
    """
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Binding for requirement {requirement} must contain '{FROM_KEY}' or '{LITERAL_KEY}', got {raw!r}",
            requirement=requirement,
        )

    # '=' takes precedence over 'from'
    if LITERAL_KEY in raw:
        value = raw[LITERAL_KEY]
        try:
            if isinstance(value, bool):
                raise TypeError(value)
            return LiteralBinding(requirement=requirement, value=float(value))
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Literal value for requirement {requirement} is not a number: {value!r}",
                requirement=requirement,
            ) from None

    if FROM_KEY in raw:
        ref = raw[FROM_KEY]
        if not isinstance(ref, str) or not ref:
            raise ConfigurationError(
                f"Reference for requirement {requirement} must be a non-empty string, got {ref!r}",
                requirement=requirement,
            )
        task, sep, product = ref.partition(":")
        if not task or (sep and not product):
            raise ConfigurationError(
                f"Malformed reference '{ref}' for requirement {requirement}",
                requirement=requirement,
            )
        return ReferenceBinding(requirement=requirement, task=task, product=product or requirement)

    raise ConfigurationError(
        f"Binding for requirement {requirement} must contain '{FROM_KEY}' or '{LITERAL_KEY}'",
        requirement=requirement,
    )


def parse_using(config: Mapping[str, Any]) -> list[BindingDirective]:
    return [parse_directive(req, raw) for req, raw in collect_using(config).items()]


def resolve_task_reference(task_ref: str, context: str) -> str:
    """
    Absolute task name for a reference written inside `context`.
    计算在 `context` 中书写的任务引用所对应的绝对任务名。

      "T1"      in "a."  -> "a.T1"   (no '.', relative to the referencing task)
      "b.T1"    in "a."  -> "b.T1"   (already qualified)
      ".T1"     in "a."  -> "T1"     (leading '.' means top level)
    """
    if "." not in task_ref:
        task_ref = context + task_ref
    if task_ref.startswith("."):
        task_ref = task_ref[1:]
    return task_ref
