"""Evaluation context chain for `evalkit`.

A context is an immutable node holding variable and function bindings plus an
optional parent. Lookups fall back through the parent chain, so a child binding
shadows the same name further up. Composition always produces new nodes; no
function in this module mutates an existing context.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterator

_MISSING = object()


def _frozen_bindings(raw: Mapping[str, Any] | None, *, kind: str) -> Mapping[str, Any]:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, Mapping):
        raise TypeError(f"EvaluationContext.{kind} must be a mapping (type={type(raw).__name__})")
    out: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise TypeError(f"EvaluationContext.{kind} keys must be non-empty strings")
        if kind == "functions" and not callable(value):
            raise TypeError(f"EvaluationContext function {key!r} is not callable")
        out[key.strip()] = value
    return MappingProxyType(out)


@dataclass(frozen=True, eq=False)
class EvaluationContext:
    variables: Mapping[str, Any] = field(default_factory=dict)
    functions: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    parent: "EvaluationContext | None" = None
    finalized: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", _frozen_bindings(self.variables, kind="variables"))
        object.__setattr__(self, "functions", _frozen_bindings(self.functions, kind="functions"))
        if self.parent is not None and not isinstance(self.parent, EvaluationContext):
            raise TypeError(
                f"EvaluationContext.parent must be an EvaluationContext or None "
                f"(type={type(self.parent).__name__})"
            )

    def chain(self) -> Iterator["EvaluationContext"]:
        """Yield this node followed by its ancestors (nearest first)."""

        node: EvaluationContext | None = self
        while node is not None:
            yield node
            node = node.parent

    def has_variable(self, name: str) -> bool:
        return any(name in node.variables for node in self.chain())

    def lookup_variable(self, name: str, default: Any = _MISSING) -> Any:
        for node in self.chain():
            if name in node.variables:
                return node.variables[name]
        if default is _MISSING:
            raise KeyError(name)
        return default

    def lookup_function(self, name: str) -> Callable[..., Any]:
        for node in self.chain():
            if name in node.functions:
                return node.functions[name]
        raise KeyError(name)

    def flatten_variables(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for node in reversed(list(self.chain())):
            out.update(node.variables)
        return out

    def flatten_functions(self) -> dict[str, Callable[..., Any]]:
        out: dict[str, Callable[..., Any]] = {}
        for node in reversed(list(self.chain())):
            out.update(node.functions)
        return out

    def child(
        self,
        *,
        variables: Mapping[str, Any] | None = None,
        functions: Mapping[str, Callable[..., Any]] | None = None,
    ) -> "EvaluationContext":
        return EvaluationContext(variables=variables, functions=functions, parent=self)


def append_context(
    base: EvaluationContext | None, overlay: EvaluationContext | None
) -> EvaluationContext | None:
    """Return a context resolving names in `overlay` first, then in `base`.

    The overlay chain is flattened into a single new node parented on `base`.
    Neither argument is modified.
    """

    if overlay is None:
        return base
    if base is None:
        return overlay
    return EvaluationContext(
        variables=overlay.flatten_variables(),
        functions=overlay.flatten_functions(),
        parent=base,
    )


def _join(separator: str, items: Any) -> str:
    if isinstance(items, (str, bytes)) or not hasattr(items, "__iter__"):
        raise TypeError("join() expects a list of values")
    return str(separator).join(str(item) for item in items)


def _coalesce(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _lookup(mapping: Any, key: Any, default: Any = None) -> Any:
    if not isinstance(mapping, Mapping):
        raise TypeError(f"lookup() expects a mapping (type={type(mapping).__name__})")
    return mapping.get(key, default)


DEFAULT_FUNCTIONS: Mapping[str, Callable[..., Any]] = MappingProxyType(
    {
        "upper": lambda value: str(value).upper(),
        "lower": lambda value: str(value).lower(),
        "trim": lambda value: str(value).strip(),
        "join": _join,
        "coalesce": _coalesce,
        "format": lambda template, *args: str(template).format(*args),
        "length": len,
        "lookup": _lookup,
    }
)

_DEFAULT_LIBRARY = EvaluationContext(functions=DEFAULT_FUNCTIONS, finalized=True)


def finalize_context(ctx: EvaluationContext | None) -> EvaluationContext:
    """Prepare a context for evaluation.

    The default function library is placed beneath the caller's bindings so any
    caller-defined function of the same name wins. Already finalized contexts
    are returned as-is.
    """

    if ctx is None:
        return _DEFAULT_LIBRARY
    if ctx.finalized:
        return ctx
    return EvaluationContext(
        variables=ctx.flatten_variables(),
        functions=ctx.flatten_functions(),
        parent=_DEFAULT_LIBRARY,
        finalized=True,
    )
